from abc import ABC, abstractmethod

from cryptopulse.schemas.execution import ExecutionResult, OrderRequest


class ExchangeClient(ABC):
    """
    Abstract Base Class for all exchanges (Real & Paper).
    The pipeline interacts ONLY with this interface, never implementation details.
    """

    @abstractmethod
    async def execute(self, order: OrderRequest) -> ExecutionResult:
        """
        Place an order.
        Returns status filled | pending | rejected, or raises on transport failure.
        """
        pass
