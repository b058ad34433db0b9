import logging
import uuid
from typing import Dict

from cryptopulse.execution.core import ExchangeClient
from cryptopulse.schemas.execution import ExecutionResult, ExecutionStatus, OrderRequest

logger = logging.getLogger("PaperExchange")


class PaperExchangeClient(ExchangeClient):
    """
    Simulates an exchange 100% in memory.
    Orders fill instantly at the requested price.
    """

    def __init__(self):
        self.orders: Dict[str, OrderRequest] = {}

    async def execute(self, order: OrderRequest) -> ExecutionResult:
        order_id = f"PAPER_{uuid.uuid4().hex[:12]}"

        logger.info(f"📝 [PAPER TRADE] {order.side.value} {order.quantity} {order.symbol} @ {order.price}")

        self.orders[order_id] = order
        return ExecutionResult(
            order_id=order_id,
            status=ExecutionStatus.FILLED,
            executed_qty=order.quantity,
            executed_price=order.price,
        )
