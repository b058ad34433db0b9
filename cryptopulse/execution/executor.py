import asyncio
import inspect
import logging
from typing import Any

from cryptopulse.core.exceptions import ExecutionError
from cryptopulse.core.executors import run_in_pool
from cryptopulse.schemas.execution import ExecutionResult, ExecutionStatus, OrderRequest

logger = logging.getLogger("TradeExecutor")


class TradeExecutor:
    """
    Boundary to the exchange collaborator.

    - Bounded timeout: a hung exchange call fails the signal instead of blocking the bot.
    - Sync SDKs are off-loaded to the global thread pool.
    - Any failure (transport, timeout, exchange rejection) surfaces as ExecutionError.
    """

    def __init__(self, client: Any, timeout: float = 10.0):
        self.client = client
        self.timeout = timeout

    async def execute(self, order: OrderRequest) -> ExecutionResult:
        try:
            if inspect.iscoroutinefunction(self.client.execute):
                call = self.client.execute(order)
            else:
                call = run_in_pool(self.client.execute, order)
            result = await asyncio.wait_for(call, timeout=self.timeout)

        except asyncio.TimeoutError as e:
            logger.error(f"⏱️ Execution timeout after {self.timeout}s: {order.symbol} {order.side.value}")
            raise ExecutionError(f"exchange did not respond within {self.timeout}s") from e
        except ExecutionError:
            raise
        except Exception as e:
            logger.error(f"🔥 Execution Exception: {e}")
            raise ExecutionError(str(e) or e.__class__.__name__) from e

        if result.status == ExecutionStatus.REJECTED:
            msg = result.error_message or "order rejected by exchange"
            logger.error(f"❌ Order Rejected: {msg}")
            raise ExecutionError(msg, order_id=result.order_id)

        logger.info(
            f"✅ Order Sent: {order.symbol} {order.side.value} {order.quantity} | "
            f"ID: {result.order_id} | {result.status.value}",
            extra={"symbol": order.symbol, "order_id": result.order_id},
        )
        return result
