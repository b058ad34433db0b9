from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from cryptopulse.risk.models import TradeSide, utcnow
from cryptopulse.schemas.common import CamelModel


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class ExecutionStatus(str, Enum):
    FILLED = "filled"
    PENDING = "pending"
    REJECTED = "rejected"


class OrderRequest(CamelModel):
    """An authorized order handed to the Trade Executor."""

    client_order_id: str
    user_id: str
    signal_id: Optional[str] = None
    strategy_id: Optional[str] = None
    symbol: str
    side: TradeSide
    quantity: float = Field(..., gt=0)
    price: float = Field(..., gt=0)
    order_type: OrderType = OrderType.MARKET
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None


class ExecutionResult(CamelModel):
    """
    Standardized response from ANY exchange (Real or Paper).
    """

    order_id: str
    status: ExecutionStatus
    executed_qty: float = 0.0
    executed_price: float = 0.0
    executed_at: datetime = Field(default_factory=utcnow)
    error_message: Optional[str] = None
