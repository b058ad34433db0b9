from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator

from cryptopulse.schemas.common import CamelModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class RiskLimits(CamelModel):
    """
    Per-user policy. Immutable: an update replaces the whole object.
    """

    model_config = ConfigDict(frozen=True)

    max_concurrent_trades: int = Field(..., gt=0)
    max_daily_trades: int = Field(..., gt=0)
    max_drawdown: float = Field(..., gt=0.0, le=1.0, description="Fraction of peak equity")
    max_daily_loss: float = Field(..., gt=0.0, le=1.0, description="Fraction of portfolio value")
    risk_per_trade: float = Field(..., gt=0.0, le=1.0, description="Fraction of portfolio risked per trade")
    max_position_size: float = Field(0.5, gt=0.0, le=1.0, description="Max single-trade notional / portfolio")
    leverage: float = Field(1.0, ge=1.0, le=100.0)


class PortfolioState(CamelModel):
    model_config = ConfigDict(frozen=True)

    portfolio_value: float
    total_exposure: float = 0.0
    current_drawdown: float = 0.0
    active_trade_count: int = 0
    unrealized_pnl: float = 0.0
    open_symbols: List[str] = Field(default_factory=list)


class DailyStats(CamelModel):
    trades_today: int = 0
    wins_today: int = 0
    losses_today: int = 0
    cumulative_profit_today: float = 0.0
    window_start: datetime = Field(default_factory=utcnow)


class Signal(CamelModel):
    """A strategy-generated trade proposal. Consumed exactly once."""

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str
    action: TradeSide
    confidence: float
    price: float
    strategy_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    amount: Optional[float] = None

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        return v.upper() if isinstance(v, str) else v


class TradeProposal(CamelModel):
    """Input of a limit check: a concrete trade of a given size."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    side: TradeSide
    amount: float
    price: float
    stop_loss: Optional[float] = None

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        return v.upper() if isinstance(v, str) else v


class RiskDecision(CamelModel):
    allowed: bool
    reason: Optional[str] = None
    risk_score: float = 0.0
    warnings: List[str] = Field(default_factory=list)
    recommended_position_size: Optional[float] = None


class CircuitState(str, Enum):
    CLOSED = "CLOSED"  # ✅ Trading allowed
    OPEN = "OPEN"  # ❌ Trading suspended


class CircuitBreakerState(CamelModel):
    state: CircuitState = CircuitState.CLOSED
    opened_at: Optional[datetime] = None
    open_reason: Optional[str] = None
    consecutive_failures: int = 0
    trip_count: int = 0


class AlertLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class RiskAlert(CamelModel):
    id: str
    level: AlertLevel
    type: str
    message: str
    created_at: datetime = Field(default_factory=utcnow)
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
