from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from cryptopulse.risk.models import RiskLimits, Signal, TradeProposal, TradeSide
from cryptopulse.schemas.common import CamelModel


class PositionSizeRequest(CamelModel):
    symbol: str = Field(..., min_length=1)
    risk_amount: float = Field(..., gt=0, description="Money at risk if the stop is hit")
    entry_price: float = Field(..., gt=0)
    stop_loss_price: float = Field(..., gt=0)
    leverage: Optional[float] = Field(None, ge=1.0, le=100.0)


class CheckLimitsRequest(CamelModel):
    symbol: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    price: float = Field(..., gt=0)
    side: TradeSide
    stop_loss: Optional[float] = Field(None, gt=0)

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        return v.upper() if isinstance(v, str) else v

    def to_proposal(self) -> TradeProposal:
        return TradeProposal(
            symbol=self.symbol, side=self.side, amount=self.amount, price=self.price, stop_loss=self.stop_loss
        )


class SetLimitsRequest(CamelModel):
    """Partial update: omitted fields keep their current value."""

    max_concurrent_trades: Optional[int] = Field(None, gt=0)
    max_daily_trades: Optional[int] = Field(None, gt=0)
    max_drawdown: Optional[float] = Field(None, gt=0.0, le=1.0)
    max_daily_loss: Optional[float] = Field(None, gt=0.0, le=1.0)
    risk_per_trade: Optional[float] = Field(None, gt=0.0, le=1.0)
    max_position_size: Optional[float] = Field(None, gt=0.0, le=1.0)
    leverage: Optional[float] = Field(None, ge=1.0, le=100.0)

    def apply(self, current: RiskLimits) -> RiskLimits:
        return RiskLimits.model_validate({**current.model_dump(), **self.model_dump(exclude_none=True)})


class SignalRequest(CamelModel):
    id: str = Field(..., min_length=1)
    symbol: str = Field(..., min_length=1)
    action: TradeSide
    confidence: float = Field(..., ge=0, le=100)
    price: float = Field(..., gt=0)
    strategy_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    stop_loss: Optional[float] = Field(None, gt=0)
    take_profit: Optional[float] = Field(None, gt=0)
    amount: Optional[float] = Field(None, gt=0)

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        return v.upper() if isinstance(v, str) else v

    def to_signal(self) -> Signal:
        return Signal.model_validate(self.model_dump(exclude_none=True))


class ConfigUpdateRequest(CamelModel):
    signal_confidence_threshold: Optional[float] = None
    history_limit: Optional[int] = None
    history_max_age_seconds: Optional[float] = None
    dedup_window: Optional[int] = None
    supersede_same_symbol: Optional[bool] = None
    portfolio_timeout: Optional[float] = None
    lot_size: Optional[float] = None


class CloseTradeRequest(CamelModel):
    exit_price: float = Field(..., gt=0)
