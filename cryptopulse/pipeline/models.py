from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from cryptopulse.risk.models import RiskDecision, utcnow
from cryptopulse.schemas.common import CamelModel
from cryptopulse.schemas.execution import ExecutionResult


class SignalStatus(str, Enum):
    EXECUTED = "EXECUTED"
    FILTERED = "FILTERED"  # below confidence threshold
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    RISK_REJECTED = "RISK_REJECTED"
    INVALID = "INVALID"
    DUPLICATE = "DUPLICATE"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"  # executor or dependency failure


class SignalOutcome(CamelModel):
    signal_id: Optional[str] = None
    symbol: Optional[str] = None
    status: SignalStatus
    decision: Optional[RiskDecision] = None
    position_size: Optional[float] = None
    order: Optional[ExecutionResult] = None
    error: Optional[str] = None
    processed_at: datetime = Field(default_factory=utcnow)

    @property
    def executed(self) -> bool:
        return self.status == SignalStatus.EXECUTED
