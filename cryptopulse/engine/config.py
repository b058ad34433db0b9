from typing import Optional

from pydantic import ConfigDict, Field

from cryptopulse.core.settings import Settings
from cryptopulse.schemas.common import CamelModel


class BotConfig(CamelModel):
    """Runtime knobs of one trading bot. Replaced wholesale on update."""

    model_config = ConfigDict(frozen=True)

    signal_confidence_threshold: float = Field(75.0, ge=0, le=100)
    history_limit: int = Field(100, gt=0, le=100_000)
    history_max_age_seconds: Optional[float] = Field(None, gt=0)
    dedup_window: int = Field(10_000, gt=0)
    supersede_same_symbol: bool = False
    portfolio_timeout: float = Field(5.0, gt=0)
    lot_size: Optional[float] = Field(None, gt=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "BotConfig":
        return cls(
            signal_confidence_threshold=settings.SIGNAL_CONFIDENCE_THRESHOLD,
            history_limit=settings.SIGNAL_HISTORY_LIMIT,
            history_max_age_seconds=settings.SIGNAL_HISTORY_MAX_AGE_SECONDS,
            dedup_window=settings.SIGNAL_DEDUP_WINDOW,
            supersede_same_symbol=settings.SUPERSEDE_SAME_SYMBOL,
            portfolio_timeout=settings.PORTFOLIO_TIMEOUT,
        )
