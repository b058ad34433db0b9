import logging
from datetime import datetime, time, timedelta
from typing import Callable, Optional

import pytz

from cryptopulse.risk.models import DailyStats, utcnow

logger = logging.getLogger("DailyStats")

RESET_CALENDAR_DAY = "calendar_day"
RESET_ROLLING_24H = "rolling_24h"
RESET_MANUAL = "manual"

ROLLING_WINDOW = timedelta(hours=24)


class DailyStatsTracker:
    """
    Owns a bot's DailyStats and decides when the trading day rolls over.

    Modes:
    - calendar_day: window starts at local midnight in ``tz``; rolls when the date changes.
    - rolling_24h:  window starts at the last reset; rolls 24h later.
    - manual:       only an explicit reset() starts a new window.
    """

    def __init__(
        self,
        mode: str = RESET_CALENDAR_DAY,
        tz: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if mode not in (RESET_CALENDAR_DAY, RESET_ROLLING_24H, RESET_MANUAL):
            raise ValueError(f"Unknown daily reset mode: {mode}")
        self.mode = mode
        self.tz = pytz.timezone(tz)
        self._clock = clock or utcnow
        self.stats = DailyStats(window_start=self._window_start_for(self._clock()))

    def _window_start_for(self, now: datetime) -> datetime:
        if self.mode == RESET_CALENDAR_DAY:
            local_date = now.astimezone(self.tz).date()
            return self.tz.localize(datetime.combine(local_date, time()))
        return now

    def snapshot(self) -> DailyStats:
        return self.stats.model_copy()

    def is_window_elapsed(self, now: Optional[datetime] = None) -> bool:
        now = now or self._clock()
        start = self.stats.window_start
        if self.mode == RESET_CALENDAR_DAY:
            return now.astimezone(self.tz).date() > start.astimezone(self.tz).date()
        if self.mode == RESET_ROLLING_24H:
            return now - start >= ROLLING_WINDOW
        return False

    def roll_if_due(self, now: Optional[datetime] = None) -> bool:
        """Resets the window when the boundary has passed. Returns True on reset."""
        now = now or self._clock()
        if self.is_window_elapsed(now):
            self.reset(now)
            return True
        return False

    def reset(self, now: Optional[datetime] = None) -> None:
        now = now or self._clock()
        previous = self.stats
        self.stats = DailyStats(window_start=self._window_start_for(now))
        logger.info(
            f"♻️ Daily stats reset (trades={previous.trades_today}, "
            f"pnl={previous.cumulative_profit_today:.2f}, mode={self.mode})"
        )

    def record_execution(self) -> None:
        self.stats.trades_today += 1

    def record_settlement(self, pnl: float) -> None:
        self.stats.cumulative_profit_today += pnl
        if pnl > 0:
            self.stats.wins_today += 1
        elif pnl < 0:
            self.stats.losses_today += 1
