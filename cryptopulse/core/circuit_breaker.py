import logging
from datetime import datetime
from typing import Callable, List, Optional

from cryptopulse.core.exceptions import CircuitOpenError
from cryptopulse.risk.models import (
    CircuitBreakerState,
    CircuitState,
    DailyStats,
    PortfolioState,
    RiskLimits,
    utcnow,
)

logger = logging.getLogger("CircuitBreaker")

TripListener = Callable[[CircuitBreakerState], None]


class TradingCircuitBreaker:
    """
    Global trading gate for one bot.

    Features:
    - Trips on drawdown / daily loss breaches or on repeated execution failures.
    - Sticky: once OPEN it stays OPEN until reset() is called explicitly
      (new trading day or manual override). No time-based recovery.
    - Notifies listeners on every CLOSED -> OPEN transition.
    """

    def __init__(
        self,
        name: str,
        max_failures: int = 3,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.name = name
        self.max_failures = max_failures
        self._clock = clock or utcnow

        # State
        self._state = CircuitState.CLOSED
        self._opened_at: Optional[datetime] = None
        self._open_reason: Optional[str] = None
        self._failure_count = 0
        self._trip_count = 0

        self._listeners: List[TripListener] = []

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def state(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            state=self._state,
            opened_at=self._opened_at,
            open_reason=self._open_reason,
            consecutive_failures=self._failure_count,
            trip_count=self._trip_count,
        )

    def add_listener(self, listener: TripListener) -> None:
        self._listeners.append(listener)

    def guard(self) -> None:
        """Raises CircuitOpenError while trading is suspended."""
        if self.is_open:
            raise CircuitOpenError(self._open_reason)

    def evaluate(self, limits: RiskLimits, portfolio: PortfolioState, stats: DailyStats) -> bool:
        """
        Checks loss thresholds against a snapshot. Returns True if this call opened the circuit.
        """
        if self.is_open:
            return False

        if portfolio.current_drawdown >= limits.max_drawdown:
            self.trip(
                f"Maximum drawdown reached ({portfolio.current_drawdown * 100:.1f}% "
                f">= {limits.max_drawdown * 100:.1f}%)"
            )
            return True

        if portfolio.portfolio_value > 0:
            loss_floor = -limits.max_daily_loss * portfolio.portfolio_value
            if stats.cumulative_profit_today <= loss_floor:
                self.trip(
                    f"Daily loss limit breached ({stats.cumulative_profit_today:.2f} <= {loss_floor:.2f})"
                )
                return True

        return False

    def trip(self, reason: str) -> None:
        if self.is_open:
            return

        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._open_reason = reason
        self._trip_count += 1
        logger.critical(f"💔 [{self.name}] Circuit OPENED. Trading suspended: {reason}")

        snapshot = self.state
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"❌ [{self.name}] Trip listener failed: {e}", exc_info=True)

    def record_execution_failure(self, error: Optional[Exception] = None) -> None:
        self._failure_count += 1
        logger.warning(f"⚠️ [{self.name}] Execution failure {self._failure_count}: {error}")

        if self.max_failures and self._failure_count >= self.max_failures:
            self.trip(f"{self._failure_count} consecutive execution failures")

    def record_success(self) -> None:
        self._failure_count = 0

    def reset(self, reason: str = "manual") -> None:
        was_open = self.is_open
        self._state = CircuitState.CLOSED
        self._opened_at = None
        self._open_reason = None
        self._failure_count = 0
        if was_open:
            logger.info(f"🟢 [{self.name}] Circuit CLOSED ({reason}).")
