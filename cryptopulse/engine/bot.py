import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from cryptopulse.core.circuit_breaker import TradingCircuitBreaker
from cryptopulse.core.constants import RISK_LEVEL_BANDS
from cryptopulse.core.exceptions import (
    BotNotRunningError,
    DependencyUnavailableError,
    ResourceNotFoundError,
    ValidationError,
)
from cryptopulse.engine.config import BotConfig
from cryptopulse.execution.executor import TradeExecutor
from cryptopulse.notifications.manager import NotificationManager
from cryptopulse.pipeline.models import SignalOutcome
from cryptopulse.pipeline.queue import SignalQueue
from cryptopulse.pipeline.signal_pipeline import RawSignal, SignalPipeline
from cryptopulse.portfolio.provider import PortfolioProvider
from cryptopulse.risk.alerts import AlertBook
from cryptopulse.risk.evaluator import RiskEvaluator
from cryptopulse.risk.models import AlertLevel, CircuitBreakerState, RiskLimits
from cryptopulse.risk.stats import DailyStatsTracker
from cryptopulse.risk.validation import format_pydantic_errors

logger = logging.getLogger("TradingBot")


class TradingBot:
    """
    One user's trading runtime.

    Owns the mutable per-user state (limits, daily stats, breaker, alerts) and the
    single signal worker. Everything shared across users (evaluator, executor,
    portfolio provider, notifications) is injected.
    """

    def __init__(
        self,
        user_id: str,
        limits: RiskLimits,
        config: BotConfig,
        evaluator: RiskEvaluator,
        portfolio: PortfolioProvider,
        executor: TradeExecutor,
        notifications: Optional[NotificationManager] = None,
        stats: Optional[DailyStatsTracker] = None,
        breaker: Optional[TradingCircuitBreaker] = None,
        alerts: Optional[AlertBook] = None,
        queue: Optional[SignalQueue] = None,
        result_timeout: float = 30.0,
    ):
        self.user_id = user_id
        self.portfolio = portfolio
        self.notifications = notifications
        self.result_timeout = result_timeout

        self.stats = stats if stats is not None else DailyStatsTracker()
        self.breaker = breaker if breaker is not None else TradingCircuitBreaker(name=f"bot:{user_id}")
        self.alerts = alerts if alerts is not None else AlertBook()
        self.breaker.add_listener(self._on_circuit_open)

        self.pipeline = SignalPipeline(
            user_id=user_id,
            limits=limits,
            config=config,
            evaluator=evaluator,
            breaker=self.breaker,
            stats=self.stats,
            portfolio=portfolio,
            executor=executor,
            alerts=self.alerts,
            notifications=notifications,
            queue=queue,
        )

        # Lifetime performance (survives daily resets)
        self.winning_trades = 0
        self.losing_trades = 0
        self.total_profit = 0.0

    # --- Read-only views ---

    @property
    def limits(self) -> RiskLimits:
        return self.pipeline.limits

    @property
    def config(self) -> BotConfig:
        return self.pipeline.config

    @property
    def is_running(self) -> bool:
        return self.pipeline.is_running

    # --- Lifecycle ---

    async def start(self) -> None:
        if self.is_running:
            logger.info(f"ℹ️ [{self.user_id}] Bot already running")
            return
        self.pipeline.start()
        logger.info(f"🚀 [{self.user_id}] Trading bot started")

    async def stop(self) -> None:
        await self.pipeline.stop()
        logger.info(f"🛑 [{self.user_id}] Trading bot stopped")

    # --- Signals ---

    async def submit(self, signal: RawSignal) -> "asyncio.Future[SignalOutcome]":
        if not self.is_running:
            raise BotNotRunningError(f"Trading bot for {self.user_id} is not running")
        return await self.pipeline.submit(signal)

    async def submit_and_wait(self, signal: RawSignal, timeout: Optional[float] = None) -> SignalOutcome:
        future = await self.submit(signal)
        timeout = timeout or self.result_timeout
        try:
            # shield: a slow caller must not cancel the signal itself
            return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise DependencyUnavailableError(f"signal result not available within {timeout}s") from e

    def cancel_signal(self, signal_id: str) -> None:
        if not self.pipeline.cancel(signal_id):
            raise ResourceNotFoundError(f"No queued signal '{signal_id}'")

    # --- Policy & Config ---

    def update_limits(self, limits: RiskLimits) -> RiskLimits:
        self.pipeline.limits = limits
        logger.info(f"🛡️ [{self.user_id}] Risk limits updated")
        return limits

    def get_config(self) -> BotConfig:
        return self.pipeline.config

    def update_config(self, patch: Mapping[str, Any]) -> BotConfig:
        """Merges ``patch`` (snake_case or camelCase keys) into the current config."""
        merged = {**self.pipeline.config.model_dump(), **dict(patch)}
        try:
            config = BotConfig.model_validate(merged)
        except PydanticValidationError as e:
            errors = format_pydantic_errors(e)
            raise ValidationError(errors[0], errors) from e

        self.pipeline.config = config
        self.pipeline.cleanup_old_signals()
        logger.info(f"⚙️ [{self.user_id}] Bot config updated: {sorted(patch)}")
        return config

    # --- Settlement ---

    async def close_trade(self, order_id: str, exit_price: float) -> float:
        """Settles an open position: realized PnL flows into daily stats and the breaker."""
        if exit_price <= 0:
            raise ValidationError("exit price must be greater than 0")

        self.pipeline.roll_day()

        pnl = await self.portfolio.record_close(self.user_id, order_id, exit_price)
        self.stats.record_settlement(pnl)

        self.total_profit += pnl
        if pnl > 0:
            self.winning_trades += 1
        elif pnl < 0:
            self.losing_trades += 1

        portfolio = await self.pipeline.portfolio_state()
        self.breaker.evaluate(self.limits, portfolio, self.stats.snapshot())
        return pnl

    # --- Resets ---

    def reset_daily_stats(self) -> None:
        self.stats.reset()
        self.breaker.reset("daily reset")
        self.alerts.add(AlertLevel.INFO, "DAILY_RESET", "Daily risk metrics reset")

    def reset_circuit_breaker(self) -> CircuitBreakerState:
        self.breaker.reset("manual override")
        self.alerts.add(AlertLevel.INFO, "CIRCUIT_RESET", "Circuit breaker manually reset")
        return self.breaker.state

    # --- Queries ---

    def is_daily_limit_exceeded(self) -> bool:
        self.pipeline.roll_day()
        return self.stats.stats.trades_today >= self.limits.max_daily_trades

    def can_execute_trade(self) -> bool:
        return not self.breaker.is_open and not self.is_daily_limit_exceeded()

    def get_performance_metrics(self) -> Dict[str, Any]:
        closed = self.winning_trades + self.losing_trades
        return {
            "totalTrades": self.pipeline.executed_count,
            "closedTrades": closed,
            "winningTrades": self.winning_trades,
            "losingTrades": self.losing_trades,
            "winRate": round(self.winning_trades / closed * 100, 2) if closed else 0.0,
            "totalProfit": round(self.total_profit, 8),
            "avgProfitPerTrade": round(self.total_profit / closed, 8) if closed else 0.0,
        }

    async def get_risk_summary(self) -> Dict[str, Any]:
        limits = self.limits
        stats = self.stats.snapshot()
        portfolio = await self.pipeline.portfolio_state()

        value = portfolio.portfolio_value
        daily_loss = max(0.0, -(stats.cumulative_profit_today + portfolio.unrealized_pnl))
        daily_loss_pct = daily_loss / value if value > 0 else 0.0

        return {
            "userId": self.user_id,
            "limits": limits.to_wire(),
            "portfolio": portfolio.to_wire(),
            "usage": {
                "concurrentTrades": portfolio.active_trade_count,
                "dailyTrades": stats.trades_today,
                "currentDrawdown": portfolio.current_drawdown,
                "dailyLoss": daily_loss,
                "dailyLossPct": daily_loss_pct,
                "totalExposure": portfolio.total_exposure,
            },
            "riskLevel": risk_level(portfolio.current_drawdown, daily_loss_pct),
            "circuitBreakerStatus": self.breaker.state.to_wire(),
            "canTrade": self.can_execute_trade(),
            "dailyStats": stats.to_wire(),
            "recentAlerts": [a.to_wire() for a in self.alerts.list(limit=10)],
            "unacknowledgedAlerts": self.alerts.unacknowledged_count,
        }

    def get_status(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "running": self.is_running,
            "circuitBreaker": self.breaker.state.state.value,
            "queue": self.pipeline.queue.get_stats(),
            "dailyStats": self.stats.snapshot().to_wire(),
            "historySize": len(self.pipeline.history),
            "config": self.config.to_wire(),
        }

    # --- Breaker hook ---

    def _on_circuit_open(self, state: CircuitBreakerState) -> None:
        self.alerts.add(AlertLevel.CRITICAL, "CIRCUIT_OPEN", f"Trading suspended: {state.open_reason}")
        if self.notifications is not None:
            self.notifications.notify_circuit_open(self.user_id, state.open_reason or "unknown")


def risk_level(drawdown: float, daily_loss_pct: float) -> str:
    for level, dd_threshold, loss_threshold in RISK_LEVEL_BANDS:
        if drawdown >= dd_threshold or daily_loss_pct >= loss_threshold:
            return level
    return "LOW"
