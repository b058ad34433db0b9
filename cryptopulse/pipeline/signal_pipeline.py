import asyncio
import logging
from collections import OrderedDict
from datetime import timedelta
from typing import Any, List, Mapping, Optional, Union

from cryptopulse.core.circuit_breaker import TradingCircuitBreaker
from cryptopulse.core.constants import CIRCUIT_OPEN_REASON
from cryptopulse.core.exceptions import (
    CircuitOpenError,
    CryptoPulseError,
    DependencyUnavailableError,
    DuplicateSignalError,
    ExecutionError,
    PositionSizingError,
    SignalQueueFullError,
    ValidationError,
)
from cryptopulse.engine.config import BotConfig
from cryptopulse.execution.executor import TradeExecutor
from cryptopulse.notifications.manager import NotificationManager
from cryptopulse.pipeline.models import SignalOutcome, SignalStatus
from cryptopulse.pipeline.queue import QueuedSignal, SignalQueue
from cryptopulse.portfolio.provider import PortfolioProvider
from cryptopulse.risk.alerts import AlertBook
from cryptopulse.risk.evaluator import RiskEvaluator
from cryptopulse.risk.models import (
    AlertLevel,
    PortfolioState,
    RiskDecision,
    RiskLimits,
    Signal,
    TradeProposal,
    utcnow,
)
from cryptopulse.risk.stats import DailyStatsTracker
from cryptopulse.risk.validation import parse_signal
from cryptopulse.schemas.execution import OrderRequest

logger = logging.getLogger("SignalPipeline")

RawSignal = Union[Signal, Mapping[str, Any]]


class SignalPipeline:
    """
    Turns strategy signals into executed trades for one user.

    Flow per signal:
    1. Parse + dedupe (caller errors raise ValidationError)
    2. Confidence filter
    3. Daily roll, circuit breaker gate
    4. Portfolio snapshot -> sizing -> risk limits
    5. Trade Executor, then feedback into stats / portfolio / breaker

    ``limits`` and ``config`` are immutable and swapped by reference; each pass
    reads them once so a concurrent update never mixes two versions.
    """

    def __init__(
        self,
        user_id: str,
        limits: RiskLimits,
        config: BotConfig,
        evaluator: RiskEvaluator,
        breaker: TradingCircuitBreaker,
        stats: DailyStatsTracker,
        portfolio: PortfolioProvider,
        executor: TradeExecutor,
        alerts: AlertBook,
        notifications: Optional[NotificationManager] = None,
        queue: Optional[SignalQueue] = None,
    ):
        self.user_id = user_id
        self.limits = limits
        self.config = config
        self.evaluator = evaluator
        self.breaker = breaker
        self.stats = stats
        self.portfolio = portfolio
        self.executor = executor
        self.alerts = alerts
        self.notifications = notifications
        # SignalQueue defines __len__, an empty one is falsy
        self.queue = queue if queue is not None else SignalQueue()

        self.history: List[SignalOutcome] = []
        self.executed_count = 0
        self._seen_ids: "OrderedDict[str, None]" = OrderedDict()

        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # --- Entry Points ---

    async def process_signal(self, raw: RawSignal) -> SignalOutcome:
        """Runs one signal through the whole pipeline, bypassing the queue."""
        signal = self._accept(raw)
        return await self._handle(signal)

    async def submit(self, raw: RawSignal) -> "asyncio.Future[SignalOutcome]":
        """
        Validates and enqueues a signal for the worker.
        Returns a future resolved with the SignalOutcome (or the pipeline error).
        """
        signal = self._accept(raw)

        if self.config.supersede_same_symbol:
            for stale in self.queue.pending_for_symbol(signal.symbol):
                self._cancel_entry(stale, f"superseded by {signal.id}")

        try:
            entry = await self.queue.put(signal)
        except SignalQueueFullError:
            # Rejected signals may be resubmitted under the same id
            self._seen_ids.pop(signal.id, None)
            raise
        logger.debug(f"📥 [{self.user_id}] Queued {signal.id} {signal.symbol} ({len(self.queue)} pending)")
        return entry.future

    def cancel(self, signal_id: str) -> bool:
        """Cancels a queued signal. False once the worker has taken it."""
        entry = self.queue.cancel(signal_id)
        if entry is None:
            return False
        self._resolve_cancelled(entry, "cancelled by user")
        return True

    # --- Worker ---

    def start(self) -> None:
        if self.is_running:
            return
        self._stopping = False
        self._task = asyncio.create_task(self.run(), name=f"signal-worker-{self.user_id}")

    async def stop(self) -> None:
        """
        Lets the in-flight signal finish, then cancels whatever is still queued.
        A pass is bounded by the executor and portfolio timeouts, so the wait is too.
        """
        self._stopping = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            if not self._idle.is_set():
                logger.info(f"⏳ [{self.user_id}] Waiting for in-flight signal before stopping")
            await self._idle.wait()
            # Worker is parked on queue.get() here
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        for entry in self.queue.pending():
            self.queue.cancel(entry.signal.id)
            self._resolve_cancelled(entry, "bot stopped")

    async def run(self) -> None:
        logger.info(f"🏁 [{self.user_id}] Signal worker started")
        try:
            while not self._stopping:
                entry = await self.queue.get()
                if self._stopping:
                    self._resolve_cancelled(entry, "bot stopped")
                    break
                self._idle.clear()
                try:
                    await self._run_entry(entry)
                finally:
                    self._idle.set()
        except asyncio.CancelledError:
            logger.info(f"🛑 [{self.user_id}] Signal worker stopped")
            raise

    async def _run_entry(self, entry: QueuedSignal) -> None:
        try:
            outcome = await self._handle(entry.signal)
        except asyncio.CancelledError:
            msg = f"signal worker cancelled before {entry.signal.id} completed"
            logger.error(f"🛑 [{self.user_id}] {msg}", extra={"user_id": self.user_id, "signal_id": entry.signal.id})
            self._record(self._outcome(entry.signal, SignalStatus.FAILED, error=msg))
            if not entry.future.done():
                entry.future.set_exception(DependencyUnavailableError(msg))
            raise
        except CryptoPulseError as e:
            if not entry.future.done():
                entry.future.set_exception(e)
        except Exception as e:
            logger.error(
                f"🔥 [{self.user_id}] Unexpected error on {entry.signal.id}: {e}",
                exc_info=True,
                extra={"user_id": self.user_id, "signal_id": entry.signal.id},
            )
            if not entry.future.done():
                entry.future.set_exception(e)
        else:
            if not entry.future.done():
                entry.future.set_result(outcome)

    # --- Pipeline Stages ---

    def _accept(self, raw: RawSignal) -> Signal:
        try:
            signal = parse_signal(raw)
        except ValidationError as e:
            self._record(SignalOutcome(signal_id=_raw_field(raw, "id"), symbol=_raw_field(raw, "symbol"),
                                       status=SignalStatus.INVALID, error=str(e)))
            raise

        if signal.id in self._seen_ids:
            self._record(SignalOutcome(signal_id=signal.id, symbol=signal.symbol,
                                       status=SignalStatus.DUPLICATE, error="duplicate signal id"))
            raise DuplicateSignalError(signal.id)

        self._seen_ids[signal.id] = None
        while len(self._seen_ids) > self.config.dedup_window:
            self._seen_ids.popitem(last=False)
        return signal

    async def _handle(self, signal: Signal) -> SignalOutcome:
        # One consistent view for the whole pass
        config, limits = self.config, self.limits

        # 1. Confidence filter (evaluator is never consulted)
        if signal.confidence < config.signal_confidence_threshold:
            logger.debug(
                f"🔇 [{self.user_id}] {signal.id} filtered: confidence {signal.confidence} "
                f"< {config.signal_confidence_threshold}"
            )
            return self._record(self._outcome(
                signal, SignalStatus.FILTERED,
                error=f"confidence {signal.confidence} below threshold {config.signal_confidence_threshold}",
            ))

        # 2. Daily boundary, then the global gate
        self.roll_day()
        if self.breaker.is_open:
            return self._record(self._circuit_open(signal))

        # 3. Snapshot + loss thresholds
        portfolio = await self._portfolio_snapshot(signal, config)
        if self.breaker.evaluate(limits, portfolio, self.stats.snapshot()):
            return self._record(self._circuit_open(signal))

        # 4. Sizing
        try:
            size = signal.amount or self.evaluator.calculate_position_size(
                signal,
                limits.risk_per_trade,
                portfolio.portfolio_value,
                max_position_pct=limits.max_position_size,
                lot_size=config.lot_size,
            )
        except PositionSizingError as e:
            self._record(self._outcome(signal, SignalStatus.INVALID, error=str(e)))
            raise

        if size <= 0:
            decision = RiskDecision(allowed=False, reason="Position size rounds to zero", risk_score=0.0)
            return self._reject(signal, decision, size)

        # 5. Limits
        proposal = TradeProposal(
            symbol=signal.symbol, side=signal.action, amount=size, price=signal.price, stop_loss=signal.stop_loss
        )
        decision = self.evaluator.check_risk_limits(proposal, limits, portfolio, self.stats.snapshot())
        if not decision.allowed:
            return self._reject(signal, decision, size)
        for warning in decision.warnings:
            logger.warning(f"⚠️ [{self.user_id}] {signal.symbol}: {warning}")

        # 6. Execution
        return await self._execute(signal, decision, size, limits, config)

    def roll_day(self) -> bool:
        """Starts a new trading day when the window elapsed. A new day also closes the breaker."""
        if self.stats.roll_if_due():
            self.breaker.reset("new trading day")
            return True
        return False

    async def portfolio_state(self, config: Optional[BotConfig] = None) -> PortfolioState:
        """Portfolio snapshot bounded by ``portfolio_timeout``. Raises DependencyUnavailableError."""
        timeout = (config or self.config).portfolio_timeout
        try:
            return await asyncio.wait_for(self.portfolio.get_portfolio_state(self.user_id), timeout=timeout)
        except asyncio.TimeoutError as e:
            msg = f"portfolio snapshot timed out after {timeout}s"
            logger.error(f"⏱️ [{self.user_id}] {msg}", extra={"user_id": self.user_id})
            raise DependencyUnavailableError(msg) from e

    async def _portfolio_snapshot(self, signal: Signal, config: BotConfig) -> PortfolioState:
        try:
            return await self.portfolio_state(config)
        except DependencyUnavailableError as e:
            self._record(self._outcome(signal, SignalStatus.FAILED, error=str(e)))
            raise

    async def _execute(
        self, signal: Signal, decision: RiskDecision, size: float, limits: RiskLimits, config: BotConfig
    ) -> SignalOutcome:
        order = OrderRequest(
            client_order_id=f"{self.user_id}-{signal.id}",
            user_id=self.user_id,
            signal_id=signal.id,
            strategy_id=signal.strategy_id,
            symbol=signal.symbol,
            side=signal.action,
            quantity=size,
            price=signal.price,
            stop_loss=signal.stop_loss,
            take_profit=signal.take_profit,
        )

        # A settlement may trip the breaker while the snapshot is awaited
        try:
            self.breaker.guard()
        except CircuitOpenError:
            return self._record(self._circuit_open(signal))

        try:
            result = await self.executor.execute(order)
        except ExecutionError as e:
            # Failed trades never count towards DailyStats
            self.breaker.record_execution_failure(e)
            self._record(self._outcome(signal, SignalStatus.FAILED, decision=decision, position_size=size, error=str(e)))
            raise

        self.stats.record_execution()
        self.executed_count += 1
        self.breaker.record_success()

        try:
            await self.portfolio.record_fill(self.user_id, order, result)
            portfolio = await self.portfolio_state(config)
            self.breaker.evaluate(limits, portfolio, self.stats.snapshot())
        except Exception as e:
            logger.error(
                f"❌ [{self.user_id}] Post-trade portfolio update failed for {result.order_id}: {e}",
                extra={"user_id": self.user_id, "order_id": result.order_id},
            )

        if self.notifications is not None:
            self.notifications.notify_trade(self.user_id, signal.symbol, signal.action.value, size, signal.price)

        return self._record(
            self._outcome(signal, SignalStatus.EXECUTED, decision=decision, position_size=size, order=result)
        )

    def _reject(self, signal: Signal, decision: RiskDecision, size: float) -> SignalOutcome:
        self.alerts.add(AlertLevel.WARNING, "RISK_REJECTED", f"{signal.symbol} {signal.action.value}: {decision.reason}")
        if self.notifications is not None:
            self.notifications.notify_risk_rejection(self.user_id, signal.symbol, decision.reason)
        return self._record(
            self._outcome(signal, SignalStatus.RISK_REJECTED, decision=decision, position_size=size, error=decision.reason)
        )

    def _circuit_open(self, signal: Signal) -> SignalOutcome:
        decision = RiskDecision(allowed=False, reason=CIRCUIT_OPEN_REASON, risk_score=100.0)
        logger.info(f"🚫 [{self.user_id}] {signal.id} rejected: {CIRCUIT_OPEN_REASON}")
        return self._outcome(signal, SignalStatus.CIRCUIT_OPEN, decision=decision, error=CIRCUIT_OPEN_REASON)

    # --- History ---

    @staticmethod
    def _outcome(signal: Signal, status: SignalStatus, **kwargs) -> SignalOutcome:
        return SignalOutcome(signal_id=signal.id, symbol=signal.symbol, status=status, **kwargs)

    def _record(self, outcome: SignalOutcome) -> SignalOutcome:
        self.history.append(outcome)
        self.cleanup_old_signals()
        return outcome

    def _cancel_entry(self, entry: QueuedSignal, reason: str) -> None:
        if self.queue.cancel(entry.signal.id) is not None:
            self._resolve_cancelled(entry, reason)

    def _resolve_cancelled(self, entry: QueuedSignal, reason: str) -> None:
        outcome = self._record(self._outcome(entry.signal, SignalStatus.CANCELLED, error=reason))
        if not entry.future.done():
            entry.future.set_result(outcome)
        logger.info(f"🗑️ [{self.user_id}] {entry.signal.id} cancelled: {reason}")

    def cleanup_old_signals(self, now=None) -> int:
        """Keeps at most ``history_limit`` entries, optionally dropping expired ones. Returns removed count."""
        config = self.config
        before = len(self.history)

        if config.history_max_age_seconds is not None:
            cutoff = (now or utcnow()) - timedelta(seconds=config.history_max_age_seconds)
            self.history = [o for o in self.history if o.processed_at >= cutoff]

        overflow = len(self.history) - config.history_limit
        if overflow > 0:
            del self.history[:overflow]

        return before - len(self.history)

    def get_history(self, limit: Optional[int] = None, status: Optional[SignalStatus] = None) -> List[SignalOutcome]:
        """Most recent first."""
        outcomes = [o for o in reversed(self.history) if status is None or o.status == status]
        return outcomes if limit is None else outcomes[:limit]


def _raw_field(raw: RawSignal, name: str) -> Optional[str]:
    if isinstance(raw, Mapping):
        value = raw.get(name)
        return str(value) if value is not None else None
    return getattr(raw, name, None)
