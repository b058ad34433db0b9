from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from cryptopulse.core.circuit_breaker import TradingCircuitBreaker
from cryptopulse.core.exceptions import CircuitOpenError, ExecutionError
from cryptopulse.risk.models import CircuitState, DailyStats, PortfolioState


@pytest.fixture
def cb(clock):
    return TradingCircuitBreaker(name="TestCB", max_failures=2, clock=clock)


def test_starts_closed(cb):
    assert cb.is_open is False
    assert cb.state.state == CircuitState.CLOSED
    cb.guard()  # no raise


def test_trips_on_drawdown(cb, limits):
    portfolio = PortfolioState(portfolio_value=9_000, current_drawdown=0.10)
    assert cb.evaluate(limits, portfolio, DailyStats()) is True
    assert cb.is_open
    assert "drawdown" in cb.state.open_reason


def test_trips_on_daily_loss(cb, limits, portfolio_state):
    assert cb.evaluate(limits, portfolio_state, DailyStats(cumulative_profit_today=-500.0)) is True
    assert cb.state.state == CircuitState.OPEN


def test_stays_closed_below_thresholds(cb, limits):
    portfolio = PortfolioState(portfolio_value=10_000, current_drawdown=0.09)
    assert cb.evaluate(limits, portfolio, DailyStats(cumulative_profit_today=-499.0)) is False
    assert cb.is_open is False


def test_circuit_opens_on_consecutive_failures(cb):
    """CLOSED -> OPEN after max_failures execution errors."""
    cb.record_execution_failure(ExecutionError("timeout"))
    assert cb.is_open is False

    cb.record_execution_failure(ExecutionError("timeout"))
    assert cb.is_open is True
    with pytest.raises(CircuitOpenError):
        cb.guard()


def test_success_resets_failure_count(cb):
    cb.record_execution_failure()
    cb.record_success()
    cb.record_execution_failure()
    assert cb.is_open is False
    assert cb.state.consecutive_failures == 1


def test_zero_max_failures_disables_failure_trip(clock):
    cb = TradingCircuitBreaker(name="NoFailTrip", max_failures=0, clock=clock)
    for _ in range(10):
        cb.record_execution_failure()
    assert cb.is_open is False


def test_open_is_sticky(cb, clock, limits):
    """No time-based recovery: OPEN survives any elapsed time and healthy snapshots."""
    cb.trip("manual kill switch")
    clock.now = clock.now + timedelta(days=3)

    healthy = PortfolioState(portfolio_value=20_000)
    assert cb.evaluate(limits, healthy, DailyStats()) is False
    cb.record_success()
    assert cb.is_open is True

    cb.reset("manual override")
    assert cb.is_open is False
    assert cb.state.open_reason is None


def test_listeners_notified_once_per_trip(cb, clock):
    listener = MagicMock()
    cb.add_listener(listener)

    cb.trip("first")
    cb.trip("second")  # already open

    listener.assert_called_once()
    state = listener.call_args.args[0]
    assert state.open_reason == "first"
    assert state.opened_at == clock.now
    assert state.trip_count == 1


def test_failing_listener_does_not_block_trip(cb):
    cb.add_listener(MagicMock(side_effect=RuntimeError("telegram down")))
    ok = MagicMock()
    cb.add_listener(ok)

    cb.trip("boom")

    assert cb.is_open
    ok.assert_called_once()


def test_circuit_open_error_message():
    err = CircuitOpenError("drawdown")
    assert err.status_code == 423
    assert "circuit breaker open" in str(err)
