from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from cryptopulse.core.circuit_breaker import TradingCircuitBreaker
from cryptopulse.core.settings import Settings
from cryptopulse.engine.bot import TradingBot
from cryptopulse.engine.config import BotConfig
from cryptopulse.execution.executor import TradeExecutor
from cryptopulse.execution.paper import PaperExchangeClient
from cryptopulse.portfolio.provider import InMemoryPortfolioProvider
from cryptopulse.risk.alerts import AlertBook
from cryptopulse.risk.evaluator import RiskEvaluator
from cryptopulse.risk.models import DailyStats, PortfolioState, RiskLimits
from cryptopulse.risk.stats import RESET_MANUAL, DailyStatsTracker
from tests.factories import make_signal


class FrozenClock:
    """Controllable 'now' for stats and breaker tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# 1. Settings without reading a developer's .env
@pytest.fixture
def test_settings():
    return Settings(_env_file=None, ENV="production", PERSIST_RISK_LIMITS=False, TELEGRAM_BOT_TOKEN="")


# 2. Domain snapshots
@pytest.fixture
def limits():
    return RiskLimits(
        max_concurrent_trades=5,
        max_daily_trades=50,
        max_drawdown=0.10,
        max_daily_loss=0.05,
        risk_per_trade=0.02,
        max_position_size=0.5,
    )


@pytest.fixture
def portfolio_state():
    return PortfolioState(portfolio_value=10_000.0)


@pytest.fixture
def daily_stats():
    return DailyStats()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


# 3. Collaborators
@pytest.fixture
def evaluator():
    return RiskEvaluator()


@pytest.fixture
def portfolio():
    return InMemoryPortfolioProvider(initial_value=10_000.0)


@pytest.fixture
def paper_exchange():
    return PaperExchangeClient()


@pytest.fixture
def mock_notifications():
    """NotificationManager stand-in: every helper is a plain MagicMock."""
    mock = MagicMock()
    mock.push = AsyncMock()
    return mock


@pytest.fixture
def make_bot(limits, evaluator, portfolio, paper_exchange, mock_notifications):
    """Factory for a TradingBot wired to in-memory collaborators."""

    def _make(user_id: str = "user-1", exchange=None, config: BotConfig = None, **kwargs) -> TradingBot:
        return TradingBot(
            user_id=user_id,
            limits=kwargs.pop("limits", limits),
            config=config or BotConfig(),
            evaluator=evaluator,
            portfolio=kwargs.pop("portfolio", portfolio),
            executor=TradeExecutor(exchange or paper_exchange, timeout=1.0),
            notifications=mock_notifications,
            stats=kwargs.pop("stats", DailyStatsTracker(mode=RESET_MANUAL)),
            breaker=kwargs.pop("breaker", TradingCircuitBreaker(name=f"bot:{user_id}")),
            alerts=kwargs.pop("alerts", AlertBook()),
            **kwargs,
        )

    return _make


@pytest.fixture
def signal_payload():
    return make_signal
