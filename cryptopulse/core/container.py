import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from cryptopulse.core.circuit_breaker import TradingCircuitBreaker
from cryptopulse.core.settings import Settings
from cryptopulse.db.session import build_engine, build_session_factory
from cryptopulse.engine.bot import TradingBot
from cryptopulse.engine.config import BotConfig
from cryptopulse.engine.manager import BotManager
from cryptopulse.execution.core import ExchangeClient
from cryptopulse.execution.executor import TradeExecutor
from cryptopulse.execution.paper import PaperExchangeClient
from cryptopulse.notifications.manager import NotificationManager
from cryptopulse.notifications.telegram import TelegramClient
from cryptopulse.pipeline.queue import SignalQueue
from cryptopulse.portfolio.provider import InMemoryPortfolioProvider, PortfolioProvider
from cryptopulse.risk.alerts import AlertBook
from cryptopulse.risk.evaluator import RiskEvaluator
from cryptopulse.risk.models import RiskLimits
from cryptopulse.risk.sizer import PositionSizer
from cryptopulse.risk.stats import DailyStatsTracker
from cryptopulse.risk.store import RiskPolicyStore

logger = logging.getLogger("Container")


class AppContainer:
    """
    Explicitly constructed service graph.
    Built once per application from Settings; tests inject their own collaborators.
    """

    def __init__(
        self,
        settings: Settings,
        portfolio: Optional[PortfolioProvider] = None,
        exchange: Optional[ExchangeClient] = None,
        notifications: Optional[NotificationManager] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        self.settings = settings
        self.db_engine: Optional[AsyncEngine] = None

        if session_factory is None and settings.PERSIST_RISK_LIMITS:
            self.db_engine = build_engine(settings)
            session_factory = build_session_factory(self.db_engine)
        self.session_factory = session_factory

        self.store = RiskPolicyStore(settings.risk_profile, session_factory=session_factory)
        self.evaluator = RiskEvaluator(
            sizer=PositionSizer(
                default_stop_loss_pct=settings.DEFAULT_STOP_LOSS_PCT,
                max_position_pct=settings.risk_profile["max_position_size"],
            ),
            warning_ratio=settings.RISK_WARNING_RATIO,
        )
        self.portfolio = portfolio or InMemoryPortfolioProvider(initial_value=settings.DEFAULT_PORTFOLIO_VALUE)
        self.exchange = exchange or PaperExchangeClient()
        self.executor = TradeExecutor(self.exchange, timeout=settings.EXECUTION_TIMEOUT)
        self.notifications = notifications or NotificationManager(
            TelegramClient(settings.TELEGRAM_BOT_TOKEN, settings.TELEGRAM_CHAT_ID)
        )
        self.bots = BotManager(self.store, self.create_bot)

    def create_bot(self, user_id: str, limits: RiskLimits) -> TradingBot:
        s = self.settings
        return TradingBot(
            user_id=user_id,
            limits=limits,
            config=BotConfig.from_settings(s),
            evaluator=self.evaluator,
            portfolio=self.portfolio,
            executor=self.executor,
            notifications=self.notifications,
            stats=DailyStatsTracker(mode=s.DAILY_RESET_MODE, tz=s.DAILY_RESET_TZ),
            breaker=TradingCircuitBreaker(name=f"bot:{user_id}", max_failures=s.CIRCUIT_BREAKER_MAX_FAILURES),
            alerts=AlertBook(max_alerts=s.ALERT_HISTORY_LIMIT),
            queue=SignalQueue(maxsize=s.SIGNAL_QUEUE_MAXSIZE, put_timeout=s.SIGNAL_QUEUE_PUT_TIMEOUT),
            result_timeout=s.SIGNAL_RESULT_TIMEOUT,
        )

    async def close(self) -> None:
        await self.bots.stop_all()
        if self.db_engine is not None:
            await self.db_engine.dispose()
            logger.info("✅ Database connections closed")


def get_container(request: Request) -> AppContainer:
    return request.app.state.container
