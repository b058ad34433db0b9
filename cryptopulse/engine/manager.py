import asyncio
import logging
from typing import Callable, Dict, List, Optional

from cryptopulse.engine.bot import TradingBot
from cryptopulse.risk.models import RiskLimits
from cryptopulse.risk.store import RiskPolicyStore

logger = logging.getLogger("BotManager")

BotFactory = Callable[[str, RiskLimits], TradingBot]


class BotManager:
    """
    The Orchestrator.
    - One TradingBot per user, created lazily.
    - Restores bots for users with persisted limits.
    - Stops every worker on shutdown.
    """

    def __init__(self, store: RiskPolicyStore, factory: BotFactory):
        self.store = store
        self.factory = factory
        self.bots: Dict[str, TradingBot] = {}
        self._lock = asyncio.Lock()

    def get(self, user_id: str) -> Optional[TradingBot]:
        return self.bots.get(user_id)

    async def get_or_create(self, user_id: str) -> TradingBot:
        bot = self.bots.get(user_id)
        if bot is not None:
            return bot

        async with self._lock:
            # Another request may have created it while we waited
            bot = self.bots.get(user_id)
            if bot is None:
                limits = await self.store.ensure(user_id)
                bot = self.factory(user_id, limits)
                self.bots[user_id] = bot
                logger.info(f"🧩 Registered bot for {user_id}")
        return bot

    async def restore(self) -> List[str]:
        """♻️ Crash recovery: rebuilds idle bots from the stored limits."""
        user_ids = await self.store.load_all()
        for user_id in user_ids:
            await self.get_or_create(user_id)
        if user_ids:
            logger.info(f"✅ Restored {len(user_ids)} bots (stopped). Use POST /api/bot/start to launch.")
        return user_ids

    async def stop_all(self) -> None:
        running = [bot for bot in self.bots.values() if bot.is_running]
        if not running:
            return
        logger.info(f"🛑 Stopping {len(running)} running bots...")
        results = await asyncio.gather(*(bot.stop() for bot in running), return_exceptions=True)
        for bot, result in zip(running, results):
            if isinstance(result, Exception):
                logger.error(f"❌ Failed to stop bot {bot.user_id}: {result}")
