import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from cryptopulse.models.risk import RiskLimitsRecord
from cryptopulse.risk.models import RiskLimits

logger = logging.getLogger("RiskPolicyStore")

_LIMIT_FIELDS = tuple(RiskLimits.model_fields)


class RiskPolicyStore:
    """
    Per-user RiskLimits.
    In-memory cache with optional write-through to the database so limits
    survive a restart.
    """

    def __init__(self, defaults: Dict[str, float], session_factory: Optional[async_sessionmaker] = None):
        self._defaults = dict(defaults)
        self._session_factory = session_factory
        self._cache: Dict[str, RiskLimits] = {}

    def default_limits(self) -> RiskLimits:
        return RiskLimits(**self._defaults)

    async def get(self, user_id: str) -> Optional[RiskLimits]:
        if user_id in self._cache:
            return self._cache[user_id]

        if self._session_factory is None:
            return None

        async with self._session_factory() as session:
            record = await session.get(RiskLimitsRecord, user_id)
            if record is None:
                return None
            limits = self._from_record(record)

        self._cache[user_id] = limits
        return limits

    async def set(self, user_id: str, limits: RiskLimits) -> RiskLimits:
        if self._session_factory is not None:
            async with self._session_factory() as session:
                await session.merge(RiskLimitsRecord(user_id=user_id, **limits.model_dump()))
                await session.commit()

        self._cache[user_id] = limits
        logger.info(
            f"🛡️ Risk limits saved for {user_id}: MaxTrades={limits.max_concurrent_trades} | "
            f"DailyTrades={limits.max_daily_trades} | MaxDD={limits.max_drawdown:.2%} | "
            f"MaxDailyLoss={limits.max_daily_loss:.2%}"
        )
        return limits

    async def ensure(self, user_id: str) -> RiskLimits:
        """Account setup: returns stored limits or creates the environment defaults."""
        limits = await self.get(user_id)
        if limits is None:
            limits = await self.set(user_id, self.default_limits())
        return limits

    async def load_all(self) -> List[str]:
        """♻️ Warms the cache from the database. Returns the restored user ids."""
        if self._session_factory is None:
            return list(self._cache)

        async with self._session_factory() as session:
            result = await session.execute(select(RiskLimitsRecord))
            for record in result.scalars().all():
                self._cache[record.user_id] = self._from_record(record)

        logger.info(f"♻️ Restored risk limits for {len(self._cache)} users")
        return list(self._cache)

    @staticmethod
    def _from_record(record: RiskLimitsRecord) -> RiskLimits:
        return RiskLimits(**{name: getattr(record, name) for name in _LIMIT_FIELDS})
