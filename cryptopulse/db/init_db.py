import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from cryptopulse.models.base import Base

# Import all models so Base knows about them
from cryptopulse.models.risk import RiskLimitsRecord  # noqa: F401

logger = logging.getLogger("InitDB")


async def init_db(engine: AsyncEngine, drop_existing: bool = False):
    async with engine.begin() as conn:
        if drop_existing:
            logger.info("⏳ Dropping existing tables...")
            await conn.run_sync(Base.metadata.drop_all)

        logger.info("⏳ Creating tables...")
        await conn.run_sync(Base.metadata.create_all)

    logger.info("✅ Database initialized successfully!")
