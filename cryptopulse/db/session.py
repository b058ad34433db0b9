from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from cryptopulse.core.settings import Settings


def build_engine(settings: Settings, **kwargs) -> AsyncEngine:
    url = settings.DATABASE_URL
    options = {"echo": False, "future": True}
    if url.startswith("postgresql"):
        options.update(pool_size=20, max_overflow=10)
    options.update(kwargs)
    return create_async_engine(url, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
