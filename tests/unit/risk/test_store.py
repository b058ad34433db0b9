import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from cryptopulse.core.constants import RISK_PROFILES
from cryptopulse.db.init_db import init_db
from cryptopulse.db.session import build_session_factory
from cryptopulse.risk.store import RiskPolicyStore


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    await init_db(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.mark.asyncio
async def test_memory_only_store():
    store = RiskPolicyStore(RISK_PROFILES["production"])
    assert await store.get("alice") is None

    limits = await store.ensure("alice")
    assert limits.max_concurrent_trades == 5
    assert limits.risk_per_trade == 0.02
    assert await store.get("alice") is limits
    assert await store.load_all() == ["alice"]


@pytest.mark.asyncio
async def test_limits_survive_restart(session_factory):
    store = RiskPolicyStore(RISK_PROFILES["production"], session_factory=session_factory)
    limits = store.default_limits().model_copy(update={"max_daily_trades": 7})
    await store.set("bob", limits)

    # Fresh store: cold cache, same database
    restarted = RiskPolicyStore(RISK_PROFILES["production"], session_factory=session_factory)
    assert await restarted.load_all() == ["bob"]
    restored = await restarted.get("bob")
    assert restored.max_daily_trades == 7
    assert restored == limits


@pytest.mark.asyncio
async def test_set_overwrites_existing_record(session_factory):
    store = RiskPolicyStore(RISK_PROFILES["development"], session_factory=session_factory)
    await store.ensure("carol")
    await store.set("carol", store.default_limits().model_copy(update={"max_drawdown": 0.2}))

    fresh = RiskPolicyStore(RISK_PROFILES["development"], session_factory=session_factory)
    assert (await fresh.get("carol")).max_drawdown == 0.2
