import pytest

from cryptopulse.core.exceptions import ResourceNotFoundError
from cryptopulse.portfolio.provider import InMemoryPortfolioProvider
from cryptopulse.risk.models import TradeSide
from cryptopulse.schemas.execution import ExecutionResult, ExecutionStatus, OrderRequest


def _fill(order_id="PAPER_1", side=TradeSide.BUY, qty=0.1, price=50_000.0, symbol="BTC/USDT"):
    order = OrderRequest(client_order_id="c1", user_id="u1", symbol=symbol, side=side, quantity=qty, price=price)
    result = ExecutionResult(
        order_id=order_id, status=ExecutionStatus.FILLED, executed_qty=qty, executed_price=price
    )
    return order, result


@pytest.mark.asyncio
async def test_fresh_account(portfolio):
    state = await portfolio.get_portfolio_state("u1")
    assert state.portfolio_value == 10_000
    assert state.active_trade_count == 0
    assert state.current_drawdown == 0


@pytest.mark.asyncio
async def test_fill_and_mark_to_market(portfolio):
    await portfolio.record_fill("u1", *_fill())
    await portfolio.update_price("BTC/USDT", 48_000)

    state = await portfolio.get_portfolio_state("u1")
    assert state.active_trade_count == 1
    assert state.unrealized_pnl == pytest.approx(-200)
    assert state.portfolio_value == pytest.approx(9_800)
    assert state.current_drawdown == pytest.approx(0.02)
    assert state.total_exposure == pytest.approx(4_800)
    assert state.open_symbols == ["BTC/USDT"]


@pytest.mark.asyncio
async def test_short_position_pnl(portfolio):
    await portfolio.record_fill("u1", *_fill(side=TradeSide.SELL, qty=1, price=2_000, symbol="ETH/USDT"))
    pnl = await portfolio.record_close("u1", "PAPER_1", exit_price=1_900)
    assert pnl == pytest.approx(100)

    state = await portfolio.get_portfolio_state("u1")
    assert state.portfolio_value == pytest.approx(10_100)
    assert state.active_trade_count == 0


@pytest.mark.asyncio
async def test_drawdown_measured_from_peak(portfolio):
    await portfolio.record_fill("u1", *_fill(qty=1, price=100, symbol="SOL/USDT"))
    await portfolio.update_price("SOL/USDT", 1_100)
    await portfolio.get_portfolio_state("u1")  # peak 11_000

    await portfolio.update_price("SOL/USDT", 0.01)
    state = await portfolio.get_portfolio_state("u1")
    assert state.current_drawdown == pytest.approx((11_000 - (10_000 - 99.99)) / 11_000)


@pytest.mark.asyncio
async def test_accounts_are_isolated(portfolio):
    await portfolio.record_fill("u1", *_fill())
    other = await portfolio.get_portfolio_state("u2")
    assert other.active_trade_count == 0


@pytest.mark.asyncio
async def test_close_unknown_position(portfolio):
    with pytest.raises(ResourceNotFoundError):
        await portfolio.record_close("u1", "nope", 1.0)


@pytest.mark.asyncio
async def test_fund_raises_equity():
    provider = InMemoryPortfolioProvider(initial_value=1_000)
    provider.fund("u1", 500)
    assert (await provider.get_portfolio_state("u1")).portfolio_value == 1_500
