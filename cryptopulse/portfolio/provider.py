import logging
from abc import ABC, abstractmethod
from typing import Dict

from pydantic import BaseModel

from cryptopulse.core.exceptions import ResourceNotFoundError
from cryptopulse.risk.models import PortfolioState, TradeSide
from cryptopulse.schemas.execution import ExecutionResult, OrderRequest

logger = logging.getLogger("Portfolio")


class PortfolioProvider(ABC):
    """
    Read side used by the risk core, plus the feedback hooks the pipeline
    calls after an execution or a settlement.
    """

    @abstractmethod
    async def get_portfolio_state(self, user_id: str) -> PortfolioState:
        pass

    @abstractmethod
    async def record_fill(self, user_id: str, order: OrderRequest, result: ExecutionResult) -> None:
        pass

    @abstractmethod
    async def record_close(self, user_id: str, order_id: str, exit_price: float) -> float:
        """Closes an open position and returns its realized PnL."""
        pass


class OpenPosition(BaseModel):
    order_id: str
    symbol: str
    side: TradeSide
    quantity: float
    entry_price: float


class _Account:
    def __init__(self, initial_value: float):
        self.initial_value = initial_value
        self.realized_pnl = 0.0
        self.peak_equity = initial_value
        self.positions: Dict[str, OpenPosition] = {}


class InMemoryPortfolioProvider(PortfolioProvider):
    """
    Simulates an account 100% in memory.
    Equity = initial capital + realized PnL + mark-to-market of open positions.
    """

    def __init__(self, initial_value: float = 10000.0):
        self.initial_value = initial_value
        self._accounts: Dict[str, _Account] = {}
        self._marks: Dict[str, float] = {}

    def _account(self, user_id: str) -> _Account:
        if user_id not in self._accounts:
            self._accounts[user_id] = _Account(self.initial_value)
        return self._accounts[user_id]

    def fund(self, user_id: str, amount: float) -> None:
        account = self._account(user_id)
        account.initial_value += amount
        account.peak_equity = max(account.peak_equity, self._equity(account))

    async def update_price(self, symbol: str, price: float) -> None:
        self._marks[symbol] = price

    def _unrealized(self, position: OpenPosition) -> float:
        mark = self._marks.get(position.symbol, position.entry_price)
        if position.side == TradeSide.BUY:
            return (mark - position.entry_price) * position.quantity
        return (position.entry_price - mark) * position.quantity

    def _equity(self, account: _Account) -> float:
        unrealized = sum(self._unrealized(p) for p in account.positions.values())
        return account.initial_value + account.realized_pnl + unrealized

    async def get_portfolio_state(self, user_id: str) -> PortfolioState:
        account = self._account(user_id)
        unrealized = sum(self._unrealized(p) for p in account.positions.values())
        equity = self._equity(account)
        account.peak_equity = max(account.peak_equity, equity)

        drawdown = 0.0
        if account.peak_equity > 0:
            drawdown = max(0.0, (account.peak_equity - equity) / account.peak_equity)

        exposure = sum(
            self._marks.get(p.symbol, p.entry_price) * p.quantity for p in account.positions.values()
        )
        return PortfolioState(
            portfolio_value=equity,
            total_exposure=exposure,
            current_drawdown=drawdown,
            active_trade_count=len(account.positions),
            unrealized_pnl=unrealized,
            open_symbols=[p.symbol for p in account.positions.values()],
        )

    async def record_fill(self, user_id: str, order: OrderRequest, result: ExecutionResult) -> None:
        account = self._account(user_id)
        account.positions[result.order_id] = OpenPosition(
            order_id=result.order_id,
            symbol=order.symbol,
            side=order.side,
            quantity=result.executed_qty or order.quantity,
            entry_price=result.executed_price or order.price,
        )
        logger.info(f"📒 {user_id}: opened {order.side.value} {order.quantity} {order.symbol} [{result.order_id}]")

    async def record_close(self, user_id: str, order_id: str, exit_price: float) -> float:
        account = self._account(user_id)
        position = account.positions.pop(order_id, None)
        if position is None:
            raise ResourceNotFoundError(f"Open position '{order_id}' not found")

        if position.side == TradeSide.BUY:
            pnl = (exit_price - position.entry_price) * position.quantity
        else:
            pnl = (position.entry_price - exit_price) * position.quantity

        account.realized_pnl += pnl
        logger.info(f"📒 {user_id}: closed {position.symbol} [{order_id}] PnL {pnl:+.2f}")
        return pnl
