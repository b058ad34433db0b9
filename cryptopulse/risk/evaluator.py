import logging
import math
from typing import List, NamedTuple, Optional

from cryptopulse.core.exceptions import PositionSizingError
from cryptopulse.risk.models import DailyStats, PortfolioState, RiskDecision, RiskLimits, Signal, TradeProposal
from cryptopulse.risk.sizer import PositionQuote, PositionSizer
from cryptopulse.risk.validation import validate_proposal

logger = logging.getLogger("RiskEvaluator")

# Open positions on the same base asset before a new one is refused
MAX_CORRELATED_POSITIONS = 3


def _base_asset(symbol: str) -> str:
    return symbol.split("/")[0].strip().upper()


class _Check(NamedTuple):
    utilization: float
    failure: Optional[str]
    warning: Optional[str]


class RiskEvaluator:
    """
    Decides whether a proposed trade is permitted and at what size.

    Stateless: every input (limits, portfolio snapshot, daily stats) is passed in,
    so the same inputs always produce the same decision. Limits are inclusive:
    reaching a threshold is the rejection point.
    """

    def __init__(self, sizer: Optional[PositionSizer] = None, warning_ratio: float = 0.8):
        self.sizer = sizer or PositionSizer()
        self.warning_ratio = warning_ratio

    def calculate_position_size(
        self,
        signal: Signal,
        risk_per_trade: float,
        portfolio_value: float,
        max_position_pct: Optional[float] = None,
        lot_size: Optional[float] = None,
    ) -> float:
        return self.sizer.calculate_position_size(
            signal, risk_per_trade, portfolio_value, lot_size=lot_size, max_position_pct=max_position_pct
        )

    def quote_position_size(
        self, risk_amount: float, entry_price: float, stop_loss_price: float, leverage: float = 1.0
    ) -> PositionQuote:
        return self.sizer.quote(risk_amount, entry_price, stop_loss_price, leverage=leverage)

    def check_risk_limits(
        self,
        proposal: TradeProposal,
        limits: RiskLimits,
        portfolio: PortfolioState,
        stats: DailyStats,
    ) -> RiskDecision:
        # 0. Fail fast on malformed input (raises ValidationError)
        validate_proposal(proposal)

        portfolio_value = portfolio.portfolio_value
        if portfolio_value <= 0:
            return RiskDecision(allowed=False, reason="Portfolio value unavailable", risk_score=100.0)

        checks = [
            self._check_concurrent(limits, portfolio),
            self._check_daily_trades(limits, stats),
            self._check_position_size(proposal, limits, portfolio_value),
            self._check_total_exposure(limits, portfolio),
            self._check_drawdown(proposal, limits, portfolio),
            self._check_daily_loss(limits, portfolio, stats),
            self._check_trade_risk(proposal, limits, portfolio_value),
            self._check_correlation(proposal, portfolio),
        ]

        reason = next((c.failure for c in checks if c.failure), None)
        warnings: List[str] = [c.warning for c in checks if c.warning]
        risk_score = round(min(100.0, max(c.utilization for c in checks) * 100), 2)

        decision = RiskDecision(
            allowed=reason is None,
            reason=reason,
            risk_score=risk_score,
            warnings=warnings,
            recommended_position_size=self._recommended_size(proposal, limits, portfolio_value),
        )

        if decision.allowed:
            logger.debug(f"✅ {proposal.symbol} {proposal.side.value} {proposal.amount} allowed (score {risk_score})")
        else:
            logger.info(f"⛔ {proposal.symbol} {proposal.side.value} {proposal.amount} rejected: {reason}")
        return decision

    # --- Individual Checks ---

    def _warn(self, utilization: float, failed: bool, message: str) -> Optional[str]:
        if not failed and utilization >= self.warning_ratio:
            return message
        return None

    def _check_concurrent(self, limits: RiskLimits, portfolio: PortfolioState) -> _Check:
        active, cap = portfolio.active_trade_count, limits.max_concurrent_trades
        failed = active >= cap
        util = active / cap
        return _Check(
            util,
            f"Maximum concurrent trades reached ({active}/{cap})" if failed else None,
            self._warn(util, failed, f"Approaching concurrent trade limit ({active}/{cap})"),
        )

    def _check_daily_trades(self, limits: RiskLimits, stats: DailyStats) -> _Check:
        done, cap = stats.trades_today, limits.max_daily_trades
        failed = done >= cap
        util = done / cap
        return _Check(
            util,
            f"Daily trade limit reached ({done}/{cap})" if failed else None,
            self._warn(util, failed, f"Approaching daily trade limit ({done}/{cap})"),
        )

    def _check_position_size(self, proposal: TradeProposal, limits: RiskLimits, portfolio_value: float) -> _Check:
        ratio = (proposal.amount * proposal.price) / portfolio_value
        failed = ratio >= limits.max_position_size
        util = ratio / limits.max_position_size
        return _Check(
            util,
            (
                f"Position size exceeds limit: {ratio * 100:.1f}% of portfolio "
                f"(max {limits.max_position_size * 100:.1f}%)"
            )
            if failed
            else None,
            self._warn(util, failed, f"Large position: {ratio * 100:.1f}% of portfolio"),
        )

    def _check_total_exposure(self, limits: RiskLimits, portfolio: PortfolioState) -> _Check:
        ratio = portfolio.total_exposure / portfolio.portfolio_value
        failed = ratio >= limits.max_position_size
        util = ratio / limits.max_position_size
        return _Check(
            util,
            f"Total exposure exceeds limit: {ratio * 100:.1f}%" if failed else None,
            self._warn(util, failed, f"High exposure: {ratio * 100:.1f}%"),
        )

    def _check_trade_risk(self, proposal: TradeProposal, limits: RiskLimits, portfolio_value: float) -> _Check:
        risk = proposal.amount * self.sizer.risk_per_unit(proposal.price, proposal.stop_loss) / portfolio_value
        # Sized trades spend exactly the budget: only going past it fails
        failed = risk > limits.risk_per_trade and not math.isclose(risk, limits.risk_per_trade, rel_tol=1e-9)
        # Kept out of risk_score, every fixed-fractional trade sits at 100% of its budget
        return _Check(0.0, f"Trade risk exceeds limit: {risk * 100:.1f}%" if failed else None, None)

    def _check_correlation(self, proposal: TradeProposal, portfolio: PortfolioState) -> _Check:
        base = _base_asset(proposal.symbol)
        similar = sum(1 for symbol in portfolio.open_symbols if _base_asset(symbol) == base)
        failed = similar >= MAX_CORRELATED_POSITIONS
        return _Check(
            similar / MAX_CORRELATED_POSITIONS,
            "Too many correlated positions" if failed else None,
            f"Similar positions detected: {similar}" if similar and not failed else None,
        )

    def _check_drawdown(self, proposal: TradeProposal, limits: RiskLimits, portfolio: PortfolioState) -> _Check:
        trade_risk = proposal.amount * self.sizer.risk_per_unit(proposal.price, proposal.stop_loss)
        projected = max(0.0, portfolio.current_drawdown) + trade_risk / portfolio.portfolio_value
        failed = projected >= limits.max_drawdown
        util = projected / limits.max_drawdown
        return _Check(
            util,
            (
                f"Projected drawdown {projected * 100:.1f}% reaches maximum "
                f"{limits.max_drawdown * 100:.1f}%"
            )
            if failed
            else None,
            self._warn(util, failed, f"Approaching maximum drawdown ({projected * 100:.1f}%)"),
        )

    def _check_daily_loss(self, limits: RiskLimits, portfolio: PortfolioState, stats: DailyStats) -> _Check:
        pnl = stats.cumulative_profit_today + portfolio.unrealized_pnl
        loss = max(0.0, -pnl) / portfolio.portfolio_value
        failed = loss >= limits.max_daily_loss
        util = loss / limits.max_daily_loss
        return _Check(
            util,
            f"Daily loss limit exceeded: {loss * 100:.1f}% (max {limits.max_daily_loss * 100:.1f}%)" if failed else None,
            self._warn(util, failed, f"Approaching daily loss limit ({loss * 100:.1f}%)"),
        )

    def _recommended_size(self, proposal: TradeProposal, limits: RiskLimits, portfolio_value: float) -> Optional[float]:
        try:
            return self.sizer.calculate_qty(
                entry_price=proposal.price,
                stop_loss=proposal.stop_loss,
                risk_per_trade=limits.risk_per_trade,
                portfolio_value=portfolio_value,
                max_position_pct=limits.max_position_size,
            )
        except PositionSizingError:
            return None
