import logging
import math
from typing import Optional

from pydantic import BaseModel

from cryptopulse.core.exceptions import PositionSizingError
from cryptopulse.risk.models import Signal

logger = logging.getLogger("PositionSizer")


class PositionQuote(BaseModel):
    position_size: float
    risk_amount: float
    leverage: float
    notional: float
    margin_required: float


class PositionSizer:
    """
    Fixed-fractional sizing.
    Enforces 'Ruination Risk' protection: never returns Infinity/NaN.

    With a stop-loss:    Qty = (Portfolio * Risk%) / |Entry - SL|
    Without a stop-loss: an implied stop of ``default_stop_loss_pct`` is used and the
                         notional is capped at ``max_position_pct`` of the portfolio.
    """

    def __init__(self, default_stop_loss_pct: float = 0.05, max_position_pct: float = 0.5):
        self.default_stop_loss_pct = default_stop_loss_pct
        self.max_position_pct = max_position_pct

    def risk_per_unit(self, entry_price: float, stop_loss: Optional[float]) -> float:
        """Loss per unit if the stop is hit."""
        if stop_loss is None:
            return entry_price * self.default_stop_loss_pct
        return abs(entry_price - stop_loss)

    def calculate_qty(
        self,
        entry_price: float,
        stop_loss: Optional[float],
        risk_per_trade: float,
        portfolio_value: float,
        lot_size: Optional[float] = None,
        max_position_pct: Optional[float] = None,
    ) -> float:
        if entry_price is None or not math.isfinite(entry_price) or entry_price <= 0:
            raise PositionSizingError("entry price must be greater than 0")
        if not math.isfinite(portfolio_value) or portfolio_value <= 0:
            raise PositionSizingError("portfolio value must be greater than 0")
        if not 0 < risk_per_trade <= 1:
            raise PositionSizingError("risk per trade must be in (0, 1]")

        # 1. Risk Per Unit
        risk_per_unit = self.risk_per_unit(entry_price, stop_loss)
        if risk_per_unit == 0:
            logger.warning("⚠️ Entry equals SL! Cannot calculate size.")
            raise PositionSizingError("entry price equals stop loss; cannot size position")

        # 2. Total Risk Amount
        risk_amount = portfolio_value * risk_per_trade

        # 3. Derive Raw Quantity
        qty = risk_amount / risk_per_unit

        # 4. Fallback Cap (no stop-loss known)
        if stop_loss is None:
            cap_pct = max_position_pct if max_position_pct is not None else self.max_position_pct
            max_qty = (portfolio_value * cap_pct) / entry_price
            qty = min(qty, max_qty)

        # 5. Lot Size Rounding (Floor)
        # Example: Raw 0.237, Lot 0.01 -> 0.23
        if lot_size:
            qty = math.floor(qty / lot_size) * lot_size

        if not math.isfinite(qty):
            raise PositionSizingError("position size is not finite")

        logger.debug(f"🧮 Sizing: Risk {risk_amount:.2f} | Risk/Unit {risk_per_unit:.4f} | Qty {qty:.8f}")
        return qty

    def calculate_position_size(
        self,
        signal: Signal,
        risk_per_trade: float,
        portfolio_value: float,
        lot_size: Optional[float] = None,
        max_position_pct: Optional[float] = None,
    ) -> float:
        return self.calculate_qty(
            entry_price=signal.price,
            stop_loss=signal.stop_loss,
            risk_per_trade=risk_per_trade,
            portfolio_value=portfolio_value,
            lot_size=lot_size,
            max_position_pct=max_position_pct,
        )

    def quote(
        self, risk_amount: float, entry_price: float, stop_loss_price: float, leverage: float = 1.0
    ) -> PositionQuote:
        """Size for an explicit money-at-risk amount."""
        if risk_amount <= 0:
            raise PositionSizingError("risk amount must be greater than 0")
        if entry_price <= 0 or stop_loss_price <= 0:
            raise PositionSizingError("entry and stop loss prices must be greater than 0")

        risk_per_unit = abs(entry_price - stop_loss_price)
        if risk_per_unit == 0:
            raise PositionSizingError("entry price equals stop loss; cannot size position")

        leverage = max(1.0, leverage)
        position_size = risk_amount / risk_per_unit
        notional = position_size * entry_price

        return PositionQuote(
            position_size=position_size,
            risk_amount=risk_amount,
            leverage=leverage,
            notional=notional,
            margin_required=notional / leverage,
        )
