"""Input validation shared by the evaluator, the pipeline and the API layer.

Failures here are caller errors and raise ``ValidationError``; they are never
reported as a ``RiskDecision``.
"""

import math
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from cryptopulse.core.exceptions import ValidationError
from cryptopulse.risk.models import Signal, TradeProposal, TradeSide


def _is_positive_number(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def _stop_loss_errors(side: TradeSide, price: float, stop_loss: Optional[float]) -> List[str]:
    if stop_loss is None:
        return []
    if not _is_positive_number(stop_loss):
        return ["stop loss must be a positive number"]
    if side == TradeSide.BUY and stop_loss >= price:
        return ["stop loss must be below entry price for BUY"]
    if side == TradeSide.SELL and stop_loss <= price:
        return ["stop loss must be above entry price for SELL"]
    return []


def format_pydantic_errors(exc: PydanticValidationError) -> List[str]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid value"))
    return errors


def validate_proposal(proposal: TradeProposal) -> None:
    errors = []
    if not proposal.symbol or not proposal.symbol.strip():
        errors.append("symbol is required")
    if not _is_positive_number(proposal.amount):
        errors.append("amount must be greater than 0")
    if not _is_positive_number(proposal.price):
        errors.append("price must be greater than 0")
    elif proposal.stop_loss is not None:
        errors.extend(_stop_loss_errors(proposal.side, proposal.price, proposal.stop_loss))

    if errors:
        raise ValidationError(errors[0], errors)


def validate_signal(signal: Signal) -> None:
    errors = []
    if not signal.id or not str(signal.id).strip():
        errors.append("signal id is required")
    if not signal.symbol or not signal.symbol.strip():
        errors.append("symbol is required")
    if not math.isfinite(signal.confidence) or not 0 <= signal.confidence <= 100:
        errors.append("confidence must be between 0 and 100")
    if not _is_positive_number(signal.price):
        errors.append("price must be greater than 0")
    else:
        errors.extend(_stop_loss_errors(signal.action, signal.price, signal.stop_loss))
    if signal.amount is not None and not _is_positive_number(signal.amount):
        errors.append("amount must be greater than 0")

    if errors:
        raise ValidationError(errors[0], errors)


def parse_signal(raw: Union[Signal, Mapping[str, Any]]) -> Signal:
    """Coerce a payload into a validated Signal."""
    if isinstance(raw, Signal):
        signal = raw
    else:
        try:
            signal = Signal.model_validate(raw)
        except PydanticValidationError as e:
            errors = format_pydantic_errors(e)
            raise ValidationError(errors[0], errors) from e

    validate_signal(signal)
    return signal
