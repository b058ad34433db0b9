import pytest

from cryptopulse.core.exceptions import ValidationError
from cryptopulse.risk.models import Signal, TradeSide
from cryptopulse.risk.validation import parse_signal


def _payload(**overrides):
    payload = {"id": "s1", "symbol": "BTC/USDT", "action": "buy", "confidence": 80, "price": 50_000}
    payload.update(overrides)
    return payload


def test_parse_camel_case_payload():
    signal = parse_signal(_payload(stopLoss=49_000, strategyId="momentum"))
    assert isinstance(signal, Signal)
    assert signal.action == TradeSide.BUY
    assert signal.stop_loss == 49_000
    assert signal.strategy_id == "momentum"


def test_signal_instances_pass_through():
    signal = Signal(id="s2", symbol="ETH/USDT", action="SELL", confidence=90, price=2_000, stop_loss=2_100)
    assert parse_signal(signal) is signal


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"price": 0}, "price"),
        ({"confidence": 120}, "confidence"),
        ({"symbol": ""}, "symbol"),
        ({"action": "hold"}, "action"),
        ({"stopLoss": 51_000}, "below entry"),
        ({"amount": -1}, "amount"),
    ],
)
def test_malformed_signals(overrides, fragment):
    with pytest.raises(ValidationError) as exc_info:
        parse_signal(_payload(**overrides))
    assert fragment in str(exc_info.value.errors)
    assert "validation" in exc_info.value.public_message


def test_missing_fields():
    with pytest.raises(ValidationError) as exc_info:
        parse_signal({"symbol": "BTC/USDT"})
    assert any("id" in e for e in exc_info.value.errors)
