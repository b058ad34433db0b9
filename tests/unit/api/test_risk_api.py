import pytest

from cryptopulse.risk.models import AlertLevel
from tests.factories import HEADERS


def test_summary_unknown_user_is_404(client):
    res = client.get("/api/risk/summary", headers=HEADERS)

    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Risk summary not found"}


def test_summary_after_account_setup(client):
    client.get("/api/risk/limits", headers=HEADERS)

    res = client.get("/api/risk/summary", headers=HEADERS)

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["userId"] == "alice"
    assert data["limits"]["maxConcurrentTrades"] == 5
    assert data["riskLevel"] == "LOW"
    assert data["canTrade"] is True


def test_missing_user_header_is_400(client):
    res = client.get("/api/risk/limits")

    assert res.status_code == 400
    assert res.json()["success"] is False


def test_calculate_position_size(client):
    res = client.post(
        "/api/risk/calculate-position-size",
        headers=HEADERS,
        json={"symbol": "BTC/USDT", "riskAmount": 200, "entryPrice": 50000, "stopLossPrice": 49000},
    )

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["positionSize"] == pytest.approx(0.2)
    assert data["leverage"] == 1.0


def test_calculate_position_size_rejects_missing_fields(client):
    res = client.post(
        "/api/risk/calculate-position-size",
        headers=HEADERS,
        json={"symbol": "BTC/USDT", "entryPrice": 50000},
    )

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert "validation" in body["message"].lower()


def test_calculate_position_size_entry_equals_stop(client):
    res = client.post(
        "/api/risk/calculate-position-size",
        headers=HEADERS,
        json={"symbol": "BTC/USDT", "riskAmount": 200, "entryPrice": 50000, "stopLossPrice": 50000},
    )

    assert res.status_code == 400


def test_check_limits_oversized_trade_is_rejected(client):
    res = client.post(
        "/api/risk/check-limits",
        headers=HEADERS,
        json={"symbol": "BTC/USDT", "amount": 1.0, "price": 50000, "side": "buy"},
    )

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["data"]["allowed"] is False
    assert "Position size exceeds limit" in body["message"]


def test_check_limits_allows_small_trade(client):
    res = client.post(
        "/api/risk/check-limits",
        headers=HEADERS,
        json={"symbol": "BTC/USDT", "amount": 0.01, "price": 50000, "side": "sell"},
    )

    assert res.status_code == 200
    assert res.json()["data"]["allowed"] is True


def test_set_limits_is_partial_and_persisted(client, container):
    res = client.post("/api/risk/set-limits", headers=HEADERS, json={"maxDailyTrades": 3})

    assert res.status_code == 200
    assert res.json()["data"]["maxDailyTrades"] == 3

    limits = client.get("/api/risk/limits", headers=HEADERS).json()["data"]
    assert limits["maxDailyTrades"] == 3
    assert limits["maxConcurrentTrades"] == 5
    assert container.bots.get("alice").limits.max_daily_trades == 3


def test_set_limits_rejects_out_of_range(client):
    res = client.post("/api/risk/set-limits", headers=HEADERS, json={"maxDrawdown": 1.5})

    assert res.status_code == 400


def test_alerts_and_acknowledge(client, container):
    client.get("/api/risk/limits", headers=HEADERS)
    bot = container.bots.get("alice")
    alert = bot.alerts.add(AlertLevel.WARNING, "RISK_REJECTED", "Daily trade limit reached (50/50)")

    listed = client.get("/api/risk/alerts", headers=HEADERS, params={"unacknowledgedOnly": True}).json()["data"]
    assert listed["unacknowledged"] == 1
    assert listed["alerts"][0]["id"] == alert.id

    res = client.post(f"/api/risk/alerts/{alert.id}/acknowledge", headers=HEADERS)
    assert res.status_code == 200
    assert res.json()["data"]["acknowledged"] is True

    listed = client.get("/api/risk/alerts", headers=HEADERS, params={"unacknowledgedOnly": True}).json()["data"]
    assert listed["alerts"] == []


def test_acknowledge_unknown_alert_is_404(client):
    res = client.post("/api/risk/alerts/missing/acknowledge", headers=HEADERS)

    assert res.status_code == 404
    assert res.json()["success"] is False


def test_circuit_breaker_reset(client, container):
    client.get("/api/risk/limits", headers=HEADERS)
    container.bots.get("alice").breaker.trip("manual test trip")

    state = client.get("/api/risk/circuit-breaker", headers=HEADERS).json()["data"]
    assert state["state"] == "OPEN"

    blocked = client.post(
        "/api/risk/check-limits",
        headers=HEADERS,
        json={"symbol": "BTC/USDT", "amount": 0.01, "price": 50000, "side": "buy"},
    )
    assert blocked.status_code == 400
    assert blocked.json()["data"]["riskScore"] == 100.0

    res = client.post("/api/risk/circuit-breaker/reset", headers=HEADERS)
    assert res.status_code == 200
    assert res.json()["data"]["state"] == "CLOSED"


def test_reset_metrics(client):
    res = client.post("/api/risk/reset-metrics", headers=HEADERS)

    assert res.status_code == 200
    assert res.json() == {"success": True, "message": "Daily risk metrics reset successfully"}


def test_health(client):
    res = client.get("/api/health")

    assert res.status_code == 200
    data = res.json()
    assert data["status"] == "healthy"
    assert data["threadPool"] is True
    assert data["bots"]["total"] == 0
