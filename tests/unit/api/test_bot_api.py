import pytest

from tests.factories import HEADERS, make_signal


def start(client):
    res = client.post("/api/bot/start", headers=HEADERS)
    assert res.status_code == 200
    return res


def test_start_status_stop(client):
    res = start(client)
    assert res.json()["data"]["running"] is True
    assert client.post("/api/bot/start", headers=HEADERS).json()["message"] == "Bot is already running"

    status = client.get("/api/bot/status", headers=HEADERS).json()["data"]
    assert status["userId"] == "alice"
    assert status["circuitBreaker"] == "CLOSED"

    res = client.post("/api/bot/stop", headers=HEADERS)
    assert res.status_code == 200
    assert res.json()["data"]["running"] is False


def test_status_without_bot_is_404(client):
    res = client.get("/api/bot/status", headers=HEADERS)

    assert res.status_code == 404
    assert res.json()["success"] is False


def test_signal_executes(client):
    start(client)

    res = client.post("/api/bot/signals", headers=HEADERS, json=make_signal())

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["data"]["status"] == "EXECUTED"
    assert body["data"]["positionSize"] == pytest.approx(0.04)
    assert body["data"]["order"]["orderId"]


def test_signal_to_stopped_bot_is_409(client):
    start(client)
    client.post("/api/bot/stop", headers=HEADERS)

    res = client.post("/api/bot/signals", headers=HEADERS, json=make_signal())

    assert res.status_code == 409


def test_low_confidence_signal_is_filtered(client):
    start(client)

    res = client.post("/api/bot/signals", headers=HEADERS, json=make_signal(confidence=50))

    assert res.status_code == 200
    assert res.json()["data"]["status"] == "FILTERED"


def test_oversized_signal_is_rejected_and_alerted(client):
    start(client)

    res = client.post("/api/bot/signals", headers=HEADERS, json=make_signal(amount=1.0))

    assert res.status_code == 400
    assert res.json()["data"]["status"] == "RISK_REJECTED"
    alerts = client.get("/api/risk/alerts", headers=HEADERS).json()["data"]["alerts"]
    assert alerts[0]["type"] == "RISK_REJECTED"


def test_duplicate_signal_is_400(client):
    start(client)
    client.post("/api/bot/signals", headers=HEADERS, json=make_signal("dup"))

    res = client.post("/api/bot/signals", headers=HEADERS, json=make_signal("dup"))

    assert res.status_code == 400
    assert "duplicate" in res.json()["message"]


def test_malformed_signal_is_400(client):
    start(client)

    res = client.post("/api/bot/signals", headers=HEADERS, json={"id": "x", "symbol": "BTC/USDT"})

    assert res.status_code == 400


def test_open_circuit_is_423(client, container):
    start(client)
    container.bots.get("alice").breaker.trip("manual test trip")

    res = client.post("/api/bot/signals", headers=HEADERS, json=make_signal())

    assert res.status_code == 423
    assert res.json()["data"]["status"] == "CIRCUIT_OPEN"


def test_history_newest_first_with_filter(client):
    start(client)
    client.post("/api/bot/signals", headers=HEADERS, json=make_signal("a"))
    client.post("/api/bot/signals", headers=HEADERS, json=make_signal("b", confidence=10))

    history = client.get("/api/bot/signals/history", headers=HEADERS).json()["data"]
    assert [o["signalId"] for o in history] == ["b", "a"]

    executed = client.get("/api/bot/signals/history", headers=HEADERS, params={"status": "EXECUTED"}).json()["data"]
    assert [o["signalId"] for o in executed] == ["a"]


def test_config_roundtrip(client):
    res = client.put("/api/bot/config", headers=HEADERS, json={"signalConfidenceThreshold": 40})

    assert res.status_code == 200
    assert res.json()["data"]["signalConfidenceThreshold"] == 40
    assert client.get("/api/bot/config", headers=HEADERS).json()["data"]["signalConfidenceThreshold"] == 40

    assert client.put("/api/bot/config", headers=HEADERS, json={"signalConfidenceThreshold": 400}).status_code == 400


def test_close_trade_and_metrics(client):
    start(client)
    order_id = client.post("/api/bot/signals", headers=HEADERS, json=make_signal()).json()["data"]["order"]["orderId"]

    res = client.post(f"/api/bot/trades/{order_id}/close", headers=HEADERS, json={"exitPrice": 51000})

    assert res.status_code == 200
    assert res.json()["data"]["realizedPnl"] == pytest.approx(40)
    metrics = client.get("/api/risk/metrics", headers=HEADERS).json()["data"]
    assert metrics["totalTrades"] == 1
    assert metrics["winningTrades"] == 1


def test_cancel_unknown_signal_is_404(client):
    start(client)

    res = client.delete("/api/bot/signals/nope", headers=HEADERS)

    assert res.status_code == 404
