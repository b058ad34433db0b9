import pytest

from cryptopulse.core.exceptions import ResourceNotFoundError
from cryptopulse.risk.alerts import AlertBook
from cryptopulse.risk.models import AlertLevel


@pytest.fixture
def book():
    return AlertBook(max_alerts=3)


def test_list_is_newest_first(book):
    first = book.add(AlertLevel.INFO, "DAILY_RESET", "one")
    second = book.add(AlertLevel.WARNING, "RISK_REJECTED", "two")

    assert [a.id for a in book.list()] == [second.id, first.id]


def test_book_is_bounded(book):
    for i in range(5):
        book.add(AlertLevel.INFO, "TEST", f"alert {i}")
    assert len(book) == 3
    assert [a.message for a in book.list()] == ["alert 4", "alert 3", "alert 2"]


def test_pagination(book):
    for i in range(3):
        book.add(AlertLevel.INFO, "TEST", f"alert {i}")
    assert [a.message for a in book.list(limit=1, offset=1)] == ["alert 1"]


def test_acknowledge(book):
    alert = book.add(AlertLevel.CRITICAL, "CIRCUIT_OPEN", "drawdown")
    assert book.unacknowledged_count == 1

    acked = book.acknowledge(alert.id)
    assert acked.acknowledged is True
    assert acked.acknowledged_at is not None
    assert book.unacknowledged_count == 0
    assert book.list(include_acknowledged=False) == []


def test_acknowledge_unknown_alert(book):
    with pytest.raises(ResourceNotFoundError):
        book.acknowledge("missing")
