"""Shared fixtures for fan-club revenue tests."""

from datetime import datetime, timedelta

import pytest
import structlog

from fanclub_revenue.foundation.transaction import TransactionKind, TransactionRecord


@pytest.fixture(autouse=True)
def reset_structlog():
    """CLI tests point structlog at captured streams; undo that after each test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def sample_records():
    """Two buyers, three transactions over two months."""
    return [
        TransactionRecord(
            date=datetime(2024, 1, 5, 10, 0),
            amount=1000,
            fee=100,
            kind=TransactionKind.PLAN_PURCHASE.value,
            target="Gold",
            buyer_id="A",
        ),
        TransactionRecord(
            date=datetime(2024, 1, 20, 21, 0),
            amount=2000,
            fee=200,
            kind=TransactionKind.SINGLE_ITEM_PURCHASE.value,
            target="Photo",
            buyer_id="A",
        ),
        TransactionRecord(
            date=datetime(2024, 2, 10, 12, 30),
            amount=3000,
            fee=300,
            kind=TransactionKind.PLAN_PURCHASE.value,
            target="Gold",
            buyer_id="B",
        ),
    ]


@pytest.fixture
def raw_rows():
    """Export rows as they come out of the CSV parser."""
    return [
        {
            "日付": "2024-03-01T09:00:00",
            "金額": "1,500",
            "手数料": "150",
            "種類": "プラン購入",
            "対象": "Silver",
            "購入者": "fan_1",
        },
        {
            "日付": "2024-03-02T22:15:00",
            "金額": "800円",
            "手数料": "80",
            "種類": "単品販売",
            "対象": "Voice",
            "購入者": "fan_2",
        },
    ]


class FakeClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start=datetime(2024, 6, 1, 12, 0)):
        self.current = start

    def __call__(self):
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


@pytest.fixture
def clock():
    return FakeClock()
