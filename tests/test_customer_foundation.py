from datetime import datetime

from fanclub_revenue.foundation import (
    CustomerAggregate,
    TransactionRecord,
    aggregate_customers,
)


def test_aggregate_customers_keeps_first_seen_order(sample_records):
    customers = aggregate_customers(sample_records)

    assert [c.buyer_id for c in customers] == ["A", "B"]
    a, b = customers
    assert a.total_spent == 3000
    assert a.transaction_count == 2
    assert a.first_purchase_date == datetime(2024, 1, 5, 10, 0)
    assert a.last_purchase_date == datetime(2024, 1, 20, 21, 0)
    assert a.is_repeat is True
    assert a.average_spent == 1500.0
    assert b.is_repeat is False


def test_aggregate_tracks_monthly_spending():
    records = [
        TransactionRecord(buyer_id="A", amount=100, date=datetime(2024, 1, 3)),
        TransactionRecord(buyer_id="A", amount=200, date=datetime(2024, 2, 3)),
        TransactionRecord(buyer_id="A", amount=300, date=datetime(2024, 1, 28)),
    ]
    (customer,) = aggregate_customers(records)

    january = customer.monthly_spending[(2024, 1)]
    assert january.amount == 400
    assert january.transactions == 2
    assert customer.monthly_spending[(2024, 2)].amount == 200


def test_undated_records_count_towards_totals_only():
    records = [
        TransactionRecord(buyer_id="A", amount=500),
        TransactionRecord(buyer_id="A", amount=700, date=datetime(2024, 4, 1)),
    ]
    (customer,) = aggregate_customers(records)

    assert customer.total_spent == 1200
    assert customer.transaction_count == 2
    assert customer.first_purchase_date == datetime(2024, 4, 1)
    assert customer.last_purchase_date == datetime(2024, 4, 1)
    assert list(customer.monthly_spending) == [(2024, 4)]


def test_empty_aggregate_average_is_zero():
    assert CustomerAggregate("nobody").average_spent == 0.0
    assert aggregate_customers([]) == []
