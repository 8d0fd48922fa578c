"""Per-buyer aggregation shared by the revenue and customer analyses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from fanclub_revenue.foundation.transaction import TransactionRecord


@dataclass(slots=True)
class MonthlySpend:
    """Spend of one buyer within a calendar month."""

    year: int
    month: int
    amount: int = 0
    transactions: int = 0


@dataclass(slots=True)
class CustomerAggregate:
    """Summary of every transaction made by one buyer.

    Attributes
    ----------
    buyer_id:
        Buyer identifier (the unknown sentinel is a regular buyer here).
    total_spent:
        Sum of amounts over all of the buyer's transactions.
    transaction_count:
        Number of transactions, dated or not.
    first_purchase_date:
        Earliest dated purchase, ``None`` if no record carried a usable date.
    last_purchase_date:
        Latest dated purchase, ``None`` if no record carried a usable date.
    monthly_spending:
        Spend per ``(year, month)`` from dated records, in first-seen order.
    """

    buyer_id: str
    total_spent: int = 0
    transaction_count: int = 0
    first_purchase_date: datetime | None = None
    last_purchase_date: datetime | None = None
    monthly_spending: dict[tuple[int, int], MonthlySpend] = field(default_factory=dict)

    @property
    def is_repeat(self) -> bool:
        return self.transaction_count > 1

    @property
    def average_spent(self) -> float:
        if self.transaction_count == 0:
            return 0.0
        return self.total_spent / self.transaction_count

    def add(self, record: TransactionRecord) -> None:
        """Fold one transaction into the aggregate."""

        self.total_spent += record.amount
        self.transaction_count += 1
        if record.date is None:
            return

        if self.first_purchase_date is None or record.date < self.first_purchase_date:
            self.first_purchase_date = record.date
        if self.last_purchase_date is None or record.date > self.last_purchase_date:
            self.last_purchase_date = record.date

        key = (record.date.year, record.date.month)
        bucket = self.monthly_spending.get(key)
        if bucket is None:
            bucket = self.monthly_spending[key] = MonthlySpend(*key)
        bucket.amount += record.amount
        bucket.transactions += 1


def aggregate_customers(records: Iterable[TransactionRecord]) -> list[CustomerAggregate]:
    """Build one :class:`CustomerAggregate` per buyer.

    The result keeps the order in which buyers first appear in ``records`` so
    that stable sorts downstream break ties by first appearance.

    Examples
    --------
    >>> from datetime import datetime
    >>> records = [
    ...     TransactionRecord(buyer_id="A", amount=1000, date=datetime(2024, 1, 5)),
    ...     TransactionRecord(buyer_id="B", amount=3000, date=datetime(2024, 1, 10)),
    ...     TransactionRecord(buyer_id="A", amount=2000, date=datetime(2024, 1, 20)),
    ... ]
    >>> [(c.buyer_id, c.total_spent, c.transaction_count) for c in aggregate_customers(records)]
    [('A', 3000, 2), ('B', 3000, 1)]
    """
    customers: dict[str, CustomerAggregate] = {}
    for record in records:
        aggregate = customers.get(record.buyer_id)
        if aggregate is None:
            aggregate = customers[record.buyer_id] = CustomerAggregate(record.buyer_id)
        aggregate.add(record)
    return list(customers.values())
