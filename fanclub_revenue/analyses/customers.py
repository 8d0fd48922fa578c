"""Customer analysis: repeat detection, segmentation and leaderboards.

Every buyer in a record set is summarised once (see
:func:`fanclub_revenue.foundation.aggregate_customers`) and then:
- classified as repeat (more than one transaction) or new,
- assigned a value segment by spend rank,
- ranked by spend, recency and lifetime value,
- tracked month by month as first-time or returning.

**Segmentation is head-count based**: the thresholds are the spend of the
buyers sitting at the 20% and 60% positions of the spend ranking, not the
points where cumulative revenue reaches 20%/60%. On skewed distributions
the "top 20% of customers" and the "top 20% of revenue" can differ a lot.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence

from fanclub_revenue.analyses._utils import freeze_fields, json_ready
from fanclub_revenue.config import DEFAULT_CONFIG, AnalysisConfig
from fanclub_revenue.foundation.customers import CustomerAggregate, aggregate_customers
from fanclub_revenue.foundation.transaction import TransactionRecord, ensure_records

SECONDS_PER_DAY = 86_400


class CustomerSegment(str, Enum):
    """Value segments, in reporting order."""

    HIGH_VALUE = "high_value"
    MEDIUM_VALUE = "medium_value"
    LOW_VALUE = "low_value"
    NEW = "new"


@dataclass(frozen=True)
class MonthlySpending:
    """Spend of one buyer within a calendar month."""

    year: int
    month: int
    amount: int
    transactions: int


@dataclass(frozen=True)
class CustomerProfile:
    """Buyer summary used by the spender, recency and repeater lists.

    Attributes
    ----------
    name:
        Buyer identifier.
    transaction_count:
        Number of transactions.
    total_spent:
        Total spend in yen.
    average_transaction_value:
        Spend per transaction.
    first_purchase_date:
        Earliest dated purchase (``None`` if the buyer has no dated records).
    last_purchase_date:
        Latest dated purchase (``None`` if the buyer has no dated records).
    purchase_frequency:
        Estimated purchases per 30-day month; 0 for one-time buyers.
    monthly_spending:
        Spend per calendar month, ascending.
    """

    name: str
    transaction_count: int
    total_spent: int
    average_transaction_value: float
    first_purchase_date: datetime | None
    last_purchase_date: datetime | None
    purchase_frequency: float
    monthly_spending: tuple[MonthlySpending, ...] = ()

    def __post_init__(self) -> None:
        freeze_fields(self, "monthly_spending")


@dataclass(frozen=True)
class SegmentSummary:
    """Size and spend of one value segment."""

    segment: CustomerSegment
    count: int
    total_spent: int
    average_spent: float


@dataclass(frozen=True)
class MonthlyCustomerTrend:
    """First-time vs returning purchases within one ``"YYYY-MM"`` month.

    Counts are per transaction: a purchase is "new" when it happened at the
    buyer's first purchase timestamp and "returning" otherwise.
    """

    month: str
    new_customers: int
    returning_customers: int
    total_revenue: int


@dataclass(frozen=True)
class CustomerLifetimeValue:
    """Lifetime value entry for one buyer."""

    name: str
    total_spent: int
    transaction_count: int
    first_purchase_date: datetime | None
    last_purchase_date: datetime | None
    days_active: int


@dataclass(frozen=True)
class CustomerAnalysis:
    """Customer-level analysis results.

    Attributes
    ----------
    total_customers:
        Distinct buyers (the unknown sentinel counts as one).
    repeat_customers:
        Buyers with more than one transaction.
    new_customers:
        Buyers with exactly one transaction.
    repeat_rate:
        Percentage of buyers who are repeat customers.
    average_spending_per_customer:
        Total spend divided by ``total_customers``.
    top_spenders:
        Highest spending buyers, descending.
    recent_customers:
        Most recent buyers by last purchase date, descending.
    all_repeaters:
        Every repeat buyer, in first-seen order.
    customer_segments:
        The four value segments in :class:`CustomerSegment` order.
    monthly_trend:
        New vs returning purchases per month, ascending.
    lifetime_value:
        Every buyer ranked by total spend with their active span.
    """

    total_customers: int
    repeat_customers: int
    new_customers: int
    repeat_rate: float
    average_spending_per_customer: float
    top_spenders: tuple[CustomerProfile, ...] = ()
    recent_customers: tuple[CustomerProfile, ...] = ()
    all_repeaters: tuple[CustomerProfile, ...] = ()
    customer_segments: tuple[SegmentSummary, ...] = ()
    monthly_trend: tuple[MonthlyCustomerTrend, ...] = ()
    lifetime_value: tuple[CustomerLifetimeValue, ...] = ()

    def __post_init__(self) -> None:
        """Validate customer analysis and freeze its collections."""
        freeze_fields(
            self,
            "top_spenders",
            "recent_customers",
            "all_repeaters",
            "customer_segments",
            "monthly_trend",
            "lifetime_value",
        )
        if self.total_customers < 0:
            raise ValueError(
                f"Total customers cannot be negative: {self.total_customers}"
            )
        if self.repeat_customers + self.new_customers != self.total_customers:
            raise ValueError(
                f"Repeat ({self.repeat_customers}) and new ({self.new_customers}) "
                f"customers must add up to total customers ({self.total_customers})"
            )
        if not 0 <= self.repeat_rate <= 100:
            raise ValueError(f"Repeat rate must be 0-100: {self.repeat_rate}")

    @classmethod
    def empty(cls) -> "CustomerAnalysis":
        return cls(
            total_customers=0,
            repeat_customers=0,
            new_customers=0,
            repeat_rate=0.0,
            average_spending_per_customer=0.0,
        )

    def as_dict(self) -> dict[str, Any]:
        """Return JSON-serialisable representation of the analysis."""

        payload = asdict(self)
        for key in ("top_spenders", "recent_customers", "all_repeaters", "lifetime_value"):
            for entry in payload[key]:
                for date_key in ("first_purchase_date", "last_purchase_date"):
                    if entry[date_key] is not None:
                        entry[date_key] = entry[date_key].isoformat()
        for segment in payload["customer_segments"]:
            segment["segment"] = segment["segment"].value
        return json_ready(payload)


def purchase_frequency(
    customer: CustomerAggregate, days_per_month: int = DEFAULT_CONFIG.days_per_month
) -> float:
    """Estimate purchases per month from the first/last purchase span.

    Months are approximated as ``days_per_month`` days and the span is rounded
    up to at least one month. One-time buyers, and buyers without a dated
    span, have a frequency of 0.

    >>> from datetime import datetime
    >>> customer = CustomerAggregate(
    ...     "A", 3000, 2, datetime(2024, 1, 5), datetime(2024, 1, 20)
    ... )
    >>> purchase_frequency(customer)
    2.0
    """
    if customer.transaction_count <= 1:
        return 0.0
    if customer.first_purchase_date is None or customer.last_purchase_date is None:
        return 0.0
    days_between = _days_between(customer.first_purchase_date, customer.last_purchase_date)
    months_between = max(1, math.ceil(days_between / days_per_month))
    return customer.transaction_count / months_between


def segment_thresholds(
    customers: Sequence[CustomerAggregate], config: AnalysisConfig = DEFAULT_CONFIG
) -> tuple[int, int]:
    """Return ``(high_value_threshold, medium_value_threshold)``.

    Thresholds are the spend of the customers at positions
    ``floor(high_value_rank * N)`` and ``floor(medium_value_rank * N)`` of
    the spend ranking (descending).
    """
    if not customers:
        return 0, 0
    ranked = sorted(customers, key=lambda c: c.total_spent, reverse=True)
    high_index = math.floor(config.high_value_rank * len(ranked))
    medium_index = math.floor(config.medium_value_rank * len(ranked))
    return ranked[high_index].total_spent, ranked[medium_index].total_spent


def classify_customer(
    customer: CustomerAggregate, high_threshold: int, medium_threshold: int
) -> CustomerSegment:
    """Assign a value segment; rules are evaluated top to bottom."""

    if customer.total_spent >= high_threshold:
        return CustomerSegment.HIGH_VALUE
    if customer.total_spent >= medium_threshold:
        return CustomerSegment.MEDIUM_VALUE
    if customer.transaction_count > 1:
        return CustomerSegment.LOW_VALUE
    return CustomerSegment.NEW


def analyze_customers(
    records: Sequence[TransactionRecord | Mapping[str, Any]],
    config: AnalysisConfig = DEFAULT_CONFIG,
    *,
    today: datetime | None = None,
) -> CustomerAnalysis:
    """Perform customer analysis on a record set.

    Parameters
    ----------
    records:
        Normalised records, or raw export rows which are normalised first.
    config:
        Leaderboard size, segment ranks and month length.
    today:
        Reference date for year-less timestamps in raw rows.

    Returns
    -------
    CustomerAnalysis
        Zero-valued analysis with empty collections when ``records`` is empty.

    Raises
    ------
    TypeError
        If ``records`` is not a list/tuple of records or mappings.

    Examples
    --------
    >>> from datetime import datetime
    >>> analysis = analyze_customers([
    ...     TransactionRecord(buyer_id="A", amount=1000, date=datetime(2024, 1, 5)),
    ...     TransactionRecord(buyer_id="A", amount=2000, date=datetime(2024, 1, 20)),
    ...     TransactionRecord(buyer_id="B", amount=3000, date=datetime(2024, 1, 10)),
    ... ])
    >>> analysis.total_customers, analysis.repeat_customers, analysis.repeat_rate
    (2, 1, 50.0)
    >>> analysis.all_repeaters[0].purchase_frequency
    2.0
    """
    records = ensure_records(records, today=today, unknown_label=config.unknown_label)
    if not records:
        return CustomerAnalysis.empty()

    customers = aggregate_customers(records)
    profiles = {
        customer.buyer_id: _profile(customer, config.days_per_month)
        for customer in customers
    }

    total_customers = len(customers)
    repeat_customers = sum(1 for customer in customers if customer.is_repeat)
    total_spent = sum(customer.total_spent for customer in customers)

    by_spend = sorted(customers, key=lambda c: c.total_spent, reverse=True)
    # Undated buyers sort after every dated one
    by_recency = sorted(
        customers,
        key=lambda c: (c.last_purchase_date is not None, c.last_purchase_date or datetime.min),
        reverse=True,
    )

    return CustomerAnalysis(
        total_customers=total_customers,
        repeat_customers=repeat_customers,
        new_customers=total_customers - repeat_customers,
        repeat_rate=repeat_customers / total_customers * 100,
        average_spending_per_customer=total_spent / total_customers,
        top_spenders=[profiles[c.buyer_id] for c in by_spend[: config.top_n]],
        recent_customers=[profiles[c.buyer_id] for c in by_recency[: config.top_n]],
        all_repeaters=[profiles[c.buyer_id] for c in customers if c.is_repeat],
        customer_segments=_segment_summaries(customers, config),
        monthly_trend=_monthly_trend(records, customers),
        lifetime_value=[
            CustomerLifetimeValue(
                name=c.buyer_id,
                total_spent=c.total_spent,
                transaction_count=c.transaction_count,
                first_purchase_date=c.first_purchase_date,
                last_purchase_date=c.last_purchase_date,
                days_active=_days_active(c),
            )
            for c in by_spend
        ],
    )


def _days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def _days_active(customer: CustomerAggregate) -> int:
    if customer.first_purchase_date is None or customer.last_purchase_date is None:
        return 0
    return math.ceil(
        _days_between(customer.first_purchase_date, customer.last_purchase_date)
    )


def _profile(customer: CustomerAggregate, days_per_month: int) -> CustomerProfile:
    return CustomerProfile(
        name=customer.buyer_id,
        transaction_count=customer.transaction_count,
        total_spent=customer.total_spent,
        average_transaction_value=customer.average_spent,
        first_purchase_date=customer.first_purchase_date,
        last_purchase_date=customer.last_purchase_date,
        purchase_frequency=purchase_frequency(customer, days_per_month),
        monthly_spending=[
            MonthlySpending(
                year=spend.year,
                month=spend.month,
                amount=spend.amount,
                transactions=spend.transactions,
            )
            for _, spend in sorted(customer.monthly_spending.items())
        ],
    )


def _segment_summaries(
    customers: Sequence[CustomerAggregate], config: AnalysisConfig
) -> list[SegmentSummary]:
    high_threshold, medium_threshold = segment_thresholds(customers, config)
    totals = {segment: [0, 0] for segment in CustomerSegment}
    for customer in customers:
        segment = classify_customer(customer, high_threshold, medium_threshold)
        totals[segment][0] += 1
        totals[segment][1] += customer.total_spent

    return [
        SegmentSummary(
            segment=segment,
            count=count,
            total_spent=spent,
            average_spent=spent / count if count else 0.0,
        )
        for segment, (count, spent) in totals.items()
    ]


def _monthly_trend(
    records: Sequence[TransactionRecord], customers: Sequence[CustomerAggregate]
) -> list[MonthlyCustomerTrend]:
    first_purchase = {c.buyer_id: c.first_purchase_date for c in customers}
    grouped: dict[str, list[int]] = {}
    for record in records:
        if record.month_key is None:
            continue
        totals = grouped.setdefault(record.month_key, [0, 0, 0])
        if record.date == first_purchase[record.buyer_id]:
            totals[0] += 1
        else:
            totals[1] += 1
        totals[2] += record.amount

    return [
        MonthlyCustomerTrend(
            month=month,
            new_customers=new,
            returning_customers=returning,
            total_revenue=revenue,
        )
        for month, (new, returning, revenue) in sorted(grouped.items())
    ]
