"""Revenue analysis for a set of fan-club transactions.

Answers the questions a creator asks about one upload (or any record set):
- How much was sold, and how much did the platform keep?
- Who are the biggest buyers and which plans/items sell best?
- How does revenue split across months and purchase types?
- What share of buyers came back for more than one purchase?
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from fanclub_revenue.analyses._utils import freeze_fields, freeze_month_map, json_ready
from fanclub_revenue.config import DEFAULT_CONFIG, AnalysisConfig
from fanclub_revenue.foundation.customers import aggregate_customers
from fanclub_revenue.foundation.transaction import (
    TransactionKind,
    TransactionRecord,
    ensure_records,
)


@dataclass(frozen=True)
class BuyerSummary:
    """Leaderboard entry for one buyer."""

    name: str
    total_spent: int
    transaction_count: int
    average_spent: float


@dataclass(frozen=True)
class ProductSummary:
    """Leaderboard entry for one plan or item.

    ``kind`` is taken from the first transaction seen for the product.
    """

    name: str
    revenue: int
    sales_count: int
    kind: str


@dataclass(frozen=True)
class ProductDetail:
    """Sales of one plan/item within a purchase type."""

    name: str
    sales_count: int
    total_revenue: int
    average_price: float


@dataclass(frozen=True)
class MonthlyProductDetail:
    """Sales of one plan/item within a purchase type and month."""

    name: str
    sales_count: int
    total_revenue: int


@dataclass(frozen=True)
class MonthlyRevenue:
    """Revenue, fees and transaction count for one ``"YYYY-MM"`` month."""

    month: str
    revenue: int
    fees: int
    transactions: int


# ("YYYY-MM", details) pairs, months ascending
MonthlyDetails = tuple[tuple[str, tuple[MonthlyProductDetail, ...]], ...]


@dataclass(frozen=True)
class RevenueAnalysis:
    """Revenue summary of a record set.

    Attributes
    ----------
    total_revenue:
        Sum of amounts paid, in yen.
    total_fees:
        Sum of platform fees, in yen.
    net_revenue:
        ``total_revenue - total_fees``.
    total_transactions:
        Number of records, dated or not.
    plan_purchases:
        Number of plan purchases.
    single_purchases:
        Number of single item purchases.
    top_buyers:
        Highest spending buyers, descending.
    top_products:
        Highest earning plans/items, descending.
    plan_details:
        Every plan with its sales, most sold first.
    single_item_details:
        Every single item with its sales, most sold first.
    monthly_plan_details:
        ``("YYYY-MM", plan sales that month)`` pairs, months ascending.
        A mapping passed in is converted; ``dict(...)`` gives it back.
    monthly_single_item_details:
        ``("YYYY-MM", single item sales that month)`` pairs, months ascending.
    monthly_revenue:
        Revenue series, months ascending. Undated records are not included.
    average_transaction_value:
        Revenue per transaction.
    total_customers:
        Distinct buyers; the unknown sentinel counts as one buyer.
    average_spending_per_customer:
        Revenue per distinct buyer.
    fee_rate:
        Fees as a percentage of revenue.
    repeat_rate:
        Percentage of buyers with more than one transaction.
    """

    total_revenue: int
    total_fees: int
    net_revenue: int
    total_transactions: int
    plan_purchases: int
    single_purchases: int
    top_buyers: tuple[BuyerSummary, ...] = ()
    top_products: tuple[ProductSummary, ...] = ()
    plan_details: tuple[ProductDetail, ...] = ()
    single_item_details: tuple[ProductDetail, ...] = ()
    monthly_plan_details: MonthlyDetails = ()
    monthly_single_item_details: MonthlyDetails = ()
    monthly_revenue: tuple[MonthlyRevenue, ...] = ()
    average_transaction_value: float = 0.0
    total_customers: int = 0
    average_spending_per_customer: float = 0.0
    fee_rate: float = 0.0
    repeat_rate: float = 0.0

    def __post_init__(self) -> None:
        """Validate revenue analysis and freeze its collections."""
        freeze_fields(
            self,
            "top_buyers",
            "top_products",
            "plan_details",
            "single_item_details",
            "monthly_revenue",
        )
        freeze_month_map(self, "monthly_plan_details")
        freeze_month_map(self, "monthly_single_item_details")
        if self.total_revenue < 0:
            raise ValueError(f"Total revenue cannot be negative: {self.total_revenue}")
        if self.total_fees < 0:
            raise ValueError(f"Total fees cannot be negative: {self.total_fees}")
        if self.total_transactions < 0:
            raise ValueError(
                f"Total transactions cannot be negative: {self.total_transactions}"
            )
        if self.plan_purchases + self.single_purchases > self.total_transactions:
            raise ValueError(
                f"Purchases by kind ({self.plan_purchases + self.single_purchases}) "
                f"cannot exceed total transactions ({self.total_transactions})"
            )
        if self.total_customers > self.total_transactions:
            raise ValueError(
                f"Total customers ({self.total_customers}) cannot exceed "
                f"total transactions ({self.total_transactions})"
            )
        if not 0 <= self.repeat_rate <= 100:
            raise ValueError(f"Repeat rate must be 0-100: {self.repeat_rate}")
        if self.fee_rate < 0:
            raise ValueError(f"Fee rate cannot be negative: {self.fee_rate}")

    @classmethod
    def empty(cls) -> "RevenueAnalysis":
        return cls(
            total_revenue=0,
            total_fees=0,
            net_revenue=0,
            total_transactions=0,
            plan_purchases=0,
            single_purchases=0,
        )

    def as_dict(self) -> dict[str, Any]:
        """Return JSON-serialisable representation of the analysis.

        Monthly details come back as ``{"YYYY-MM": [...]}`` objects.
        """

        payload = asdict(self)
        for key in ("monthly_plan_details", "monthly_single_item_details"):
            payload[key] = dict(payload[key])
        return json_ready(payload)


def analyze_revenue(
    records: Sequence[TransactionRecord | Mapping[str, Any]],
    config: AnalysisConfig = DEFAULT_CONFIG,
    *,
    today: datetime | None = None,
) -> RevenueAnalysis:
    """Compute the revenue summary of a record set.

    Parameters
    ----------
    records:
        Normalised records, or raw export rows which are normalised first.
    config:
        Leaderboard size and unknown sentinel.
    today:
        Reference date for year-less timestamps in raw rows.

    Returns
    -------
    RevenueAnalysis
        Zero-valued analysis with empty collections when ``records`` is empty.

    Raises
    ------
    TypeError
        If ``records`` is not a list/tuple of records or mappings.

    Examples
    --------
    >>> from datetime import datetime
    >>> analysis = analyze_revenue([
    ...     TransactionRecord(buyer_id="A", amount=1000, fee=100, date=datetime(2024, 1, 5)),
    ...     TransactionRecord(buyer_id="A", amount=2000, fee=200, date=datetime(2024, 1, 20)),
    ...     TransactionRecord(buyer_id="B", amount=3000, fee=300, date=datetime(2024, 1, 10)),
    ... ])
    >>> analysis.total_revenue, analysis.total_customers, analysis.repeat_rate
    (6000, 2, 50.0)
    >>> analysis.fee_rate
    10.0
    """
    records = ensure_records(records, today=today, unknown_label=config.unknown_label)
    if not records:
        return RevenueAnalysis.empty()

    total_transactions = len(records)
    total_revenue = sum(record.amount for record in records)
    total_fees = sum(record.fee for record in records)

    plan_purchases = sum(
        1 for record in records if record.kind == TransactionKind.PLAN_PURCHASE
    )
    single_purchases = sum(
        1 for record in records if record.kind == TransactionKind.SINGLE_ITEM_PURCHASE
    )

    customers = aggregate_customers(records)
    top_buyers = [
        BuyerSummary(
            name=customer.buyer_id,
            total_spent=customer.total_spent,
            transaction_count=customer.transaction_count,
            average_spent=customer.average_spent,
        )
        for customer in sorted(customers, key=lambda c: c.total_spent, reverse=True)[
            : config.top_n
        ]
    ]

    total_customers = len(customers)
    repeat_customers = sum(1 for customer in customers if customer.is_repeat)

    return RevenueAnalysis(
        total_revenue=total_revenue,
        total_fees=total_fees,
        net_revenue=total_revenue - total_fees,
        total_transactions=total_transactions,
        plan_purchases=plan_purchases,
        single_purchases=single_purchases,
        top_buyers=top_buyers,
        top_products=_top_products(records, config.top_n),
        plan_details=_product_details(records, TransactionKind.PLAN_PURCHASE),
        single_item_details=_product_details(
            records, TransactionKind.SINGLE_ITEM_PURCHASE
        ),
        monthly_plan_details=_monthly_product_details(
            records, TransactionKind.PLAN_PURCHASE
        ),
        monthly_single_item_details=_monthly_product_details(
            records, TransactionKind.SINGLE_ITEM_PURCHASE
        ),
        monthly_revenue=_monthly_revenue(records),
        average_transaction_value=_ratio(total_revenue, total_transactions),
        total_customers=total_customers,
        average_spending_per_customer=_ratio(total_revenue, total_customers),
        fee_rate=_ratio(total_fees, total_revenue) * 100,
        repeat_rate=_ratio(repeat_customers, total_customers) * 100,
    )


def _ratio(numerator: float, denominator: float) -> float:
    """Divide, returning 0 for an empty denominator."""

    if denominator == 0:
        return 0.0
    return numerator / denominator


def _top_products(records: Iterable[TransactionRecord], limit: int) -> list[ProductSummary]:
    grouped: dict[str, dict[str, Any]] = {}
    for record in records:
        bucket = grouped.setdefault(
            record.target, {"revenue": 0, "sales_count": 0, "kind": record.kind}
        )
        bucket["revenue"] += record.amount
        bucket["sales_count"] += 1

    products = [
        ProductSummary(
            name=name,
            revenue=payload["revenue"],
            sales_count=payload["sales_count"],
            kind=payload["kind"],
        )
        for name, payload in grouped.items()
    ]
    products.sort(key=lambda product: product.revenue, reverse=True)
    return products[:limit]


def _sales_by_target(records: Iterable[TransactionRecord]) -> dict[str, list[int]]:
    """Group records by target into ``[sales_count, total_revenue]`` pairs."""

    grouped: dict[str, list[int]] = {}
    for record in records:
        totals = grouped.setdefault(record.target, [0, 0])
        totals[0] += 1
        totals[1] += record.amount
    return grouped


def _product_details(
    records: Sequence[TransactionRecord], kind: TransactionKind
) -> list[ProductDetail]:
    grouped = _sales_by_target(record for record in records if record.kind == kind)
    details = [
        ProductDetail(
            name=name,
            sales_count=sales_count,
            total_revenue=total_revenue,
            average_price=_ratio(total_revenue, sales_count),
        )
        for name, (sales_count, total_revenue) in grouped.items()
    ]
    details.sort(key=lambda detail: detail.sales_count, reverse=True)
    return details


def _monthly_product_details(
    records: Sequence[TransactionRecord], kind: TransactionKind
) -> dict[str, list[MonthlyProductDetail]]:
    by_month: dict[str, list[TransactionRecord]] = {}
    for record in records:
        if record.kind != kind or record.month_key is None:
            continue
        by_month.setdefault(record.month_key, []).append(record)

    result: dict[str, list[MonthlyProductDetail]] = {}
    for month in sorted(by_month):
        details = [
            MonthlyProductDetail(
                name=name, sales_count=sales_count, total_revenue=total_revenue
            )
            for name, (sales_count, total_revenue) in _sales_by_target(
                by_month[month]
            ).items()
        ]
        details.sort(key=lambda detail: detail.sales_count, reverse=True)
        result[month] = details
    return result


def _monthly_revenue(records: Iterable[TransactionRecord]) -> list[MonthlyRevenue]:
    grouped: dict[str, list[int]] = {}
    for record in records:
        if record.month_key is None:
            continue
        totals = grouped.setdefault(record.month_key, [0, 0, 0])
        totals[0] += record.amount
        totals[1] += record.fee
        totals[2] += 1

    return [
        MonthlyRevenue(month=month, revenue=revenue, fees=fees, transactions=count)
        for month, (revenue, fees, count) in sorted(grouped.items())
    ]
