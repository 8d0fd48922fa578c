"""Roll-ups over stored buckets for the creator overview."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from fanclub_revenue.store.buckets import MonthlyBucket, MonthlyBucketStore

if TYPE_CHECKING:
    from fanclub_revenue.store.creators import CreatorRegistry


@dataclass(frozen=True)
class MonthlySummary:
    """Headline numbers of one stored month."""

    year: int
    month: int
    total_revenue: int
    total_fees: int
    total_transactions: int
    plan_purchases: int
    single_purchases: int
    uploaded_at: datetime

    def as_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "total_revenue": self.total_revenue,
            "total_fees": self.total_fees,
            "total_transactions": self.total_transactions,
            "plan_purchases": self.plan_purchases,
            "single_purchases": self.single_purchases,
            "uploaded_at": self.uploaded_at.isoformat(),
        }


@dataclass(frozen=True)
class CreatorRevenueSummary:
    """Totals of a creator across every stored month.

    Attributes
    ----------
    creator_id, creator_name:
        Creator the summary describes.
    total_revenue, total_fees, total_transactions:
        Sums over all months.
    plan_purchases, single_purchases:
        Purchase counts by kind over all months.
    monthly:
        One entry per stored month, newest first.
    last_activity:
        Most recent upload time, or the creator's creation time when nothing
        has been uploaded (``None`` if that is unknown too).
    """

    creator_id: str
    creator_name: str
    total_revenue: int
    total_fees: int
    total_transactions: int
    plan_purchases: int
    single_purchases: int
    monthly: tuple[MonthlySummary, ...] = ()
    last_activity: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.monthly, tuple):
            object.__setattr__(self, "monthly", tuple(self.monthly))

    def as_dict(self) -> dict[str, Any]:
        return {
            "creator_id": self.creator_id,
            "creator_name": self.creator_name,
            "total_revenue": self.total_revenue,
            "total_fees": self.total_fees,
            "total_transactions": self.total_transactions,
            "plan_purchases": self.plan_purchases,
            "single_purchases": self.single_purchases,
            "monthly": [month.as_dict() for month in self.monthly],
            "last_activity": (
                self.last_activity.isoformat() if self.last_activity is not None else None
            ),
        }


def summarize_month(bucket: MonthlyBucket) -> MonthlySummary:
    analysis = bucket.analysis
    return MonthlySummary(
        year=bucket.year,
        month=bucket.month,
        total_revenue=analysis.total_revenue,
        total_fees=analysis.total_fees,
        total_transactions=analysis.total_transactions,
        plan_purchases=analysis.plan_purchases,
        single_purchases=analysis.single_purchases,
        uploaded_at=bucket.uploaded_at,
    )


def summarize_creator(
    creator_id: str,
    creator_name: str,
    buckets: Iterable[MonthlyBucket],
    created_at: datetime | None = None,
) -> CreatorRevenueSummary:
    """Summarise a creator's stored months.

    Buckets of other creators are ignored, so the full store listing can be
    passed in directly.
    """
    own = [bucket for bucket in buckets if bucket.creator_id == creator_id]
    monthly = sorted(
        (summarize_month(bucket) for bucket in own),
        key=lambda summary: (summary.year, summary.month),
        reverse=True,
    )
    last_activity = max((bucket.last_modified for bucket in own), default=created_at)

    return CreatorRevenueSummary(
        creator_id=creator_id,
        creator_name=creator_name,
        total_revenue=sum(summary.total_revenue for summary in monthly),
        total_fees=sum(summary.total_fees for summary in monthly),
        total_transactions=sum(summary.total_transactions for summary in monthly),
        plan_purchases=sum(summary.plan_purchases for summary in monthly),
        single_purchases=sum(summary.single_purchases for summary in monthly),
        monthly=tuple(monthly),
        last_activity=last_activity,
    )


def summarize_creators(
    registry: CreatorRegistry, store: MonthlyBucketStore
) -> list[CreatorRevenueSummary]:
    """Summarise every registered creator, in registration order.

    Creators without uploads are included with zero totals; their
    ``last_activity`` is their creation time.
    """
    return [
        summarize_creator(
            creator.creator_id,
            creator.display_name,
            store.list_by_creator(creator.creator_id),
            created_at=creator.created_at,
        )
        for creator in registry.list_all()
    ]
