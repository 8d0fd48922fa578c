"""Time-bucketed activity matrices for purchase-timing heatmaps.

Three views are produced from a creator's records:
- day of month for one selected month (every day present, zero or not),
- hour of day over all records,
- weekday x hour over all records (weekday 0 = Sunday).

Undated records are excluded from every view.
"""

from __future__ import annotations

import calendar
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from fanclub_revenue.analyses._utils import freeze_fields, json_ready
from fanclub_revenue.config import DEFAULT_CONFIG, AnalysisConfig
from fanclub_revenue.foundation.transaction import TransactionRecord, ensure_records

HOURS_PER_DAY = 24
DAYS_PER_WEEK = 7

# Heatmap maxima never drop below this so intensity = value / max is defined
MIN_SCALE = 1

_SUNDAY_FIRST = calendar.Calendar(firstweekday=calendar.SUNDAY)


@dataclass(frozen=True)
class ActivityCell:
    """Revenue and transaction count of one time bucket."""

    revenue: int = 0
    transaction_count: int = 0


@dataclass(frozen=True)
class DayActivity:
    day: int
    revenue: int
    transaction_count: int


@dataclass(frozen=True)
class HourActivity:
    hour: int
    revenue: int
    transaction_count: int


@dataclass(frozen=True)
class CalendarAnalysis:
    """Activity matrices for one creator and target month.

    Attributes
    ----------
    year, month:
        Month covered by ``days``.
    days:
        One entry per calendar day of the target month.
    hours:
        24 entries over all dated records.
    weekday_hours:
        7 rows (Sunday first) of 24 cells over all dated records.
    max_day_revenue, max_day_transactions:
        Maxima of ``days`` (at least 1).
    max_hour_revenue, max_hour_transactions:
        Maxima of ``hours`` (at least 1).
    weekday_max_revenue:
        Maximum revenue of each ``weekday_hours`` row (at least 1).
    """

    year: int
    month: int
    days: tuple[DayActivity, ...]
    hours: tuple[HourActivity, ...]
    weekday_hours: tuple[tuple[ActivityCell, ...], ...]
    max_day_revenue: int
    max_day_transactions: int
    max_hour_revenue: int
    max_hour_transactions: int
    weekday_max_revenue: tuple[int, ...]

    def __post_init__(self) -> None:
        """Validate matrix shapes and freeze the matrices."""
        freeze_fields(self, "days", "hours", "weekday_max_revenue")
        object.__setattr__(
            self, "weekday_hours", tuple(tuple(row) for row in self.weekday_hours)
        )
        expected_days = days_in_month(self.year, self.month)
        if len(self.days) != expected_days:
            raise ValueError(
                f"Expected {expected_days} day entries for {self.year}-{self.month:02d}, "
                f"got {len(self.days)}"
            )
        if len(self.hours) != HOURS_PER_DAY:
            raise ValueError(f"Expected {HOURS_PER_DAY} hour entries, got {len(self.hours)}")
        if len(self.weekday_hours) != DAYS_PER_WEEK or any(
            len(row) != HOURS_PER_DAY for row in self.weekday_hours
        ):
            raise ValueError("Weekday x hour matrix must be 7 x 24")

    def as_dict(self) -> dict[str, Any]:
        """Return JSON-serialisable representation of the matrices."""

        return json_ready(asdict(self))


def days_in_month(year: int, month: int) -> int:
    """Number of days in ``year``/``month``.

    >>> days_in_month(2024, 2)
    29
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be 1-12: {month}")
    return calendar.monthrange(year, month)[1]


def sunday_based_weekday(moment: datetime) -> int:
    """Weekday index with 0 = Sunday ... 6 = Saturday."""

    return (moment.weekday() + 1) % DAYS_PER_WEEK


def analyze_calendar(
    records: Sequence[TransactionRecord | Mapping[str, Any]],
    year: int,
    month: int,
    config: AnalysisConfig = DEFAULT_CONFIG,
    *,
    today: datetime | None = None,
) -> CalendarAnalysis:
    """Build the day, hour and weekday x hour activity matrices.

    Parameters
    ----------
    records:
        Normalised records, or raw export rows which are normalised first.
    year, month:
        Month for the day-of-month view. The hour and weekday views always
        cover every dated record.
    config:
        Only the unknown sentinel is used, when normalising raw rows.
    today:
        Reference date for year-less timestamps in raw rows.

    Raises
    ------
    TypeError
        If ``records`` is not a list/tuple of records or mappings.
    ValueError
        If ``month`` is not 1-12.

    Examples
    --------
    >>> result = analyze_calendar([], 2024, 2)
    >>> len(result.days), result.max_day_revenue
    (29, 1)
    """
    total_days = days_in_month(year, month)
    records = ensure_records(records, today=today, unknown_label=config.unknown_label)

    day_totals = [[0, 0] for _ in range(total_days)]
    hour_totals = [[0, 0] for _ in range(HOURS_PER_DAY)]
    weekday_totals = [
        [[0, 0] for _ in range(HOURS_PER_DAY)] for _ in range(DAYS_PER_WEEK)
    ]

    for record in _dated(records):
        moment = record.date
        if moment.year == year and moment.month == month:
            _add(day_totals[moment.day - 1], record.amount)
        _add(hour_totals[moment.hour], record.amount)
        _add(weekday_totals[sunday_based_weekday(moment)][moment.hour], record.amount)

    days = [
        DayActivity(day=index + 1, revenue=revenue, transaction_count=count)
        for index, (revenue, count) in enumerate(day_totals)
    ]
    hours = [
        HourActivity(hour=hour, revenue=revenue, transaction_count=count)
        for hour, (revenue, count) in enumerate(hour_totals)
    ]
    weekday_hours = [
        [ActivityCell(revenue=revenue, transaction_count=count) for revenue, count in row]
        for row in weekday_totals
    ]

    return CalendarAnalysis(
        year=year,
        month=month,
        days=days,
        hours=hours,
        weekday_hours=weekday_hours,
        max_day_revenue=_scale(day.revenue for day in days),
        max_day_transactions=_scale(day.transaction_count for day in days),
        max_hour_revenue=_scale(hour.revenue for hour in hours),
        max_hour_transactions=_scale(hour.transaction_count for hour in hours),
        weekday_max_revenue=[_scale(cell.revenue for cell in row) for row in weekday_hours],
    )


def calendar_weeks(year: int, month: int) -> list[list[int | None]]:
    """Sunday-first week grid of the month, padded with ``None``.

    >>> calendar_weeks(2024, 9)[0]
    [1, 2, 3, 4, 5, 6, 7]
    """
    days_in_month(year, month)
    return [
        [day or None for day in week]
        for week in _SUNDAY_FIRST.monthdayscalendar(year, month)
    ]


def available_years(
    records: Sequence[TransactionRecord | Mapping[str, Any]],
    *,
    today: datetime | None = None,
) -> list[int]:
    """Distinct years of the dated records, most recent first."""

    records = ensure_records(records, today=today)
    return sorted({record.date.year for record in _dated(records)}, reverse=True)


def _dated(records: Iterable[TransactionRecord]) -> Iterable[TransactionRecord]:
    return (record for record in records if record.date is not None)


def _add(totals: list[int], amount: int) -> None:
    totals[0] += amount
    totals[1] += 1


def _scale(values: Iterable[int]) -> int:
    return max([MIN_SCALE, *values])
