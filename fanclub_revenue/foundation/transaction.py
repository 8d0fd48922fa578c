"""Transaction record definitions and normalisation utilities.

Creators export their fan-club sales as CSV files. Once parsed, every row is
turned into a :class:`TransactionRecord`, the only input shape the analytics
engine understands. Normalisation never rejects a row because of bad cell
values: missing names fall back to a sentinel, unusable amounts become 0 and
unparseable dates become ``None`` so the record still counts towards totals
but drops out of every date-bucketed view.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Mapping, Sequence

from fanclub_revenue.config import UNKNOWN_LABEL


class TransactionKind(str, Enum):
    """Purchase types found in the export's ``種類`` column."""

    PLAN_PURCHASE = "プラン購入"
    SINGLE_ITEM_PURCHASE = "単品販売"


_KIND_ALIASES = {
    "プラン購入": TransactionKind.PLAN_PURCHASE,
    "plan": TransactionKind.PLAN_PURCHASE,
    "plan_purchase": TransactionKind.PLAN_PURCHASE,
    "planpurchase": TransactionKind.PLAN_PURCHASE,
    "単品販売": TransactionKind.SINGLE_ITEM_PURCHASE,
    "single": TransactionKind.SINGLE_ITEM_PURCHASE,
    "single_item_purchase": TransactionKind.SINGLE_ITEM_PURCHASE,
    "singleitempurchase": TransactionKind.SINGLE_ITEM_PURCHASE,
}

#: Column names accepted for each record field, in lookup order.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("日付", "date"),
    "amount": ("金額", "amount"),
    "fee": ("手数料", "fee"),
    "kind": ("種類", "kind", "type"),
    "target": ("対象", "target", "product"),
    "buyer_id": ("購入者", "顧客名", "buyer_id", "buyer", "customer"),
}

# "3月10日 9:00:00" style timestamps, exported without a year
_LOCALE_DATE_PATTERN = re.compile(r"(\d+)月(\d+)日\s+(\d+):(\d+):(\d+)")

_FALLBACK_FORMATS = ("%Y/%m/%d %H:%M:%S", "%Y/%m/%d %H:%M", "%Y/%m/%d")

_YEN_NOISE = str.maketrans("", "", ",¥￥円 ")


@dataclass(frozen=True)
class TransactionRecord:
    """A single normalised fan-club transaction.

    Attributes
    ----------
    date:
        Purchase timestamp (timezone-naive), or ``None`` when the source value
        was missing or could not be parsed.
    amount:
        Amount paid by the buyer in yen.
    fee:
        Platform fee retained on the transaction in yen.
    kind:
        Purchase type. Recognised values are the :class:`TransactionKind`
        values; anything else is kept verbatim.
    target:
        Plan or item name.
    buyer_id:
        Buyer identifier as it appears in the export.
    raw_date:
        Original date text, kept for auditing unparseable rows.
    """

    date: datetime | None = None
    amount: int = 0
    fee: int = 0
    kind: str = UNKNOWN_LABEL
    target: str = UNKNOWN_LABEL
    buyer_id: str = UNKNOWN_LABEL
    raw_date: str | None = None

    def __post_init__(self) -> None:
        """Validate transaction values."""
        if self.amount < 0:
            raise ValueError(f"Amount cannot be negative: {self.amount}")
        if self.fee < 0:
            raise ValueError(f"Fee cannot be negative: {self.fee}")
        if self.date is not None and self.date.tzinfo is not None:
            raise ValueError(f"Transaction date must be timezone-naive: {self.date}")

    @property
    def month_key(self) -> str | None:
        """``"YYYY-MM"`` of the purchase date, ``None`` for undated records."""

        if self.date is None:
            return None
        return f"{self.date.year:04d}-{self.date.month:02d}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat() if self.date is not None else None,
            "amount": self.amount,
            "fee": self.fee,
            "kind": self.kind,
            "target": self.target,
            "buyer_id": self.buyer_id,
            "raw_date": self.raw_date,
        }


def parse_transaction_date(value: Any, *, today: datetime | None = None) -> datetime | None:
    """Parse an export timestamp.

    Accepts ``datetime``/``date`` objects, ISO-8601 strings and the export's
    year-less ``"<month>月<day>日 H:mm:ss"`` pattern. Year-less dates are
    placed in the previous calendar year when their month is later than the
    current month, otherwise in the current year.

    Parameters
    ----------
    value:
        Raw cell value.
    today:
        Reference "now" for year-less dates. Defaults to the current time.

    Returns
    -------
    datetime | None
        A timezone-naive timestamp, or ``None`` when the value is missing or
        unparseable. Timezone-aware inputs keep their wall-clock time.

    Examples
    --------
    >>> parse_transaction_date("3月10日 9:00:00", today=datetime(2025, 1, 15))
    datetime.datetime(2024, 3, 10, 9, 0)
    >>> parse_transaction_date("not a date") is None
    True
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = _clean_text(value)
    if text is None:
        return None

    match = _LOCALE_DATE_PATTERN.search(text)
    if match:
        month, day, hour, minute, second = (int(part) for part in match.groups())
        now = today or datetime.now()
        year = now.year - 1 if month > now.month else now.year
        try:
            return datetime(year, month, day, hour, minute, second)
        except ValueError:
            return None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in _FALLBACK_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    return parsed.replace(tzinfo=None)


def coerce_yen(value: Any) -> int:
    """Convert a raw amount cell to whole yen.

    Missing, non-numeric, non-finite and negative values become 0. Thousands
    separators and currency marks are ignored; fractions round half-up.

    >>> coerce_yen("1,200円")
    1200
    >>> coerce_yen("n/a")
    0
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    try:
        amount = Decimal(str(value).translate(_YEN_NOISE))
    except InvalidOperation:
        return 0
    if not amount.is_finite() or amount < 0:
        return 0
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalise_kind(value: Any, *, unknown_label: str = UNKNOWN_LABEL) -> str:
    """Map known purchase-type spellings onto :class:`TransactionKind` values."""

    text = _clean_text(value)
    if text is None:
        return unknown_label
    kind = _KIND_ALIASES.get(text) or _KIND_ALIASES.get(text.lower())
    return kind.value if kind is not None else text


def normalize_record(
    row: Mapping[str, Any],
    *,
    today: datetime | None = None,
    unknown_label: str = UNKNOWN_LABEL,
) -> TransactionRecord:
    """Normalise one raw export row into a :class:`TransactionRecord`.

    Parameters
    ----------
    row:
        Mapping keyed by the export's Japanese column names or the English
        aliases listed in :data:`FIELD_ALIASES`.
    today:
        Reference date for year-less timestamps.
    unknown_label:
        Sentinel used for missing buyer, target and kind values. All rows
        without a buyer collapse into a single synthetic customer.
    """

    raw_date = _lookup(row, "date")
    return TransactionRecord(
        date=parse_transaction_date(raw_date, today=today),
        amount=coerce_yen(_lookup(row, "amount")),
        fee=coerce_yen(_lookup(row, "fee")),
        kind=normalise_kind(_lookup(row, "kind"), unknown_label=unknown_label),
        target=_clean_text(_lookup(row, "target")) or unknown_label,
        buyer_id=_clean_text(_lookup(row, "buyer_id")) or unknown_label,
        raw_date=_raw_date_text(raw_date),
    )


def ensure_records(
    records: Sequence[TransactionRecord | Mapping[str, Any]],
    *,
    today: datetime | None = None,
    unknown_label: str = UNKNOWN_LABEL,
) -> list[TransactionRecord]:
    """Validate a record collection, normalising raw rows along the way.

    Raises
    ------
    TypeError
        If ``records`` is not a list/tuple, or contains an item that is
        neither a :class:`TransactionRecord` nor a mapping.
    """

    if not isinstance(records, (list, tuple)):
        raise TypeError(
            "Transaction records must be provided as a list",
            {"type": type(records).__name__},
        )

    normalised: list[TransactionRecord] = []
    for idx, item in enumerate(records):
        if isinstance(item, TransactionRecord):
            normalised.append(item)
        elif isinstance(item, Mapping):
            normalised.append(
                normalize_record(item, today=today, unknown_label=unknown_label)
            )
        else:
            raise TypeError(
                "Transaction record must be a TransactionRecord or a mapping",
                {"record_index": idx, "type": type(item).__name__},
            )
    return normalised


def _lookup(row: Mapping[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES[field]:
        value = row.get(key)
        if _clean_text(value) is not None:
            return value
    return None


def _clean_text(value: Any) -> str | None:
    """Return stripped text, treating ``None``, NaN and blanks as missing."""

    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def _raw_date_text(value: Any) -> str | None:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return _clean_text(value)
