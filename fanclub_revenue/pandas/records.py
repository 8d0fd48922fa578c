"""Pandas DataFrame adapters for transaction records."""

from datetime import datetime
from typing import List, Optional

import pandas as pd  # type: ignore

from fanclub_revenue.config import UNKNOWN_LABEL
from fanclub_revenue.foundation.transaction import TransactionRecord, ensure_records
from ._utils import empty_frame, missing_to_none

RECORD_COLUMNS = ["date", "amount", "fee", "kind", "target", "buyer_id", "raw_date"]


def records_from_dataframe(
    df: pd.DataFrame,
    *,
    today: Optional[datetime] = None,
    unknown_label: str = UNKNOWN_LABEL,
) -> List[TransactionRecord]:
    """Normalise the rows of an export DataFrame.

    Columns may use the export's Japanese headers (``日付``, ``金額`` ...) or
    the English aliases. Missing cells (NaN, NaT) are treated like blanks, so
    they fall back to 0 or the unknown sentinel instead of failing.

    Args:
        df: DataFrame with one row per transaction
        today: Reference date for year-less timestamps
        unknown_label: Sentinel for missing buyer, target and kind

    Returns:
        List of TransactionRecord objects in row order

    Example:
        >>> df = pd.read_csv('sales.csv')
        >>> records = records_from_dataframe(df)
        >>> analysis = analyze_revenue(records)
    """
    if df.empty:
        return []

    rows = [
        {str(key): missing_to_none(value) for key, value in row.items()}
        for row in df.to_dict("records")
    ]
    return ensure_records(rows, today=today, unknown_label=unknown_label)


def records_to_dataframe(records: List[TransactionRecord]) -> pd.DataFrame:
    """Convert records to a DataFrame with one row per transaction.

    Args:
        records: Normalised transaction records

    Returns:
        DataFrame with columns date (datetime64, NaT for undated records),
        amount, fee, kind, target, buyer_id and raw_date, in input order
    """
    if not records:
        return empty_frame(RECORD_COLUMNS)

    df = pd.DataFrame(
        [
            {
                "date": record.date,
                "amount": record.amount,
                "fee": record.fee,
                "kind": record.kind,
                "target": record.target,
                "buyer_id": record.buyer_id,
                "raw_date": record.raw_date,
            }
            for record in records
        ],
        columns=RECORD_COLUMNS,
    )
    df["date"] = pd.to_datetime(df["date"])
    return df
