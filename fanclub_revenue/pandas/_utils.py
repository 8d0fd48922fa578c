"""Shared utilities for pandas conversion operations."""

from typing import Any

import pandas as pd  # type: ignore


def missing_to_none(value: Any) -> Any:
    """Replace pandas missing markers (NaN, NaT, ``pd.NA``) with ``None``.

    Non-scalar values are returned unchanged.

    Example:
        >>> missing_to_none(float("nan")) is None
        True
        >>> missing_to_none("A")
        'A'
    """
    if value is None:
        return None
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def empty_frame(columns: list[str]) -> pd.DataFrame:
    """Empty DataFrame that still carries the expected columns."""
    return pd.DataFrame(columns=columns)
