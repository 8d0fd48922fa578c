"""Pandas DataFrame adapters for fan-club revenue analytics."""

from .records import (
    records_from_dataframe,
    records_to_dataframe,
)
from .analyses import (
    revenue_to_dataframe,
    monthly_revenue_to_dataframe,
    customers_to_dataframe,
    segments_to_dataframe,
    calendar_to_dataframes,
)

__all__ = [
    # Record adapters
    "records_from_dataframe",
    "records_to_dataframe",
    # Analysis adapters
    "revenue_to_dataframe",
    "monthly_revenue_to_dataframe",
    "customers_to_dataframe",
    "segments_to_dataframe",
    "calendar_to_dataframes",
]
