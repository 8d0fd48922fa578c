"""Foundational building blocks for fan-club revenue analytics.

This package exposes the normalised transaction record, the raw-row
normaliser and the per-buyer aggregation shared by every analysis.
"""

from .customers import CustomerAggregate, MonthlySpend, aggregate_customers
from .transaction import (
    FIELD_ALIASES,
    TransactionKind,
    TransactionRecord,
    coerce_yen,
    ensure_records,
    normalise_kind,
    normalize_record,
    parse_transaction_date,
)

__all__ = [
    "CustomerAggregate",
    "MonthlySpend",
    "aggregate_customers",
    "FIELD_ALIASES",
    "TransactionKind",
    "TransactionRecord",
    "coerce_yen",
    "ensure_records",
    "normalise_kind",
    "normalize_record",
    "parse_transaction_date",
]
