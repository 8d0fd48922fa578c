"""Revenue, customer and purchase-timing analytics for fan-club sales exports."""

from fanclub_revenue.analyses import analyze_calendar, analyze_customers, analyze_revenue
from fanclub_revenue.config import DEFAULT_CONFIG, AnalysisConfig, StoreSettings
from fanclub_revenue.foundation import TransactionRecord, ensure_records, normalize_record

__version__ = "0.1.0"

__all__ = [
    "AnalysisConfig",
    "DEFAULT_CONFIG",
    "StoreSettings",
    "TransactionRecord",
    "analyze_calendar",
    "analyze_customers",
    "analyze_revenue",
    "ensure_records",
    "normalize_record",
]
