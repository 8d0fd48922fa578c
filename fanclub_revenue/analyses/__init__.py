"""Fan-club revenue analyses.

1. Revenue analysis - totals, leaderboards, per-kind and monthly breakdowns
2. Customer analysis - repeat detection, value segments, lifetime value
3. Calendar analysis - day, hour and weekday x hour activity matrices
"""

from .calendar import (
    ActivityCell,
    CalendarAnalysis,
    DayActivity,
    HourActivity,
    analyze_calendar,
    available_years,
    calendar_weeks,
    days_in_month,
)
from .customers import (
    CustomerAnalysis,
    CustomerLifetimeValue,
    CustomerProfile,
    CustomerSegment,
    MonthlyCustomerTrend,
    MonthlySpending,
    SegmentSummary,
    analyze_customers,
    classify_customer,
    purchase_frequency,
    segment_thresholds,
)
from .revenue import (
    BuyerSummary,
    MonthlyProductDetail,
    MonthlyRevenue,
    ProductDetail,
    ProductSummary,
    RevenueAnalysis,
    analyze_revenue,
)

__all__ = [
    # Revenue
    "BuyerSummary",
    "MonthlyProductDetail",
    "MonthlyRevenue",
    "ProductDetail",
    "ProductSummary",
    "RevenueAnalysis",
    "analyze_revenue",
    # Customers
    "CustomerAnalysis",
    "CustomerLifetimeValue",
    "CustomerProfile",
    "CustomerSegment",
    "MonthlyCustomerTrend",
    "MonthlySpending",
    "SegmentSummary",
    "analyze_customers",
    "classify_customer",
    "purchase_frequency",
    "segment_thresholds",
    # Calendar
    "ActivityCell",
    "CalendarAnalysis",
    "DayActivity",
    "HourActivity",
    "analyze_calendar",
    "available_years",
    "calendar_weeks",
    "days_in_month",
]
