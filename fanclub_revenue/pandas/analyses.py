"""Pandas DataFrame adapters for revenue, customer and calendar analyses."""

from typing import Dict

import pandas as pd  # type: ignore

from fanclub_revenue.analyses.calendar import CalendarAnalysis
from fanclub_revenue.analyses.customers import CustomerAnalysis
from fanclub_revenue.analyses.revenue import RevenueAnalysis
from ._utils import empty_frame

MONTHLY_REVENUE_COLUMNS = ["month", "revenue", "fees", "transactions"]
CUSTOMER_COLUMNS = [
    "name",
    "total_spent",
    "transaction_count",
    "first_purchase_date",
    "last_purchase_date",
    "days_active",
]
SEGMENT_COLUMNS = ["segment", "count", "total_spent", "average_spent"]


def revenue_to_dataframe(analysis: RevenueAnalysis) -> pd.DataFrame:
    """Convert the headline numbers of a RevenueAnalysis to a single-row DataFrame.

    Leaderboards and detail lists are left out; use
    :func:`monthly_revenue_to_dataframe` for the monthly series.

    Example:
        >>> analysis = analyze_revenue(records)
        >>> revenue_to_dataframe(analysis)['fee_rate'].iloc[0]
    """
    return pd.DataFrame(
        [
            {
                "total_revenue": analysis.total_revenue,
                "total_fees": analysis.total_fees,
                "net_revenue": analysis.net_revenue,
                "total_transactions": analysis.total_transactions,
                "plan_purchases": analysis.plan_purchases,
                "single_purchases": analysis.single_purchases,
                "total_customers": analysis.total_customers,
                "average_transaction_value": analysis.average_transaction_value,
                "average_spending_per_customer": analysis.average_spending_per_customer,
                "fee_rate": analysis.fee_rate,
                "repeat_rate": analysis.repeat_rate,
            }
        ]
    )


def monthly_revenue_to_dataframe(analysis: RevenueAnalysis) -> pd.DataFrame:
    """Monthly revenue series, one row per ``"YYYY-MM"`` month ascending."""

    if not analysis.monthly_revenue:
        return empty_frame(MONTHLY_REVENUE_COLUMNS)
    return pd.DataFrame(
        [
            {
                "month": entry.month,
                "revenue": entry.revenue,
                "fees": entry.fees,
                "transactions": entry.transactions,
            }
            for entry in analysis.monthly_revenue
        ],
        columns=MONTHLY_REVENUE_COLUMNS,
    )


def customers_to_dataframe(analysis: CustomerAnalysis) -> pd.DataFrame:
    """Lifetime value table of a CustomerAnalysis.

    Returns:
        DataFrame with one row per buyer, sorted by total_spent descending
    """
    if not analysis.lifetime_value:
        return empty_frame(CUSTOMER_COLUMNS)
    df = pd.DataFrame(
        [
            {
                "name": entry.name,
                "total_spent": entry.total_spent,
                "transaction_count": entry.transaction_count,
                "first_purchase_date": entry.first_purchase_date,
                "last_purchase_date": entry.last_purchase_date,
                "days_active": entry.days_active,
            }
            for entry in analysis.lifetime_value
        ],
        columns=CUSTOMER_COLUMNS,
    )
    df["first_purchase_date"] = pd.to_datetime(df["first_purchase_date"])
    df["last_purchase_date"] = pd.to_datetime(df["last_purchase_date"])
    return df


def segments_to_dataframe(analysis: CustomerAnalysis) -> pd.DataFrame:
    """Value segments of a CustomerAnalysis, in reporting order."""

    if not analysis.customer_segments:
        return empty_frame(SEGMENT_COLUMNS)
    return pd.DataFrame(
        [
            {
                "segment": summary.segment.value,
                "count": summary.count,
                "total_spent": summary.total_spent,
                "average_spent": summary.average_spent,
            }
            for summary in analysis.customer_segments
        ],
        columns=SEGMENT_COLUMNS,
    )


def calendar_to_dataframes(analysis: CalendarAnalysis) -> Dict[str, pd.DataFrame]:
    """Convert CalendarAnalysis to a dict of DataFrames.

    Returns:
        Dictionary with keys:
        - 'days': one row per day of the month (day, revenue, transaction_count)
        - 'hours': one row per hour (hour, revenue, transaction_count)
        - 'weekday_revenue': 7 x 24 revenue matrix, index 0 = Sunday
        - 'weekday_transactions': 7 x 24 transaction count matrix

    Example:
        >>> frames = calendar_to_dataframes(analyze_calendar(records, 2024, 3))
        >>> frames['weekday_revenue'].loc[0, 21]  # Sunday 21:00
    """
    days = pd.DataFrame(
        [
            {"day": d.day, "revenue": d.revenue, "transaction_count": d.transaction_count}
            for d in analysis.days
        ]
    )
    hours = pd.DataFrame(
        [
            {"hour": h.hour, "revenue": h.revenue, "transaction_count": h.transaction_count}
            for h in analysis.hours
        ]
    )
    weekday_revenue = pd.DataFrame(
        [[cell.revenue for cell in row] for row in analysis.weekday_hours]
    )
    weekday_transactions = pd.DataFrame(
        [[cell.transaction_count for cell in row] for row in analysis.weekday_hours]
    )
    for matrix in (weekday_revenue, weekday_transactions):
        matrix.index.name = "weekday"
        matrix.columns.name = "hour"

    return {
        "days": days,
        "hours": hours,
        "weekday_revenue": weekday_revenue,
        "weekday_transactions": weekday_transactions,
    }
