"""Tests for revenue analysis."""

from datetime import datetime

import pytest

from fanclub_revenue.analyses.revenue import (
    BuyerSummary,
    MonthlyProductDetail,
    MonthlyRevenue,
    ProductDetail,
    ProductSummary,
    RevenueAnalysis,
    analyze_revenue,
)
from fanclub_revenue.config import AnalysisConfig, UNKNOWN_LABEL
from fanclub_revenue.foundation.transaction import TransactionKind, TransactionRecord

PLAN = TransactionKind.PLAN_PURCHASE.value
SINGLE = TransactionKind.SINGLE_ITEM_PURCHASE.value


class TestRevenueAnalysisValidation:
    """Test RevenueAnalysis dataclass validation."""

    def test_negative_revenue_raises_error(self):
        with pytest.raises(ValueError, match="Total revenue cannot be negative"):
            RevenueAnalysis(
                total_revenue=-1,
                total_fees=0,
                net_revenue=-1,
                total_transactions=0,
                plan_purchases=0,
                single_purchases=0,
            )

    def test_kind_counts_exceeding_total_raises_error(self):
        with pytest.raises(ValueError, match="cannot exceed total transactions"):
            RevenueAnalysis(
                total_revenue=100,
                total_fees=0,
                net_revenue=100,
                total_transactions=1,
                plan_purchases=1,
                single_purchases=1,
            )

    def test_repeat_rate_out_of_range_raises_error(self):
        with pytest.raises(ValueError, match="Repeat rate must be 0-100"):
            RevenueAnalysis(
                total_revenue=100,
                total_fees=0,
                net_revenue=100,
                total_transactions=1,
                plan_purchases=0,
                single_purchases=0,
                total_customers=1,
                repeat_rate=120.0,
            )


class TestAnalyzeRevenue:
    """Test analyze_revenue."""

    def test_totals(self, sample_records):
        analysis = analyze_revenue(sample_records)

        assert analysis.total_revenue == 6000
        assert analysis.total_fees == 600
        assert analysis.net_revenue == 5400
        assert analysis.total_transactions == 3
        assert analysis.plan_purchases == 2
        assert analysis.single_purchases == 1
        assert analysis.total_customers == 2
        assert analysis.average_transaction_value == pytest.approx(2000.0)
        assert analysis.average_spending_per_customer == pytest.approx(3000.0)
        assert analysis.fee_rate == pytest.approx(10.0)
        assert analysis.repeat_rate == pytest.approx(50.0)

    def test_top_buyers_ties_keep_first_seen_order(self, sample_records):
        analysis = analyze_revenue(sample_records)

        assert analysis.top_buyers == (
            BuyerSummary(name="A", total_spent=3000, transaction_count=2, average_spent=1500.0),
            BuyerSummary(name="B", total_spent=3000, transaction_count=1, average_spent=3000.0),
        )

    def test_top_products(self, sample_records):
        analysis = analyze_revenue(sample_records)

        assert analysis.top_products == (
            ProductSummary(name="Gold", revenue=4000, sales_count=2, kind=PLAN),
            ProductSummary(name="Photo", revenue=2000, sales_count=1, kind=SINGLE),
        )

    def test_details_by_kind(self, sample_records):
        analysis = analyze_revenue(sample_records)

        assert analysis.plan_details == (
            ProductDetail(name="Gold", sales_count=2, total_revenue=4000, average_price=2000.0),
        )
        assert analysis.single_item_details == (
            ProductDetail(name="Photo", sales_count=1, total_revenue=2000, average_price=2000.0),
        )

    def test_monthly_details(self, sample_records):
        analysis = analyze_revenue(sample_records)

        assert dict(analysis.monthly_plan_details) == {
            "2024-01": (MonthlyProductDetail(name="Gold", sales_count=1, total_revenue=1000),),
            "2024-02": (MonthlyProductDetail(name="Gold", sales_count=1, total_revenue=3000),),
        }
        assert [month for month, _ in analysis.monthly_single_item_details] == ["2024-01"]

    def test_monthly_revenue_excludes_undated(self, sample_records):
        records = sample_records + [TransactionRecord(buyer_id="C", amount=999)]
        analysis = analyze_revenue(records)

        assert analysis.total_revenue == 6999
        assert analysis.total_transactions == 4
        assert analysis.monthly_revenue == (
            MonthlyRevenue(month="2024-01", revenue=3000, fees=300, transactions=2),
            MonthlyRevenue(month="2024-02", revenue=3000, fees=300, transactions=1),
        )

    def test_leaderboards_limited_to_top_n(self):
        records = [
            TransactionRecord(buyer_id=f"fan_{i}", target=f"item_{i}", amount=100 * (i + 1))
            for i in range(12)
        ]
        analysis = analyze_revenue(records)

        assert len(analysis.top_buyers) == 10
        assert len(analysis.top_products) == 10
        assert analysis.top_buyers[0].name == "fan_11"

        small = analyze_revenue(records, AnalysisConfig(top_n=3))
        assert [b.name for b in small.top_buyers] == ["fan_11", "fan_10", "fan_9"]

    def test_unknown_buyers_collapse_into_one_customer(self):
        analysis = analyze_revenue([{"金額": 100}, {"金額": 200}])

        assert analysis.total_customers == 1
        assert analysis.top_buyers[0].name == UNKNOWN_LABEL
        assert analysis.repeat_rate == pytest.approx(100.0)

    def test_raw_rows_are_normalised(self, raw_rows):
        analysis = analyze_revenue(raw_rows)

        assert analysis.total_revenue == 2300
        assert analysis.plan_purchases == 1
        assert analysis.single_purchases == 1

    def test_zero_revenue_gives_zero_fee_rate(self):
        analysis = analyze_revenue([TransactionRecord(buyer_id="A", fee=10)])
        assert analysis.fee_rate == 0.0

    def test_empty_input(self):
        analysis = analyze_revenue([])

        assert analysis == RevenueAnalysis.empty()
        assert analysis.top_buyers == ()
        assert analysis.monthly_revenue == ()
        assert analysis.average_transaction_value == 0.0

    def test_as_dict_is_json_ready(self, sample_records):
        payload = analyze_revenue(sample_records).as_dict()

        assert payload["total_revenue"] == 6000
        assert payload["top_buyers"][0]["name"] == "A"
        assert payload["monthly_plan_details"]["2024-01"][0]["name"] == "Gold"

    def test_non_list_input_raises_type_error(self):
        with pytest.raises(TypeError):
            analyze_revenue({"金額": 100})


class TestRevenueAnalysisCollections:
    """Results are shared between readers, so their collections are read-only."""

    def test_collections_are_tuples(self, sample_records):
        analysis = analyze_revenue(sample_records)

        with pytest.raises(AttributeError):
            analysis.top_buyers.clear()
        with pytest.raises(TypeError):
            analysis.monthly_revenue[0] = None
        month, details = analysis.monthly_plan_details[0]
        assert month == "2024-01"
        assert isinstance(details, tuple)

    def test_lists_and_mappings_are_converted(self):
        detail = MonthlyProductDetail(name="Gold", sales_count=1, total_revenue=100)
        buyers = [BuyerSummary(name="A", total_spent=100, transaction_count=1, average_spent=100.0)]
        analysis = RevenueAnalysis(
            total_revenue=100,
            total_fees=0,
            net_revenue=100,
            total_transactions=1,
            plan_purchases=1,
            single_purchases=0,
            top_buyers=buyers,
            monthly_plan_details={"2024-02": [detail], "2024-01": [detail]},
            total_customers=1,
        )
        buyers.clear()

        assert len(analysis.top_buyers) == 1
        assert analysis.monthly_plan_details == (
            ("2024-01", (detail,)),
            ("2024-02", (detail,)),
        )

    def test_as_dict_uses_lists_and_month_objects(self, sample_records):
        payload = analyze_revenue(sample_records).as_dict()

        assert isinstance(payload["top_buyers"], list)
        assert list(payload["monthly_plan_details"]) == ["2024-01", "2024-02"]
        assert isinstance(payload["monthly_plan_details"]["2024-02"], list)
