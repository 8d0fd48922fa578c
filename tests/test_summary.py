"""Tests for creator roll-ups."""

from datetime import datetime

from fanclub_revenue.store.buckets import MonthlyBucketStore
from fanclub_revenue.store.creators import CreatorRegistry
from fanclub_revenue.store.summary import summarize_creator, summarize_creators, summarize_month


def test_summarize_month(clock, sample_records):
    bucket = MonthlyBucketStore(clock=clock).upsert("c1", "One", 2024, 1, sample_records)
    summary = summarize_month(bucket)

    assert (summary.year, summary.month) == (2024, 1)
    assert summary.total_revenue == 6000
    assert summary.total_fees == 600
    assert summary.plan_purchases == 2
    assert summary.single_purchases == 1
    assert summary.uploaded_at == bucket.uploaded_at


def test_summarize_creator_totals_and_order(clock, sample_records):
    store = MonthlyBucketStore(clock=clock)
    store.upsert("c1", "One", 2023, 12, sample_records[:1])
    store.upsert("c1", "One", 2024, 2, sample_records[2:])
    latest = store.upsert("c1", "One", 2024, 1, sample_records[1:2])
    store.upsert("c2", "Two", 2024, 1, sample_records)

    summary = summarize_creator("c1", "One", store.list_all())

    assert summary.total_revenue == 6000
    assert summary.total_fees == 600
    assert summary.total_transactions == 3
    assert summary.plan_purchases == 2
    assert summary.single_purchases == 1
    assert [(m.year, m.month) for m in summary.monthly] == [(2024, 2), (2024, 1), (2023, 12)]
    assert summary.last_activity == latest.last_modified


def test_summarize_creator_without_uploads():
    created = datetime(2024, 1, 1)
    summary = summarize_creator("c9", "Nobody", [], created_at=created)

    assert summary.total_revenue == 0
    assert summary.monthly == ()
    assert summary.last_activity == created
    assert summarize_creator("c9", "Nobody", []).last_activity is None


def test_as_dict(clock, sample_records):
    store = MonthlyBucketStore(clock=clock)
    store.upsert("c1", "One", 2024, 1, sample_records)
    payload = summarize_creator("c1", "One", store.list_by_creator("c1")).as_dict()

    assert payload["creator_name"] == "One"
    assert payload["monthly"][0]["uploaded_at"] == "2024-06-01T12:00:00"
    assert payload["last_activity"] == "2024-06-01T12:00:00"


def test_summarize_creators_includes_creators_without_uploads(clock, sample_records):
    store = MonthlyBucketStore(clock=clock)
    ids = iter(["c1", "c2"])
    registry = CreatorRegistry(store, clock=clock, id_factory=lambda: next(ids))
    active = registry.add("one", "One")
    idle = registry.add("two", "Two")
    registry.update("c1", display_name="One Renamed")
    bucket = registry.upload("c1", 2024, 1, sample_records)
    store.upsert("stray", "Stray", 2024, 1, sample_records)

    summaries = summarize_creators(registry, store)

    assert [s.creator_id for s in summaries] == ["c1", "c2"]
    assert summaries[0].creator_name == "One Renamed"
    assert summaries[0].total_revenue == 6000
    assert summaries[0].last_activity == bucket.last_modified
    assert summaries[0].last_activity > active.created_at
    assert summaries[1].total_revenue == 0
    assert summaries[1].monthly == ()
    assert summaries[1].last_activity == idle.created_at
