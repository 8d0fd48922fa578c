"""Tests for the monthly bucket store."""

import threading
from datetime import datetime

import pytest

from fanclub_revenue.store.buckets import (
    BucketAction,
    MonthlyBucket,
    MonthlyBucketStore,
)
from fanclub_revenue.foundation.transaction import TransactionRecord


def _ids():
    counter = iter(range(1000))
    return lambda: f"bucket-{next(counter)}"


@pytest.fixture
def store(clock):
    return MonthlyBucketStore(clock=clock, id_factory=_ids())


class TestMonthlyBucket:
    def test_analysis_must_match_records(self, store, sample_records):
        bucket = store.upsert("c1", "Creator", 2024, 1, sample_records)
        with pytest.raises(ValueError, match="Analysis covers 3 transactions"):
            MonthlyBucket(
                bucket_id=bucket.bucket_id,
                creator_id="c1",
                creator_name="Creator",
                year=2024,
                month=1,
                records=bucket.records[:1],
                analysis=bucket.analysis,
                uploaded_at=bucket.uploaded_at,
                last_modified=bucket.last_modified,
            )

    def test_last_modified_cannot_precede_upload(self, store, sample_records):
        bucket = store.upsert("c1", "Creator", 2024, 1, sample_records)
        with pytest.raises(ValueError, match="cannot precede uploaded_at"):
            MonthlyBucket(
                bucket_id=bucket.bucket_id,
                creator_id="c1",
                creator_name="Creator",
                year=2024,
                month=1,
                records=bucket.records,
                analysis=bucket.analysis,
                uploaded_at=datetime(2024, 6, 2),
                last_modified=datetime(2024, 6, 1),
            )


class TestUpsert:
    """Test MonthlyBucketStore.upsert."""

    def test_creates_bucket_with_analysis(self, store, sample_records):
        bucket = store.upsert("c1", "Creator", 2024, 1, sample_records)

        assert bucket.bucket_id == "bucket-0"
        assert bucket.key == ("c1", 2024, 1)
        assert bucket.analysis.total_revenue == 6000
        assert bucket.uploaded_at == bucket.last_modified == datetime(2024, 6, 1, 12, 0)
        assert store.get("c1", 2024, 1) is bucket
        assert len(store) == 1

    def test_repeat_upsert_preserves_identity(self, store, sample_records):
        first = store.upsert("c1", "Creator", 2024, 1, sample_records)
        second = store.upsert("c1", "Creator", 2024, 1, sample_records)

        assert second.bucket_id == first.bucket_id
        assert second.uploaded_at == first.uploaded_at
        assert second.last_modified > first.last_modified
        assert second.analysis == first.analysis
        assert len(store) == 1

    def test_upsert_replaces_records(self, store, sample_records):
        store.upsert("c1", "Creator", 2024, 1, sample_records)
        bucket = store.upsert("c1", "Renamed", 2024, 1, [TransactionRecord(amount=50)])

        assert bucket.creator_name == "Renamed"
        assert bucket.records == (TransactionRecord(amount=50),)
        assert bucket.analysis.total_revenue == 50

    def test_raw_rows_are_normalised(self, store, raw_rows):
        bucket = store.upsert("c1", "Creator", 2024, 3, raw_rows)
        assert bucket.analysis.total_revenue == 2300
        assert all(isinstance(r, TransactionRecord) for r in bucket.records)

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month_raises_error(self, store, month):
        with pytest.raises(ValueError, match="Month must be 1-12"):
            store.upsert("c1", "Creator", 2024, month, [])
        assert len(store) == 0

    def test_invalid_records_leave_store_unchanged(self, store):
        with pytest.raises(TypeError):
            store.upsert("c1", "Creator", 2024, 1, "oops")
        assert store.get("c1", 2024, 1) is None

    def test_clock_behind_stored_bucket_keeps_last_modified(self, sample_records):
        future = MonthlyBucketStore(clock=lambda: datetime(2030, 1, 1))
        stored = future.upsert("c1", "Creator", 2024, 1, sample_records)
        store = MonthlyBucketStore(clock=lambda: datetime(2029, 12, 31, 23))
        store.load([stored])

        bucket = store.upsert("c1", "Creator", 2024, 1, sample_records[:1])

        assert bucket.uploaded_at == datetime(2030, 1, 1)
        assert bucket.last_modified == datetime(2030, 1, 1)
        assert bucket.analysis.total_transactions == 1

    def test_stored_analysis_cannot_be_mutated_by_readers(self, store, sample_records):
        store.upsert("c1", "Creator", 2024, 1, sample_records)

        with pytest.raises(AttributeError):
            store.get("c1", 2024, 1).analysis.top_buyers.clear()
        with pytest.raises(AttributeError):
            store.get("c1", 2024, 1).analysis.monthly_plan_details.clear()
        assert len(store.get("c1", 2024, 1).analysis.top_buyers) == 2


class TestDeleteAndListing:
    def test_delete_missing_returns_false(self, store, sample_records):
        store.upsert("c1", "Creator", 2024, 1, sample_records)
        events = []
        store.subscribe(events.append)

        assert store.delete("c1", 2023, 12) is False
        assert len(store) == 1
        assert events == []

    def test_delete_existing(self, store, sample_records):
        store.upsert("c1", "Creator", 2024, 1, sample_records)
        assert store.delete("c1", 2024, 1) is True
        assert store.get("c1", 2024, 1) is None

    def test_listing_order(self, store):
        store.upsert("c2", "Two", 2024, 1, [])
        store.upsert("c1", "One", 2023, 12, [])
        store.upsert("c1", "One", 2024, 2, [])
        store.upsert("c1", "One", 2024, 1, [])

        assert [b.key for b in store.list_all()] == [
            ("c1", 2024, 2),
            ("c1", 2024, 1),
            ("c1", 2023, 12),
            ("c2", 2024, 1),
        ]
        assert [b.month for b in store.list_by_creator("c1")] == [2, 1, 12]

    def test_delete_creator_cascades(self, store):
        store.upsert("c1", "One", 2024, 1, [])
        store.upsert("c1", "One", 2024, 2, [])
        store.upsert("c2", "Two", 2024, 1, [])

        assert store.delete_creator("c1") == 2
        assert store.list_by_creator("c1") == []
        assert len(store) == 1
        assert store.delete_creator("c1") == 0

    def test_key_locks_are_released_with_their_buckets(self, store, sample_records):
        store.upsert("c1", "One", 2024, 1, sample_records)
        store.upsert("c1", "One", 2024, 2, sample_records)
        store.upsert("c2", "Two", 2024, 1, sample_records)
        assert len(store._key_locks) == 3

        store.delete("c2", 2024, 1)
        store.delete("c2", 2024, 1)
        store.delete_creator("c1")
        with pytest.raises(TypeError):
            store.upsert("c3", "Three", 2024, 1, "oops")

        assert store._key_locks == {}

    def test_records_for_creator(self, store, sample_records):
        store.upsert("c1", "One", 2024, 1, sample_records[:2])
        store.upsert("c1", "One", 2024, 2, sample_records[2:])

        records = store.records_for_creator("c1")
        assert records == [sample_records[2], sample_records[0], sample_records[1]]


class TestListeners:
    def test_events_for_upsert_and_delete(self, store, sample_records):
        events = []
        unsubscribe = store.subscribe(events.append)

        bucket = store.upsert("c1", "Creator", 2024, 1, sample_records)
        store.delete("c1", 2024, 1)
        unsubscribe()
        store.upsert("c1", "Creator", 2024, 2, [])

        assert [e.action for e in events] == [BucketAction.UPSERTED, BucketAction.DELETED]
        assert events[0].bucket is bucket
        assert events[1].bucket is bucket

    def test_load_does_not_notify(self, store, sample_records):
        bucket = store.upsert("c1", "Creator", 2024, 1, sample_records)
        other = MonthlyBucketStore()
        events = []
        other.subscribe(events.append)

        assert other.load([bucket]) == 1
        assert other.get("c1", 2024, 1) is bucket
        assert events == []


def test_concurrent_upserts_keep_one_bucket_per_key(sample_records):
    store = MonthlyBucketStore()
    errors = []

    def worker():
        try:
            for _ in range(20):
                store.upsert("c1", "Creator", 2024, 1, sample_records)
                store.upsert("c1", "Creator", 2024, 2, sample_records[:1])
        except Exception as exc:  # pragma: no cover - surfaced by the assertion
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(store) == 2
    assert store.get("c1", 2024, 1).analysis.total_revenue == 6000
    assert store.get("c1", 2024, 2).analysis.total_transactions == 1
