"""In-memory store of monthly upload buckets.

A bucket holds everything uploaded for one ``(creator_id, year, month)``:
the normalised records and the revenue analysis computed from them. Buckets
are immutable; an upsert builds a complete new bucket and swaps it in, so a
reader always sees records and analysis from the same upload.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from fanclub_revenue.analyses.revenue import RevenueAnalysis, analyze_revenue
from fanclub_revenue.config import DEFAULT_CONFIG, AnalysisConfig
from fanclub_revenue.foundation.transaction import TransactionRecord, ensure_records

logger = structlog.get_logger(__name__)

BucketKey = tuple[str, int, int]


@dataclass(frozen=True)
class MonthlyBucket:
    """Records and cached analysis for one creator and month.

    Attributes
    ----------
    bucket_id:
        Stable identifier, kept across re-uploads of the same month.
    creator_id:
        Creator the upload belongs to.
    creator_name:
        Display name of the creator at upload time.
    year, month:
        Calendar month of the upload.
    records:
        Normalised transactions of the latest upload.
    analysis:
        Revenue analysis of ``records``.
    uploaded_at:
        Time of the first upload for this month.
    last_modified:
        Time of the latest upload for this month.
    """

    bucket_id: str
    creator_id: str
    creator_name: str
    year: int
    month: int
    records: tuple[TransactionRecord, ...]
    analysis: RevenueAnalysis
    uploaded_at: datetime
    last_modified: datetime

    def __post_init__(self) -> None:
        """Validate bucket metadata."""
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be 1-12: {self.month} (bucket_id={self.bucket_id})")
        if self.analysis.total_transactions != len(self.records):
            raise ValueError(
                f"Analysis covers {self.analysis.total_transactions} transactions but bucket "
                f"holds {len(self.records)} records (bucket_id={self.bucket_id})"
            )
        if self.last_modified < self.uploaded_at:
            raise ValueError(
                f"last_modified ({self.last_modified}) cannot precede uploaded_at "
                f"({self.uploaded_at}) (bucket_id={self.bucket_id})"
            )

    @property
    def key(self) -> BucketKey:
        return (self.creator_id, self.year, self.month)

    def as_dict(self) -> dict[str, Any]:
        """Return JSON-serialisable representation of the bucket."""

        return {
            "bucket_id": self.bucket_id,
            "creator_id": self.creator_id,
            "creator_name": self.creator_name,
            "year": self.year,
            "month": self.month,
            "records": [record.as_dict() for record in self.records],
            "analysis": self.analysis.as_dict(),
            "uploaded_at": self.uploaded_at.isoformat(),
            "last_modified": self.last_modified.isoformat(),
        }


class BucketAction(str, Enum):
    UPSERTED = "upserted"
    DELETED = "deleted"


@dataclass(frozen=True)
class BucketEvent:
    """Change notification sent to store listeners after a committed write.

    ``bucket`` is the new bucket for upserts and the removed one for deletes.
    """

    action: BucketAction
    creator_id: str
    year: int
    month: int
    bucket: MonthlyBucket


BucketListener = Callable[[BucketEvent], None]


@dataclass
class _KeyLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


def _listing_order(bucket: MonthlyBucket) -> tuple[str, int, int]:
    # creator ascending, then newest month first
    return (bucket.creator_id, -bucket.year, -bucket.month)


class MonthlyBucketStore:
    """Keyed collection of :class:`MonthlyBucket` objects.

    Writes to the same key are serialised by a per-key lock; the collection
    lock is only held while swapping buckets in or out, so reads of other
    keys (and reads between completed writes) never wait on an analysis.

    Parameters
    ----------
    config:
        Analysis configuration used when recomputing bucket analyses.
    clock:
        Callable returning "now"; defaults to :meth:`datetime.now`.
    id_factory:
        Callable producing new bucket identifiers.
    """

    def __init__(
        self,
        config: AnalysisConfig = DEFAULT_CONFIG,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.config = config
        self._clock = clock or datetime.now
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._buckets: dict[BucketKey, MonthlyBucket] = {}
        self._lock = threading.RLock()
        self._key_locks: dict[BucketKey, _KeyLock] = {}
        self._listeners: list[BucketListener] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def subscribe(self, listener: BucketListener) -> Callable[[], None]:
        """Register a change listener and return a function removing it.

        Listeners run synchronously after each committed write, while the
        written key is still locked, so events for one key arrive in order.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def get(self, creator_id: str, year: int, month: int) -> MonthlyBucket | None:
        with self._lock:
            return self._buckets.get((creator_id, year, month))

    def upsert(
        self,
        creator_id: str,
        display_name: str,
        year: int,
        month: int,
        records: Sequence[TransactionRecord | Mapping[str, Any]],
        *,
        today: datetime | None = None,
    ) -> MonthlyBucket:
        """Replace the bucket for a creator/month with a freshly analysed one.

        The incoming records replace any previous upload entirely. The
        bucket id and ``uploaded_at`` of an existing bucket are preserved;
        ``last_modified`` is set to now, or kept if the clock reads earlier
        than the stored value.

        Raises
        ------
        TypeError
            If ``records`` is not a list/tuple of records or mappings.
        ValueError
            If ``month`` is not 1-12.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be 1-12: {month}")
        key = (creator_id, year, month)

        with self._locked(key):
            normalised = ensure_records(
                records, today=today, unknown_label=self.config.unknown_label
            )
            analysis = analyze_revenue(normalised, self.config)
            now = self._clock()
            existing = self.get(creator_id, year, month)
            if existing is not None and now < existing.last_modified:
                # last_modified never moves backwards, even if the clock does
                logger.warning(
                    "bucket_clock_behind",
                    creator_id=creator_id,
                    year=year,
                    month=month,
                    now=now.isoformat(),
                    last_modified=existing.last_modified.isoformat(),
                )
                now = existing.last_modified

            bucket = MonthlyBucket(
                bucket_id=existing.bucket_id if existing else self._id_factory(),
                creator_id=creator_id,
                creator_name=display_name,
                year=year,
                month=month,
                records=tuple(normalised),
                analysis=analysis,
                uploaded_at=existing.uploaded_at if existing else now,
                last_modified=now,
            )
            with self._lock:
                self._buckets[key] = bucket

            logger.info(
                "bucket_upserted",
                creator_id=creator_id,
                year=year,
                month=month,
                records=len(normalised),
                replaced=existing is not None,
                total_revenue=analysis.total_revenue,
            )
            self._notify(BucketEvent(BucketAction.UPSERTED, creator_id, year, month, bucket))
        return bucket

    def delete(self, creator_id: str, year: int, month: int) -> bool:
        """Remove a bucket; returns ``False`` and changes nothing if absent."""

        key = (creator_id, year, month)
        with self._locked(key):
            with self._lock:
                removed = self._buckets.pop(key, None)
            if removed is None:
                logger.debug("bucket_delete_missing", creator_id=creator_id, year=year, month=month)
                return False

            logger.info("bucket_deleted", creator_id=creator_id, year=year, month=month)
            self._notify(BucketEvent(BucketAction.DELETED, creator_id, year, month, removed))
        return True

    def delete_creator(self, creator_id: str) -> int:
        """Remove every bucket of a creator and return how many were removed."""

        removed = 0
        for bucket in self.list_by_creator(creator_id):
            if self.delete(bucket.creator_id, bucket.year, bucket.month):
                removed += 1
        return removed

    def list_by_creator(self, creator_id: str) -> list[MonthlyBucket]:
        """Buckets of one creator, newest month first."""

        with self._lock:
            buckets = [b for b in self._buckets.values() if b.creator_id == creator_id]
        return sorted(buckets, key=_listing_order)

    def list_all(self) -> list[MonthlyBucket]:
        """All buckets by creator ascending, then newest month first."""

        with self._lock:
            buckets = list(self._buckets.values())
        return sorted(buckets, key=_listing_order)

    def records_for_creator(self, creator_id: str) -> list[TransactionRecord]:
        """Every record of a creator across months, newest month first."""

        return [
            record
            for bucket in self.list_by_creator(creator_id)
            for record in bucket.records
        ]

    def load(self, buckets: Iterable[MonthlyBucket]) -> int:
        """Insert already-analysed buckets (e.g. read from persistence).

        Existing buckets with the same key are replaced. Listeners are not
        notified since nothing changed relative to the backing store.
        """
        loaded = 0
        for bucket in buckets:
            with self._locked(bucket.key):
                with self._lock:
                    self._buckets[bucket.key] = bucket
            loaded += 1
        logger.debug("buckets_loaded", count=loaded)
        return loaded

    @contextmanager
    def _locked(self, key: BucketKey) -> Iterator[None]:
        """Hold the per-key write lock.

        Entries are reference counted and dropped once no writer holds them
        and the key has no bucket, so deleted keys do not accumulate locks.
        """
        with self._lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if entry.users == 0 and key not in self._buckets:
                    del self._key_locks[key]

    def _notify(self, event: BucketEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)
