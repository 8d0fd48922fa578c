"""Persistence boundary for monthly buckets.

Buckets leave and enter the process as tagged, versioned documents validated
with pydantic: a payload is decoded into typed :class:`MonthlyBucket` objects
exactly once, at the boundary, or rejected with :class:`BucketDecodeError`.

:class:`BucketSynchronizer` mirrors store changes to a
:class:`BucketRepository` with bounded retries, and falls back to the last
known good snapshot of a creator when loading fails.
"""

from __future__ import annotations

import hashlib
import json
import os
import re
import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Literal, Protocol, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fanclub_revenue.store.buckets import (
    BucketAction,
    BucketEvent,
    BucketKey,
    MonthlyBucket,
    MonthlyBucketStore,
)

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 1

T = TypeVar("T")


class BucketDecodeError(ValueError):
    """A persisted payload does not match the bucket document schema."""


class PersistenceError(RuntimeError):
    """Transient failure of the backing store; the operation may be retried."""


# Failures worth retrying; decode errors are permanent and propagate at once
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (OSError, PersistenceError)


class BucketDocument(BaseModel):
    """Serialised form of a single bucket."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["monthly_bucket"] = "monthly_bucket"
    schema_version: Literal[1] = SCHEMA_VERSION
    bucket: MonthlyBucket


class CreatorDocument(BaseModel):
    """Serialised form of every bucket of one creator."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["creator_buckets"] = "creator_buckets"
    schema_version: Literal[1] = SCHEMA_VERSION
    creator_id: str
    buckets: list[BucketDocument]


def encode_bucket(bucket: MonthlyBucket) -> dict[str, Any]:
    """Return the JSON-ready document for a bucket."""

    return BucketDocument(bucket=bucket).model_dump(mode="json")


def decode_bucket(payload: Mapping[str, Any]) -> MonthlyBucket:
    """Decode a bucket document.

    Raises
    ------
    BucketDecodeError
        If the payload is not a valid ``monthly_bucket`` document, including
        buckets whose analysis does not match their records.
    """
    try:
        return BucketDocument.model_validate(payload).bucket
    except (ValidationError, ValueError) as exc:
        raise BucketDecodeError(f"Invalid bucket document: {exc}") from exc


def decode_creator_document(payload: Mapping[str, Any]) -> list[MonthlyBucket]:
    """Decode a creator document into its buckets."""

    try:
        document = CreatorDocument.model_validate(payload)
    except (ValidationError, ValueError) as exc:
        raise BucketDecodeError(f"Invalid creator document: {exc}") from exc
    mismatched = [
        doc.bucket.bucket_id
        for doc in document.buckets
        if doc.bucket.creator_id != document.creator_id
    ]
    if mismatched:
        raise BucketDecodeError(
            f"Buckets {mismatched} do not belong to creator {document.creator_id}"
        )
    return [doc.bucket for doc in document.buckets]


class BucketRepository(Protocol):
    """Backing store for buckets.

    Implementations raise :class:`PersistenceError` (or ``OSError``) for
    transient failures and :class:`BucketDecodeError` for corrupt data.
    """

    def load(self, creator_id: str) -> list[MonthlyBucket]: ...

    def save(self, bucket: MonthlyBucket) -> bool: ...

    def delete(self, creator_id: str, year: int, month: int) -> bool: ...


class InMemoryBucketRepository:
    """Repository keeping encoded documents in a dict.

    Documents go through the same encode/decode path as the file repository,
    which makes it a faithful test double.
    """

    def __init__(self) -> None:
        self._documents: dict[BucketKey, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def load(self, creator_id: str) -> list[MonthlyBucket]:
        with self._lock:
            payloads = [
                doc for key, doc in self._documents.items() if key[0] == creator_id
            ]
        return [decode_bucket(payload) for payload in payloads]

    def save(self, bucket: MonthlyBucket) -> bool:
        document = encode_bucket(bucket)
        with self._lock:
            self._documents[bucket.key] = document
        return True

    def delete(self, creator_id: str, year: int, month: int) -> bool:
        with self._lock:
            return self._documents.pop((creator_id, year, month), None) is not None


class JsonFileBucketRepository:
    """Repository storing one JSON document per creator in a directory.

    Files are replaced atomically, so a crash mid-write leaves the previous
    document intact.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def path_for(self, creator_id: str) -> Path:
        slug = re.sub(r"[^A-Za-z0-9_.-]", "_", creator_id)[:40]
        digest = hashlib.sha1(creator_id.encode("utf-8")).hexdigest()[:10]
        return self.directory / f"{slug}-{digest}.json"

    def load(self, creator_id: str) -> list[MonthlyBucket]:
        with self._lock:
            return self._read(creator_id)

    def save(self, bucket: MonthlyBucket) -> bool:
        with self._lock:
            buckets = {b.key: b for b in self._read(bucket.creator_id)}
            buckets[bucket.key] = bucket
            self._write(bucket.creator_id, list(buckets.values()))
        return True

    def delete(self, creator_id: str, year: int, month: int) -> bool:
        with self._lock:
            buckets = self._read(creator_id)
            remaining = [b for b in buckets if b.key != (creator_id, year, month)]
            if len(remaining) == len(buckets):
                return False
            self._write(creator_id, remaining)
        return True

    def _read(self, creator_id: str) -> list[MonthlyBucket]:
        path = self.path_for(creator_id)
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as fh:
            try:
                payload = json.load(fh)
            except json.JSONDecodeError as exc:
                raise BucketDecodeError(f"Corrupt bucket file {path}: {exc}") from exc
        return decode_creator_document(payload)

    def _write(self, creator_id: str, buckets: list[MonthlyBucket]) -> None:
        document = CreatorDocument(
            creator_id=creator_id,
            buckets=[BucketDocument(bucket=bucket) for bucket in buckets],
        )
        path = self.path_for(creator_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(document.model_dump(mode="json"), fh, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)


class BucketSynchronizer:
    """Mirror store changes to a repository with bounded retries.

    Parameters
    ----------
    store:
        Store whose buckets are persisted.
    repository:
        Backing store.
    attempts:
        Maximum attempts per repository call.
    wait_seconds:
        Base of the exponential back-off between attempts.
    """

    def __init__(
        self,
        store: MonthlyBucketStore,
        repository: BucketRepository,
        *,
        attempts: int = 3,
        wait_seconds: float = 0.5,
    ) -> None:
        if attempts < 1:
            raise ValueError(f"attempts must be positive: {attempts}")
        self.store = store
        self.repository = repository
        self.attempts = attempts
        self.wait_seconds = wait_seconds
        self._snapshots: dict[str, list[MonthlyBucket]] = {}
        self._pending: dict[BucketKey, BucketEvent] = {}
        self._lock = threading.Lock()

    @property
    def pending(self) -> list[BucketEvent]:
        """Changes that could not be persisted yet."""

        with self._lock:
            return list(self._pending.values())

    def attach(self) -> Callable[[], None]:
        """Subscribe to the store; returns a function detaching again."""

        return self.store.subscribe(self.handle)

    def handle(self, event: BucketEvent) -> bool:
        """Persist one store event; returns whether it reached the repository."""

        if event.action is BucketAction.UPSERTED:
            operation = "save"
            succeeded = self._attempt(operation, event, self.repository.save, event.bucket)
        else:
            operation = "delete"
            # A bucket missing from the repository is already deleted
            succeeded = self._attempt(
                operation,
                event,
                lambda: self.repository.delete(event.creator_id, event.year, event.month)
                or True,
            )

        key = (event.creator_id, event.year, event.month)
        with self._lock:
            if succeeded:
                self._pending.pop(key, None)
                self._snapshots[event.creator_id] = self.store.list_by_creator(
                    event.creator_id
                )
            else:
                self._pending[key] = event
        return succeeded

    def retry_pending(self) -> int:
        """Retry changes that failed earlier; returns how many still fail."""

        for event in self.pending:
            current = self.store.get(event.creator_id, event.year, event.month)
            if event.action is BucketAction.UPSERTED and current is not None:
                event = BucketEvent(
                    BucketAction.UPSERTED, event.creator_id, event.year, event.month, current
                )
            self.handle(event)
        return len(self.pending)

    def load_creator(self, creator_id: str) -> list[MonthlyBucket]:
        """Load a creator's buckets into the store.

        On transient repository failure the last known good snapshot of the
        creator is used instead. Decode errors are not retried and propagate.
        """
        try:
            buckets = self._call(self.repository.load, creator_id)
        except TRANSIENT_ERRORS as exc:
            with self._lock:
                buckets = list(self._snapshots.get(creator_id, []))
            logger.warning(
                "persist_load_failed_using_snapshot",
                creator_id=creator_id,
                error=str(exc),
                snapshot_buckets=len(buckets),
            )
        else:
            with self._lock:
                self._snapshots[creator_id] = list(buckets)
            logger.info("persist_load_succeeded", creator_id=creator_id, buckets=len(buckets))

        self.store.load(buckets)
        return buckets

    def _attempt(
        self, operation: str, event: BucketEvent, func: Callable[..., bool], *args: Any
    ) -> bool:
        try:
            self._call(func, *args)
        except TRANSIENT_ERRORS as exc:
            logger.error(
                "persist_failed",
                operation=operation,
                creator_id=event.creator_id,
                year=event.year,
                month=event.month,
                attempts=self.attempts,
                error=str(exc),
            )
            return False
        logger.debug(
            "persist_succeeded",
            operation=operation,
            creator_id=event.creator_id,
            year=event.year,
            month=event.month,
        )
        return True

    def _call(self, func: Callable[..., T], *args: Any) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.wait_seconds, max=10),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=_log_retry,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                result = func(*args)
                if result is False:
                    raise PersistenceError(f"{getattr(func, '__name__', 'operation')} reported failure")
        return result


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "persist_retrying",
        attempt=retry_state.attempt_number,
        error=str(outcome.exception()) if outcome is not None else None,
    )
