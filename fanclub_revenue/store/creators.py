"""Registry of creators whose monthly uploads live in the bucket store.

A creator exists independently of its uploads: it can be registered before
the first month is imported, and deleting it removes every bucket stored for
it.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from fanclub_revenue.foundation.transaction import TransactionRecord
from fanclub_revenue.store.buckets import MonthlyBucket, MonthlyBucketStore

logger = structlog.get_logger(__name__)


class CreatorStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class Creator:
    """A registered creator.

    Attributes
    ----------
    creator_id:
        Identifier used as the bucket store key.
    name:
        Internal name.
    display_name:
        Name shown in summaries.
    created_at:
        Registration time; used as last activity until the first upload.
    description:
        Optional free text.
    status:
        Whether the creator is active.
    """

    creator_id: str
    name: str
    display_name: str
    created_at: datetime
    description: str | None = None
    status: CreatorStatus = CreatorStatus.ACTIVE

    def __post_init__(self) -> None:
        """Validate creator fields."""
        if not self.creator_id:
            raise ValueError("Creator id cannot be empty")
        if not self.name.strip():
            raise ValueError(f"Creator name cannot be empty (creator_id={self.creator_id})")
        if not self.display_name.strip():
            raise ValueError(
                f"Creator display name cannot be empty (creator_id={self.creator_id})"
            )
        object.__setattr__(self, "status", CreatorStatus(self.status))

    def as_dict(self) -> dict[str, Any]:
        return {
            "creator_id": self.creator_id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }


class CreatorRegistry:
    """Thread-safe collection of :class:`Creator` entries tied to a store.

    Parameters
    ----------
    store:
        Bucket store holding the creators' uploads.
    clock:
        Callable returning "now"; defaults to :meth:`datetime.now`.
    id_factory:
        Callable producing new creator identifiers.
    """

    def __init__(
        self,
        store: MonthlyBucketStore,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self._clock = clock or datetime.now
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._creators: dict[str, Creator] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._creators)

    def get(self, creator_id: str) -> Creator | None:
        with self._lock:
            return self._creators.get(creator_id)

    def list_all(self) -> list[Creator]:
        """Registered creators in registration order."""

        with self._lock:
            return list(self._creators.values())

    def add(
        self, name: str, display_name: str, description: str | None = None
    ) -> Creator:
        """Register a new, active creator.

        Raises
        ------
        ValueError
            If ``name`` or ``display_name`` is blank, or the generated id is
            already taken.
        """
        creator = Creator(
            creator_id=self._id_factory(),
            name=name,
            display_name=display_name,
            created_at=self._clock(),
            description=description,
        )
        with self._lock:
            if creator.creator_id in self._creators:
                raise ValueError(f"Creator id already registered: {creator.creator_id}")
            self._creators[creator.creator_id] = creator
        logger.info("creator_added", creator_id=creator.creator_id, name=name)
        return creator

    def update(
        self,
        creator_id: str,
        *,
        name: str | None = None,
        display_name: str | None = None,
        description: str | None = None,
        status: CreatorStatus | str | None = None,
    ) -> Creator | None:
        """Change a creator's fields; ``None`` leaves a field as it is.

        An empty ``description`` clears it. Returns the updated creator, or
        ``None`` (and changes nothing) if the id is unknown.
        """
        with self._lock:
            current = self._creators.get(creator_id)
            if current is None:
                logger.debug("creator_update_missing", creator_id=creator_id)
                return None
            changes: dict[str, Any] = {}
            if name is not None:
                changes["name"] = name
            if display_name is not None:
                changes["display_name"] = display_name
            if description is not None:
                changes["description"] = description or None
            if status is not None:
                changes["status"] = CreatorStatus(status)
            updated = replace(current, **changes)
            self._creators[creator_id] = updated
        logger.info("creator_updated", creator_id=creator_id, fields=sorted(changes))
        return updated

    def delete(self, creator_id: str) -> bool:
        """Remove a creator and every bucket stored for it.

        Returns ``False`` and changes nothing if the id is unknown.
        """
        with self._lock:
            if self._creators.pop(creator_id, None) is None:
                logger.debug("creator_delete_missing", creator_id=creator_id)
                return False
        removed = self.store.delete_creator(creator_id)
        logger.info("creator_deleted", creator_id=creator_id, buckets_removed=removed)
        return True

    def upload(
        self,
        creator_id: str,
        year: int,
        month: int,
        records: Sequence[TransactionRecord | Mapping[str, Any]],
        *,
        today: datetime | None = None,
    ) -> MonthlyBucket:
        """Store a month of records under a registered creator's display name.

        Raises
        ------
        KeyError
            If the creator is not registered.
        """
        creator = self.get(creator_id)
        if creator is None:
            raise KeyError(f"Unknown creator: {creator_id}")
        return self.store.upsert(
            creator_id, creator.display_name, year, month, records, today=today
        )
