"""Monthly bucket storage, creator registry, persistence sync and roll-ups."""

from .buckets import (
    BucketAction,
    BucketEvent,
    BucketListener,
    MonthlyBucket,
    MonthlyBucketStore,
)
from .creators import Creator, CreatorRegistry, CreatorStatus
from .persistence import (
    BucketDecodeError,
    BucketDocument,
    BucketRepository,
    BucketSynchronizer,
    CreatorDocument,
    InMemoryBucketRepository,
    JsonFileBucketRepository,
    PersistenceError,
    decode_bucket,
    decode_creator_document,
    encode_bucket,
)
from .summary import (
    CreatorRevenueSummary,
    MonthlySummary,
    summarize_creator,
    summarize_creators,
    summarize_month,
)

__all__ = [
    # Buckets
    "BucketAction",
    "BucketEvent",
    "BucketListener",
    "MonthlyBucket",
    "MonthlyBucketStore",
    # Creators
    "Creator",
    "CreatorRegistry",
    "CreatorStatus",
    # Persistence
    "BucketDecodeError",
    "BucketDocument",
    "BucketRepository",
    "BucketSynchronizer",
    "CreatorDocument",
    "InMemoryBucketRepository",
    "JsonFileBucketRepository",
    "PersistenceError",
    "decode_bucket",
    "decode_creator_document",
    "encode_bucket",
    # Summaries
    "CreatorRevenueSummary",
    "MonthlySummary",
    "summarize_creator",
    "summarize_creators",
    "summarize_month",
]
