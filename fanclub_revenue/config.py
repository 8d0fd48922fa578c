"""Configuration for the analytics engine and the bucket store.

Analysis parameters live in :class:`AnalysisConfig` and are passed to each
analyzer explicitly. Store/persistence settings are read from the environment
by :meth:`StoreSettings.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Sentinel used for missing buyer/product names in the upstream export
UNKNOWN_LABEL = "不明"


@dataclass(frozen=True)
class AnalysisConfig:
    """Parameters shared by the revenue and customer analyses.

    Attributes
    ----------
    top_n:
        Length of every leaderboard (top buyers, products, spenders, recent).
    high_value_rank:
        Position (as a share of customer count) whose spend sets the
        high-value threshold after sorting by spend descending.
    medium_value_rank:
        Same as ``high_value_rank`` for the medium-value threshold.
    days_per_month:
        Month length used to estimate purchase frequency.
    unknown_label:
        Sentinel substituted for missing buyer, product and kind values.
    """

    top_n: int = 10
    high_value_rank: float = 0.2
    medium_value_rank: float = 0.6
    days_per_month: int = 30
    unknown_label: str = UNKNOWN_LABEL

    def __post_init__(self) -> None:
        if self.top_n < 1:
            raise ValueError(f"top_n must be positive: {self.top_n}")
        if not 0 <= self.high_value_rank < 1:
            raise ValueError(
                f"high_value_rank must be in [0, 1): {self.high_value_rank}"
            )
        if not self.high_value_rank <= self.medium_value_rank < 1:
            raise ValueError(
                f"medium_value_rank must be in [high_value_rank, 1): {self.medium_value_rank}"
            )
        if self.days_per_month < 1:
            raise ValueError(
                f"days_per_month must be positive: {self.days_per_month}"
            )


DEFAULT_CONFIG = AnalysisConfig()


@dataclass(frozen=True)
class StoreSettings:
    """Runtime settings for the bucket store and its persistence sync."""

    data_dir: Path = Path("data/buckets")
    persist_attempts: int = 3
    persist_wait_seconds: float = 0.5
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> "StoreSettings":
        """Build settings from ``FANCLUB_*`` environment variables."""

        defaults = cls()
        log_format = os.getenv("FANCLUB_LOG_FORMAT", defaults.log_format).lower()
        if log_format not in ("json", "console"):
            raise ValueError(f"Unsupported FANCLUB_LOG_FORMAT: {log_format}")
        attempts = int(os.getenv("FANCLUB_PERSIST_ATTEMPTS", str(defaults.persist_attempts)))
        if attempts < 1:
            raise ValueError(f"FANCLUB_PERSIST_ATTEMPTS must be positive: {attempts}")
        return cls(
            data_dir=Path(os.getenv("FANCLUB_DATA_DIR", str(defaults.data_dir))),
            persist_attempts=attempts,
            persist_wait_seconds=float(
                os.getenv(
                    "FANCLUB_PERSIST_WAIT_SECONDS", str(defaults.persist_wait_seconds)
                )
            ),
            log_level=os.getenv("FANCLUB_LOG_LEVEL", defaults.log_level).upper(),
            log_format=log_format,
        )
