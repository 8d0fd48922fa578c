"""Command line entry points for fan-club revenue analytics."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from fanclub_revenue.analyses.calendar import analyze_calendar
from fanclub_revenue.analyses.customers import analyze_customers
from fanclub_revenue.analyses.revenue import analyze_revenue
from fanclub_revenue.config import AnalysisConfig, StoreSettings
from fanclub_revenue.foundation.transaction import ensure_records
from fanclub_revenue.logging_config import LOG_FORMATS, configure_logging
from fanclub_revenue.store.buckets import MonthlyBucketStore
from fanclub_revenue.store.persistence import BucketSynchronizer, JsonFileBucketRepository
from fanclub_revenue.store.summary import summarize_creator

logger = structlog.get_logger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


def _load_rows(path: Path) -> list[dict[str, Any]]:
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, list):
        raise ValueError("Expected a list of transaction rows in the input file")
    return payload


def _parse_today(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _write_json(payload: dict[str, Any], output: Path | None) -> None:
    if output:
        output_path = output.resolve()
        cwd = Path.cwd().resolve()
        try:
            output_path.relative_to(cwd)
        except ValueError:
            raise ValueError(
                f"Output path {output_path} must reside within the current working directory"
            )
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, sort_keys=True, ensure_ascii=False)
    else:  # stdout fallback enables piping in shell usage.
        json.dump(payload, fp=sys.stdout, indent=2, sort_keys=True, ensure_ascii=False)
        print()


def _add_logging_arguments(parser: argparse.ArgumentParser, settings: StoreSettings) -> None:
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help=f"Log level (default: {settings.log_level}, env FANCLUB_LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=settings.log_format,
        help=f"Log output format (default: {settings.log_format}, env FANCLUB_LOG_FORMAT)",
    )


def _build_synchronizer(
    settings: StoreSettings, data_dir: Path | None
) -> tuple[MonthlyBucketStore, BucketSynchronizer]:
    store = MonthlyBucketStore()
    synchronizer = BucketSynchronizer(
        store,
        JsonFileBucketRepository(data_dir or settings.data_dir),
        attempts=settings.persist_attempts,
        wait_seconds=settings.persist_wait_seconds,
    )
    return store, synchronizer


def analyze_cli(argv: list[str] | None = None) -> int:
    """Analyse a JSON export of fan-club transactions.

    Prints (or writes) a JSON document with the revenue and customer
    analyses, plus the calendar heatmaps when ``--year`` and ``--month`` are
    given.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    settings = StoreSettings.from_env()
    parser = argparse.ArgumentParser(description="Analyse fan-club transaction exports")
    parser.add_argument("input", type=Path, help="Path to JSON file with transaction rows")
    parser.add_argument("--year", type=int, help="Year of the calendar heatmap")
    parser.add_argument("--month", type=int, help="Month (1-12) of the calendar heatmap")
    parser.add_argument(
        "--top-n", type=int, default=10, help="Length of every leaderboard (default: 10)"
    )
    parser.add_argument(
        "--today",
        type=str,
        help="Reference date for year-less timestamps (ISO format). Defaults to now.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path for writing the analysis as JSON.",
    )
    _add_logging_arguments(parser, settings)

    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    if (args.year is None) != (args.month is None):
        parser.error("--year and --month must be given together")
    if args.month is not None and not 1 <= args.month <= 12:
        parser.error(f"--month must be 1-12: {args.month}")
    if args.top_n < 1:
        parser.error(f"--top-n must be at least 1: {args.top_n}")

    config = AnalysisConfig(top_n=args.top_n)
    today = _parse_today(args.today)
    records = ensure_records(
        _load_rows(args.input), today=today, unknown_label=config.unknown_label
    )
    if not records:
        logger.error("no_transactions", input=str(args.input))
        return 1

    undated = sum(1 for record in records if record.date is None)
    if undated:
        logger.warning("undated_transactions", count=undated, total=len(records))

    payload: dict[str, Any] = {
        "revenue": analyze_revenue(records, config).as_dict(),
        "customers": analyze_customers(records, config).as_dict(),
    }
    if args.year is not None:
        payload["calendar"] = analyze_calendar(records, args.year, args.month, config).as_dict()

    logger.info(
        "analysis_completed",
        transactions=len(records),
        customers=payload["customers"]["total_customers"],
    )
    _write_json(payload, args.output)
    return 0


def import_cli(argv: list[str] | None = None) -> int:
    """Store one month of a creator's transactions (or delete it).

    The creator's existing buckets are loaded from the data directory,
    the month is replaced and the change is written back. Exit code 2 means
    the change was applied in memory but could not be persisted.
    """
    settings = StoreSettings.from_env()
    parser = argparse.ArgumentParser(description="Import a month of fan-club transactions")
    parser.add_argument("--creator-id", required=True, help="Creator identifier")
    parser.add_argument("--creator-name", help="Creator display name (defaults to the id)")
    parser.add_argument("--year", type=int, required=True, help="Year of the upload")
    parser.add_argument("--month", type=int, required=True, help="Month (1-12) of the upload")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--input", type=Path, help="Path to JSON file with transaction rows")
    group.add_argument(
        "--delete", action="store_true", help="Delete the stored month instead of importing"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help=f"Bucket directory (default: {settings.data_dir}, env FANCLUB_DATA_DIR)",
    )
    parser.add_argument(
        "--today",
        type=str,
        help="Reference date for year-less timestamps (ISO format). Defaults to now.",
    )
    _add_logging_arguments(parser, settings)

    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_format)
    if not 1 <= args.month <= 12:
        parser.error(f"--month must be 1-12: {args.month}")

    store, synchronizer = _build_synchronizer(settings, args.data_dir)
    synchronizer.load_creator(args.creator_id)
    synchronizer.attach()

    if args.delete:
        if not store.delete(args.creator_id, args.year, args.month):
            logger.error(
                "bucket_not_found", creator_id=args.creator_id, year=args.year, month=args.month
            )
            return 1
        result: dict[str, Any] = {"deleted": True}
    else:
        bucket = store.upsert(
            args.creator_id,
            args.creator_name or args.creator_id,
            args.year,
            args.month,
            _load_rows(args.input),
            today=_parse_today(args.today),
        )
        result = {
            "bucket_id": bucket.bucket_id,
            "uploaded_at": bucket.uploaded_at.isoformat(),
            "last_modified": bucket.last_modified.isoformat(),
            "analysis": bucket.analysis.as_dict(),
        }

    if synchronizer.retry_pending():
        logger.error("persist_pending", creator_id=args.creator_id)
        return 2

    _write_json(result, None)
    return 0


def summary_cli(argv: list[str] | None = None) -> int:
    """Print the stored monthly totals of a creator as JSON."""

    settings = StoreSettings.from_env()
    parser = argparse.ArgumentParser(description="Summarise a creator's stored months")
    parser.add_argument("--creator-id", required=True, help="Creator identifier")
    parser.add_argument("--creator-name", help="Creator display name")
    parser.add_argument(
        "--data-dir",
        type=Path,
        help=f"Bucket directory (default: {settings.data_dir}, env FANCLUB_DATA_DIR)",
    )
    parser.add_argument("--output", type=Path, help="Optional path for writing the summary")
    _add_logging_arguments(parser, settings)

    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    _, synchronizer = _build_synchronizer(settings, args.data_dir)
    buckets = synchronizer.load_creator(args.creator_id)
    name = args.creator_name or (buckets[0].creator_name if buckets else args.creator_id)
    summary = summarize_creator(args.creator_id, name, buckets)
    _write_json(summary.as_dict(), args.output)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(analyze_cli())
