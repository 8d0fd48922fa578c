"""Structured logging setup for the command line tools.

Library modules only call ``structlog.get_logger(__name__)``; the output
format is chosen once, by the process entry point. Logs go to stderr so that
JSON results written to stdout stay machine readable.
"""

from __future__ import annotations

import logging
import sys

import structlog

LOG_FORMATS = ("json", "console")


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure structlog for the current process.

    Parameters
    ----------
    level:
        Minimum level name, e.g. ``"DEBUG"`` or ``"warning"``.
    fmt:
        ``"json"`` for one JSON object per line, ``"console"`` for
        human-readable output.

    Raises
    ------
    ValueError
        If ``level`` or ``fmt`` is not recognised.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unsupported log format: {fmt} (expected one of {LOG_FORMATS})")

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
