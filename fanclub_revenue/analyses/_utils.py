"""Shared utilities for the analysis result dataclasses.

Results are cached in the bucket store and handed to every reader, so their
collections are stored as tuples rather than lists and dicts.
"""

from typing import Any, Iterable, Mapping


def freeze_fields(instance: Any, *names: str) -> None:
    """Store the named sequence fields of a frozen dataclass as tuples."""
    for name in names:
        value = getattr(instance, name)
        if not isinstance(value, tuple):
            object.__setattr__(instance, name, tuple(value))


def freeze_month_map(instance: Any, name: str) -> None:
    """Store a ``month -> entries`` field as ``(month, entries)`` pairs.

    Accepts a mapping or an iterable of pairs; months end up ascending.

    Example:
        >>> from types import SimpleNamespace
        >>> holder = SimpleNamespace(m={"2024-02": [2], "2024-01": [1]})
        >>> freeze_month_map(holder, "m")
        >>> holder.m
        (('2024-01', (1,)), ('2024-02', (2,)))
    """
    value = getattr(instance, name)
    items: Iterable = value.items() if isinstance(value, Mapping) else value
    pairs = tuple(
        sorted(((month, tuple(entries)) for month, entries in items), key=lambda p: p[0])
    )
    object.__setattr__(instance, name, pairs)


def json_ready(value: Any) -> Any:
    """Turn the tuples of an ``asdict`` payload back into lists."""
    if isinstance(value, (list, tuple)):
        return [json_ready(item) for item in value]
    if isinstance(value, dict):
        return {key: json_ready(item) for key, item in value.items()}
    return value
