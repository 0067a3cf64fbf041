"""Helpers for building nested predicate dictionaries."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

_CALENDAR_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def set_path(target: dict[str, Any], path: Sequence[str], value: Any) -> None:
    """
    Assign ``value`` at a nested ``path`` inside ``target``, creating
    intermediate dictionaries as needed.

    A non-dict value sitting on an intermediate segment is replaced.

    Example::

        >>> d = {}
        >>> set_path(d, ("created_at", "gte"), 1)
        >>> set_path(d, ("created_at", "lt"), 2)
        >>> d
        {'created_at': {'gte': 1, 'lt': 2}}
    """
    if not path:
        raise ValueError("path must contain at least one segment")
    node = target
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[path[-1]] = value


def deep_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """
    Return a new dict with ``update`` merged into ``base``.

    Nested mappings are merged key by key; any other value in ``update``
    replaces the value in ``base``.  Neither input is mutated.
    """
    result: dict[str, Any] = {k: _copy(v) for k, v in base.items()}
    for key, value in update.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = _copy(value)
    return result


def _copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy(v) for v in value]
    return value


def parse_calendar_date(value: Any) -> date | None:
    """Return a ``date`` for a ``YYYY-MM-DD`` string, else ``None``."""
    if not isinstance(value, str) or not _CALENDAR_DATE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open interval ``[day 00:00, next day 00:00)``."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def parse_iso(value: str, kind: type[date] = datetime) -> date:
    """
    Parse an ISO-8601 string as ``kind`` (``datetime`` or ``date``).

    A trailing ``Z`` is read as UTC.  A calendar date parses as midnight
    when ``kind`` is ``datetime``; a timestamp keeps only its date when
    ``kind`` is ``date``.

    Raises:
        ValueError: If ``value`` is not ISO-8601.
    """
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if issubclass(kind, datetime) else parsed.date()


def align_timezone(value: datetime, aware: bool) -> datetime:
    """
    Make ``value`` naive or aware so it compares with the other side.

    Naive datetimes are taken to be UTC.  Aware values become naive UTC;
    naive values gain ``tzinfo=UTC``.
    """
    if aware and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    if not aware and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
