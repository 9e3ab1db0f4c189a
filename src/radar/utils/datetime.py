"""Shared datetime parsing and UTC day-bucketing helpers.

Feed tables store their timestamps in several shapes: ISO-8601 strings
(with or without a ``Z`` suffix), ``datetime`` objects handed over by a
query layer, and epoch seconds or milliseconds.  Everything the engine
compares is first funnelled through :func:`parse_timestamp` so that the
trend windows and daily buckets only ever see UTC-aware values.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional

_FRACTION_RE = re.compile(r"\.(\d+)")
_OFFSET_RE = re.compile(r"([+-])(\d{2}):?(\d{2})?$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Ensure a datetime is UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_now(now: Optional[datetime]) -> datetime:
    """Return *now* as UTC, defaulting to the wall clock."""
    return to_utc(now) if now is not None else utc_now()


def _parse_epoch(value: float) -> Optional[datetime]:
    epoch = float(value)
    if abs(epoch) >= 10_000_000_000:
        epoch /= 1000.0
    elif abs(epoch) < 1_000_000_000:
        return None
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (ValueError, OSError, OverflowError):
        return None


def _normalize_iso(text: str) -> str:
    """Rewrite Postgres-style timestamps into a form ``fromisoformat`` accepts.

    ``2026-02-16 02:50:55.12+00`` becomes ``2026-02-16 02:50:55.120000+00:00``.
    """
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    if "T" in text or " " in text:
        text = _OFFSET_RE.sub(
            lambda m: f"{m.group(1)}{m.group(2)}:{m.group(3) or '00'}", text
        )
    return text


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a datetime, epoch number or ISO-8601 string to UTC.

    Returns *None* on invalid or empty input rather than raising.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _parse_epoch(float(value))
    text = str(value).strip()
    if not text:
        return None
    if text.replace(".", "", 1).lstrip("+-").isdigit():
        try:
            return _parse_epoch(float(text))
        except ValueError:
            return None
    try:
        return to_utc(datetime.fromisoformat(_normalize_iso(text)))
    except (ValueError, TypeError):
        return None


def first_timestamp(*values: Any) -> Optional[datetime]:
    """Return the first value that parses as a timestamp."""
    for value in values:
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    return None


def utc_day(dt: datetime) -> date:
    return to_utc(dt).date()


def day_range(end: datetime, days: int) -> List[date]:
    """Calendar days from ``end - (days - 1)`` to ``end`` inclusive."""
    last = utc_day(end)
    return [last - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
