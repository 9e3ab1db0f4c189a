from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import Settings, get_settings
from ..schemas import Signal, TimelineEntry
from ..utils.datetime import to_utc


def to_entry(signal: Signal) -> TimelineEntry:
    return TimelineEntry(
        time=signal.timestamp,
        severity=signal.severity,
        source_table=signal.source_table,
        detail=signal.detail,
        signal_id=signal.id,
    )


def merge(
    streams: Sequence[Iterable[Signal]],
    limit: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> List[TimelineEntry]:
    """Merge typed signal streams into one feed, newest first.

    Equal timestamps keep their input order, earlier streams first.  The
    same event present in two streams yields two entries.
    """
    if limit is None:
        limit = (settings or get_settings()).timeline_limit
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    flattened = [signal for stream in streams for signal in stream]
    # sorted() is stable with reverse=True as well
    ordered = sorted(flattened, key=lambda s: to_utc(s.timestamp), reverse=True)
    return [to_entry(signal) for signal in ordered[:limit]]


def entry_identity(entry: TimelineEntry) -> Tuple[str, str]:
    """Identity key for callers that want to drop cross-stream duplicates."""
    return entry.source_table, entry.signal_id
