"""Recent/prior window classification and trend categories.

The heuristic compares a group's count in the recent window
``(now - recent, now]`` against the prior window
``(now - prior, now - recent]``.  Older signals, and signals stamped in
the future, fall into neither window.

Categories are evaluated independently; a group can qualify for more
than one (e.g. a provider that was busy two weeks ago and is silent now
is both ``previously_bad`` and ``most_improved``).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..config import Settings, get_settings
from ..schemas import TREND_CATEGORIES, GroupStat, Signal, WindowCounts
from ..utils.datetime import resolve_now, to_utc
from .rank import rank

RECENT = "recent"
PRIOR = "prior"


def window_bounds(
    now: datetime, settings: Optional[Settings] = None
) -> tuple[datetime, datetime]:
    """Return ``(recent_start, prior_start)`` for *now*."""
    settings = settings or get_settings()
    now = to_utc(now)
    return (
        now - timedelta(days=settings.recent_window_days),
        now - timedelta(days=settings.prior_window_days),
    )


def window_of(
    timestamp: datetime,
    now: datetime,
    settings: Optional[Settings] = None,
) -> Optional[str]:
    """Return ``"recent"``, ``"prior"`` or *None* for a single timestamp."""
    now = to_utc(now)
    timestamp = to_utc(timestamp)
    recent_start, prior_start = window_bounds(now, settings)
    if recent_start < timestamp <= now:
        return RECENT
    if prior_start < timestamp <= recent_start:
        return PRIOR
    return None


def classify(
    signals: Iterable[Signal],
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> WindowCounts:
    now = resolve_now(now)
    recent = prior = 0
    for signal in signals:
        window = window_of(signal.timestamp, now, settings)
        if window == RECENT:
            recent += 1
        elif window == PRIOR:
            prior += 1
    return WindowCounts(recent_count=recent, prior_count=prior)


# ── Category predicates ─────────────────────────────────────────


def is_worst_now(stat: GroupStat) -> bool:
    return stat.recent_count > 0


def is_previously_bad(stat: GroupStat) -> bool:
    return stat.prior_count > 0 and stat.recent_count <= 1


def is_most_improved(stat: GroupStat) -> bool:
    return stat.prior_count > 2 and stat.recent_count < stat.prior_count


CATEGORY_PREDICATES: Dict[str, Callable[[GroupStat], bool]] = {
    "worst_now": is_worst_now,
    "previously_bad": is_previously_bad,
    "most_improved": is_most_improved,
}

# Ranking metric per category, see radar.engine.rank.METRICS
CATEGORY_METRICS: Dict[str, str] = {
    "worst_now": "recent_count",
    "previously_bad": "prior_count",
    "most_improved": "improvement",
}


def categories_for(stat: GroupStat) -> Set[str]:
    return {name for name, predicate in CATEGORY_PREDICATES.items() if predicate(stat)}


def trend_board(stats: Iterable[GroupStat]) -> Dict[str, List[GroupStat]]:
    """Split *stats* into one ranked list per trend category."""
    stats = list(stats)
    return {
        category: rank(
            [stat for stat in stats if CATEGORY_PREDICATES[category](stat)],
            CATEGORY_METRICS[category],
        )
        for category in TREND_CATEGORIES
    }
