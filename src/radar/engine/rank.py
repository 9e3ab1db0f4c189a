"""Deterministic ranking and top-N slicing.

Ties on the primary metric are always broken by the item's key (or
name) ascending, whichever direction the metric is sorted in.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..config import Settings, get_settings
from ..schemas import VisibleSlice

Metric = Union[str, Callable[[Any], float]]

METRICS: Dict[str, Callable[[Any], float]] = {
    "total_count": lambda item: item.total_count,
    "recent_count": lambda item: item.recent_count,
    "prior_count": lambda item: item.prior_count,
    "improvement": lambda item: item.prior_count - item.recent_count,
    "value": lambda item: item.value,
}

DIRECTIONS = ("desc", "asc")


def _item_key(item: Any) -> str:
    key = getattr(item, "key", None)
    if key is None:
        key = getattr(item, "name", "")
    return str(key)


def _resolve_metric(metric: Metric) -> Callable[[Any], float]:
    if callable(metric):
        return metric
    try:
        return METRICS[metric]
    except KeyError:
        raise ValueError(
            f"Unknown metric {metric!r}; expected one of {sorted(METRICS)}"
        ) from None


def rank(items: Sequence[Any], metric: Metric, direction: str = "desc") -> List[Any]:
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
    value_of = _resolve_metric(metric)
    sign = -1 if direction == "desc" else 1
    return sorted(items, key=lambda item: (sign * value_of(item), _item_key(item)))


def visible_slice(
    items: Sequence[Any],
    limit: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> VisibleSlice:
    """First *limit* items plus whether a "show all" control is needed."""
    if limit is None:
        limit = (settings or get_settings()).leaderboard_visible
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    items = list(items)
    return VisibleSlice(
        items=items[:limit],
        has_more=len(items) > limit,
        total=len(items),
    )
