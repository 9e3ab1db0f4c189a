"""Daily volume series for stacked time-series charts.

Days are UTC calendar days.  Every day in the horizon gets a point,
including days with no signals, so charts never show gaps.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..config import Settings, get_settings
from ..schemas import SeriesPoint, Signal
from ..utils.datetime import day_range, resolve_now, utc_day

SubCategoryFn = Callable[[Signal], Optional[str]]


def by_dimension(dimension: str) -> SubCategoryFn:
    """Sub-category function reading one of a signal's group keys."""

    def _sub_category(signal: Signal) -> Optional[str]:
        return signal.group_keys.get(dimension)

    return _sub_category


def by_severity(signal: Signal) -> Optional[str]:
    return signal.severity


def build_daily_series(
    signals: Iterable[Signal],
    sub_category_fn: SubCategoryFn,
    days: Optional[int] = None,
    now: Optional[datetime] = None,
    categories: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> List[SeriesPoint]:
    """Tally signals per day and sub-category over the last *days* days.

    When *categories* is given, every point carries exactly those keys
    and signals mapped to any other label are skipped.
    """
    settings = settings or get_settings()
    if days is None:
        days = settings.series_days
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}")
    now = resolve_now(now)

    horizon = day_range(now, days) if days else []
    tallies: Dict[date, Counter] = {day: Counter() for day in horizon}
    allowed = set(categories) if categories is not None else None

    for signal in signals:
        label = sub_category_fn(signal)
        if not label:
            continue
        if allowed is not None and label not in allowed:
            continue
        bucket = tallies.get(utc_day(signal.timestamp))
        if bucket is None:
            continue
        bucket[label] += 1

    points: List[SeriesPoint] = []
    for day in horizon:
        tally = tallies[day]
        if categories is not None:
            counts = {category: tally[category] for category in categories}
        else:
            counts = {label: tally[label] for label in sorted(tally)}
        points.append(
            SeriesPoint(
                day=day,
                day_label=day.strftime(settings.day_label_format),
                counts=counts,
            )
        )
    return points
