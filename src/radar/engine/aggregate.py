from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from ..config import Settings, get_settings
from ..schemas import DIMENSIONS, SEVERITY_ORDER, DistributionItem, GroupStat, Signal
from ..utils.datetime import resolve_now
from .rank import rank
from .trends import PRIOR, RECENT, window_of

logger = logging.getLogger(__name__)


def _check_dimension(dimension: str) -> None:
    if dimension not in DIMENSIONS:
        raise ValueError(
            f"Unknown dimension {dimension!r}; expected one of {list(DIMENSIONS)}"
        )


class _GroupFold:
    """Per-call accumulator for one group; never shared between calls."""

    __slots__ = ("total", "recent", "prior", "values", "severities", "last_seen")

    def __init__(self) -> None:
        self.total = 0
        self.recent = 0
        self.prior = 0
        self.values: Dict[str, Set[str]] = defaultdict(set)
        self.severities: Counter = Counter()
        self.last_seen: Optional[datetime] = None

    def add(self, signal: Signal, window: Optional[str]) -> None:
        self.total += 1
        if window == RECENT:
            self.recent += 1
        elif window == PRIOR:
            self.prior += 1
        for name, values in signal.attributes.items():
            self.values[name].update(values)
        self.severities[signal.severity] += 1
        if self.last_seen is None or signal.timestamp > self.last_seen:
            self.last_seen = signal.timestamp

    def to_stat(self, key: str, dimension: str) -> GroupStat:
        return GroupStat(
            key=key,
            dimension=dimension,
            total_count=self.total,
            recent_count=self.recent,
            prior_count=self.prior,
            distinct_values={
                name: sorted(values) for name, values in sorted(self.values.items())
            },
            severity_histogram={
                severity: self.severities[severity]
                for severity in SEVERITY_ORDER
                if self.severities[severity]
            },
            last_seen=self.last_seen,
        )


def aggregate(
    signals: Iterable[Signal],
    dimension: str,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, GroupStat]:
    """Group *signals* by ``group_keys[dimension]``.

    Signals without the dimension are left out entirely.  The returned
    mapping is keyed in ascending key order and is identical for any
    permutation of *signals*.
    """
    _check_dimension(dimension)
    settings = settings or get_settings()
    now = resolve_now(now)

    folds: Dict[str, _GroupFold] = {}
    skipped = 0
    for signal in signals:
        key = signal.group_keys.get(dimension)
        if not key:
            skipped += 1
            continue
        fold = folds.get(key)
        if fold is None:
            fold = folds[key] = _GroupFold()
        fold.add(signal, window_of(signal.timestamp, now, settings))

    logger.debug(
        "Aggregated %d group(s) by %s, %d signal(s) without the dimension",
        len(folds),
        dimension,
        skipped,
    )
    return {key: folds[key].to_stat(key, dimension) for key in sorted(folds)}


# ── Distributions ───────────────────────────────────────────────


def count_by(
    signals: Iterable[Signal],
    dimension: str,
    top_n: Optional[int] = None,
) -> List[DistributionItem]:
    """Count signals per value of *dimension*, most frequent first.

    ``sources`` lists the distinct feeds that contributed to each value,
    falling back to the source table when a signal has no ``source`` key.
    """
    _check_dimension(dimension)
    if top_n is not None and top_n < 0:
        raise ValueError(f"top_n must be >= 0, got {top_n}")
    counts: Counter = Counter()
    sources: Dict[str, Set[str]] = defaultdict(set)
    for signal in signals:
        key = signal.group_keys.get(dimension)
        if not key:
            continue
        counts[key] += 1
        sources[key].add(signal.group_keys.get("source") or signal.source_table)
    items = rank(
        [
            DistributionItem(name=key, value=value, sources=sorted(sources[key]))
            for key, value in counts.items()
        ],
        "value",
    )
    return items if top_n is None else items[:top_n]


def severity_distribution(signals: Iterable[Signal]) -> List[DistributionItem]:
    counts = Counter(signal.severity for signal in signals)
    return [
        DistributionItem(name=severity, value=counts[severity])
        for severity in SEVERITY_ORDER
        if counts[severity]
    ]
