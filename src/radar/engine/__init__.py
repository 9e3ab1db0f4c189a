"""Signal aggregation and trend classification engine.

Pure, synchronous transforms from already-fetched feed rows to
view-ready aggregates.  Every function takes an explicit ``now`` where
time windows are involved; ``None`` means the wall clock.
"""

from .abuse import abuse_reporting_info
from .aggregate import aggregate, count_by, severity_distribution
from .correlate import correlate
from .normalize import normalize_record, normalize_records, parse_record
from .rank import rank, visible_slice
from .series import build_daily_series, by_dimension, by_severity
from .timeline import entry_identity, merge
from .trends import categories_for, classify, trend_board, window_of

__all__ = [
    "abuse_reporting_info",
    "aggregate",
    "build_daily_series",
    "by_dimension",
    "by_severity",
    "categories_for",
    "classify",
    "correlate",
    "count_by",
    "entry_identity",
    "merge",
    "normalize_record",
    "normalize_records",
    "parse_record",
    "rank",
    "severity_distribution",
    "trend_board",
    "visible_slice",
    "window_of",
]
