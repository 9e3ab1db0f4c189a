"""Tests for radar.engine.trends — window classification and categories."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from radar.config import get_settings
from radar.engine.aggregate import aggregate
from radar.engine.trends import categories_for, classify, trend_board, window_of
from radar.schemas import GroupStat, Signal

NOW = datetime(2026, 3, 15, 12, tzinfo=timezone.utc)


def _signal(sid, delta, **keys):
    return Signal(
        id=sid,
        timestamp=NOW - delta,
        group_keys=keys,
        source_table="threats",
    )


def _stat(key, recent, prior):
    return GroupStat(
        key=key,
        dimension="org",
        total_count=recent + prior,
        recent_count=recent,
        prior_count=prior,
    )


# ── windows ─────────────────────────────────────────────────────


class TestWindowOf:
    def test_now_is_recent(self):
        assert window_of(NOW, NOW) == "recent"

    def test_exactly_seven_days_is_prior(self):
        assert window_of(NOW - timedelta(days=7), NOW) == "prior"

    def test_just_inside_recent(self):
        assert window_of(NOW - timedelta(days=7) + timedelta(seconds=1), NOW) == "recent"

    def test_exactly_thirty_days_is_neither(self):
        assert window_of(NOW - timedelta(days=30), NOW) is None

    def test_just_inside_prior(self):
        assert window_of(NOW - timedelta(days=30) + timedelta(seconds=1), NOW) == "prior"

    def test_future_is_neither(self):
        assert window_of(NOW + timedelta(minutes=5), NOW) is None

    def test_naive_timestamps_are_utc(self):
        assert window_of(datetime(2026, 3, 14), NOW) == "recent"

    def test_windows_follow_settings(self):
        settings = replace(get_settings(), recent_window_days=1, prior_window_days=3)
        assert window_of(NOW - timedelta(days=2), NOW, settings) == "prior"
        assert window_of(NOW - timedelta(days=4), NOW, settings) is None


def test_classify_counts_each_window():
    signals = [
        _signal("s1", timedelta(days=2)),
        _signal("s2", timedelta(days=10)),
        _signal("s3", timedelta(days=40)),
        _signal("s4", timedelta(hours=1)),
    ]
    counts = classify(signals, now=NOW)
    assert counts.recent_count == 2
    assert counts.prior_count == 1


def test_classify_empty():
    counts = classify([], now=NOW)
    assert (counts.recent_count, counts.prior_count) == (0, 0)


# ── categories ──────────────────────────────────────────────────


class TestCategories:
    def test_one_recent_one_prior(self):
        signals = [
            _signal("a1", timedelta(days=2), org="Acme Host"),
            _signal("a2", timedelta(days=10), org="Acme Host"),
            _signal("a3", timedelta(days=40), org="Acme Host"),
        ]
        stat = aggregate(signals, "org", now=NOW)["Acme Host"]
        assert categories_for(stat) == {"worst_now", "previously_bad"}
        assert "most_improved" not in categories_for(stat)

    def test_quiet_provider_is_in_two_categories(self):
        signals = [_signal(f"b{i}", timedelta(days=15), org="Beta Net") for i in range(5)]
        stat = aggregate(signals, "org", now=NOW)["Beta Net"]
        assert stat.prior_count == 5
        assert stat.recent_count == 0
        assert categories_for(stat) == {"previously_bad", "most_improved"}

    def test_previously_bad_allows_one_recent(self):
        assert "previously_bad" in categories_for(_stat("a", recent=1, prior=1))
        assert "previously_bad" not in categories_for(_stat("a", recent=2, prior=1))

    def test_most_improved_needs_more_than_two_prior(self):
        assert "most_improved" not in categories_for(_stat("a", recent=0, prior=2))
        assert "most_improved" in categories_for(_stat("a", recent=2, prior=3))
        assert "most_improved" not in categories_for(_stat("a", recent=3, prior=3))

    def test_no_activity_no_category(self):
        assert categories_for(_stat("a", recent=0, prior=0)) == set()


class TestTrendBoard:
    def test_each_category_ranked_by_its_metric(self):
        stats = [
            _stat("alpha", recent=4, prior=0),
            _stat("beta", recent=0, prior=6),
            _stat("gamma", recent=1, prior=9),
            _stat("delta", recent=4, prior=5),
        ]
        board = trend_board(stats)
        assert [s.key for s in board["worst_now"]] == ["alpha", "delta", "gamma"]
        assert [s.key for s in board["previously_bad"]] == ["gamma", "beta"]
        assert [s.key for s in board["most_improved"]] == ["gamma", "beta", "delta"]

    def test_empty(self):
        assert trend_board([]) == {
            "worst_now": [],
            "previously_bad": [],
            "most_improved": [],
        }
