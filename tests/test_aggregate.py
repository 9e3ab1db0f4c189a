from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from radar.engine.aggregate import aggregate, count_by, severity_distribution
from radar.schemas import Signal

NOW = datetime(2026, 3, 15, 12, tzinfo=timezone.utc)


def _signal(sid, days_ago, severity="medium", source_table="threats", attributes=None, **keys):
    return Signal(
        id=sid,
        timestamp=NOW - timedelta(days=days_ago),
        severity=severity,
        group_keys=keys,
        source_table=source_table,
        attributes=attributes or {},
    )


# ── aggregate ───────────────────────────────────────────────────


class TestAggregate:
    def test_window_counts_for_one_group(self):
        signals = [
            _signal("a1", 2, org="Acme Host"),
            _signal("a2", 10, org="Acme Host"),
            _signal("a3", 40, org="Acme Host"),
        ]
        stats = aggregate(signals, "org", now=NOW)
        stat = stats["Acme Host"]
        assert stat.total_count == 3
        assert stat.recent_count == 1
        assert stat.prior_count == 1
        assert stat.dimension == "org"
        assert stat.last_seen == NOW - timedelta(days=2)

    def test_totality_over_signals_with_dimension(self):
        signals = [
            _signal("s1", 1, org="A"),
            _signal("s2", 1, org="B"),
            _signal("s3", 3, org="A"),
            _signal("s4", 1, country="NL"),
        ]
        stats = aggregate(signals, "org", now=NOW)
        assert sum(stat.total_count for stat in stats.values()) == 3
        assert list(stats) == ["A", "B"]

    def test_independent_of_input_order(self):
        signals = [
            _signal(f"s{i}", i % 35, org=f"org-{i % 4}", severity=("high", "low")[i % 2],
                    attributes={"ips": [f"10.0.0.{i % 3}"]})
            for i in range(40)
        ]
        shuffled = list(signals)
        random.Random(7).shuffle(shuffled)
        assert aggregate(signals, "org", now=NOW) == aggregate(shuffled, "org", now=NOW)

    def test_distinct_values_have_set_semantics(self):
        signals = [
            _signal("s1", 1, org="A", attributes={"ips": ["10.0.0.2", "10.0.0.1"]}),
            _signal("s2", 2, org="A", attributes={"ips": ["10.0.0.1"], "asns": ["AS1"]}),
        ]
        stat = aggregate(signals, "org", now=NOW)["A"]
        assert stat.distinct_values == {"asns": ["AS1"], "ips": ["10.0.0.1", "10.0.0.2"]}

    def test_severity_histogram(self):
        signals = [
            _signal("s1", 1, org="A", severity="high"),
            _signal("s2", 2, org="A", severity="high"),
            _signal("s3", 2, org="A", severity="critical"),
        ]
        stat = aggregate(signals, "org", now=NOW)["A"]
        assert stat.severity_histogram == {"critical": 1, "high": 2}
        assert list(stat.severity_histogram) == ["critical", "high"]

    def test_out_of_window_signals_count_in_total_only(self):
        signals = [_signal("s1", 45, org="A"), _signal("s2", -1, org="A")]
        stat = aggregate(signals, "org", now=NOW)["A"]
        assert (stat.total_count, stat.recent_count, stat.prior_count) == (2, 0, 0)

    def test_empty_input(self):
        assert aggregate([], "org", now=NOW) == {}

    def test_unknown_dimension_raises(self):
        with pytest.raises(ValueError, match="Unknown dimension"):
            aggregate([], "planet", now=NOW)

    def test_accepts_generator(self):
        stats = aggregate((s for s in [_signal("s1", 1, org="A")]), "org", now=NOW)
        assert stats["A"].total_count == 1


# ── distributions ───────────────────────────────────────────────


class TestCountBy:
    def test_most_frequent_first_with_name_tie_break(self):
        signals = [
            _signal("s1", 1, country="US"),
            _signal("s2", 1, country="NL"),
            _signal("s3", 1, country="NL"),
            _signal("s4", 1, country="DE"),
            _signal("s5", 1, country="US"),
            _signal("s6", 1, country="FR"),
        ]
        items = count_by(signals, "country")
        assert [(i.name, i.value) for i in items] == [
            ("NL", 2), ("US", 2), ("DE", 1), ("FR", 1),
        ]

    def test_top_n(self):
        signals = [_signal(f"s{i}", 1, country=c) for i, c in enumerate("ABBCCC")]
        assert [i.name for i in count_by(signals, "country", top_n=2)] == ["C", "B"]
        assert count_by(signals, "country", top_n=0) == []

    def test_sources(self):
        signals = [
            _signal("s1", 1, brand="acme", source="phishtank"),
            _signal("s2", 1, brand="acme", source_table="social_iocs"),
        ]
        (item,) = count_by(signals, "brand")
        assert item.sources == ["phishtank", "social_iocs"]

    def test_negative_top_n_raises(self):
        with pytest.raises(ValueError):
            count_by([], "country", top_n=-1)


def test_severity_distribution_in_severity_order():
    signals = [
        _signal("s1", 1, severity="low"),
        _signal("s2", 1, severity="critical"),
        _signal("s3", 1, severity="low"),
    ]
    items = severity_distribution(signals)
    assert [(i.name, i.value) for i in items] == [("critical", 1), ("low", 2)]
    assert severity_distribution([]) == []
