"""Panel assembly from one snapshot of feed rows.

Each function recomputes its panel in full from the snapshot it is
given; nothing is cached between calls.  :func:`build_dashboard`
resolves ``now`` once so that every panel of a refresh agrees on the
same window boundaries.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from .config import Settings, get_settings, validate_settings
from .engine.abuse import abuse_reporting_info
from .engine.aggregate import aggregate, count_by, severity_distribution
from .engine.correlate import correlate
from .engine.normalize import normalize_records
from .engine.rank import rank, visible_slice
from .engine.series import build_daily_series, by_dimension, by_severity
from .engine.timeline import merge
from .engine.trends import trend_board
from .schemas import (
    SEVERITY_ORDER,
    DashboardView,
    DistributionItem,
    FeedAnalytics,
    ProviderCard,
    ProviderPanel,
    SenderDomainItem,
    SeriesPoint,
    Signal,
    Snapshot,
    SpamTrapAnalytics,
    TimelineEntry,
)
from .utils.datetime import resolve_now

logger = logging.getLogger(__name__)

SPAM_TRAP_CATEGORIES = ("phishing", "spam", "scam", "brand-abuse")
TOP_IOC_TYPES = 8
TOP_COUNTRIES = 10
TOP_BRANDS = 6
TOP_SENDER_DOMAINS = 8


def hosting_provider_panel(
    snapshot: Snapshot,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> ProviderPanel:
    settings = settings or get_settings()
    now = resolve_now(now)
    signals = normalize_records(snapshot.threats, "threats", settings)
    stats = aggregate(signals, "org", now=now, settings=settings)
    board = trend_board(stats.values())
    return ProviderPanel(
        provider_count=len(stats),
        categories={
            category: visible_slice(
                [
                    ProviderCard(stat=stat, abuse=abuse_reporting_info(stat.key))
                    for stat in ranked
                ],
                settings=settings,
            )
            for category, ranked in board.items()
        },
    )


def correlation_timeline(
    snapshot: Snapshot,
    settings: Optional[Settings] = None,
) -> List[TimelineEntry]:
    """Active high-severity threats, DMARC failures and ATO events, newest first."""
    settings = settings or get_settings()
    threats = [
        signal
        for signal in normalize_records(snapshot.threats, "threats", settings)
        if "active" in signal.tags and signal.severity in ("critical", "high")
    ]
    dmarc_failures = [
        signal
        for signal in normalize_records(
            snapshot.email_auth_reports, "email_auth_reports", settings
        )
        if "dmarc_fail" in signal.tags
    ]
    ato_events = normalize_records(snapshot.ato_events, "ato_events", settings)
    return merge(
        [
            threats[: settings.timeline_threat_cap],
            dmarc_failures[: settings.timeline_dmarc_cap],
            ato_events[: settings.timeline_ato_cap],
        ],
        settings=settings,
    )


def spam_trap_daily_volume(
    snapshot: Snapshot,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> List[SeriesPoint]:
    settings = settings or get_settings()
    signals = normalize_records(snapshot.spam_trap_hits, "spam_trap_hits", settings)
    return build_daily_series(
        signals,
        by_dimension("category"),
        now=now,
        categories=SPAM_TRAP_CATEGORIES,
        settings=settings,
    )


def _dominant(counts: Optional[Counter]) -> Optional[str]:
    if not counts:
        return None
    return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]


def spam_trap_analytics(
    snapshot: Snapshot,
    settings: Optional[Settings] = None,
) -> SpamTrapAnalytics:
    """Category, sender-domain, brand and country breakdowns of trap hits.

    Each sender domain is labelled with its most frequent category.
    """
    settings = settings or get_settings()
    hits = normalize_records(snapshot.spam_trap_hits, "spam_trap_hits", settings)
    domain_categories: Dict[str, Counter] = defaultdict(Counter)
    for hit in hits:
        domain = hit.group_keys.get("senderDomain")
        category = hit.group_keys.get("category")
        if domain and category:
            domain_categories[domain][category] += 1
    return SpamTrapAnalytics(
        total_hits=len(hits),
        categories=count_by(hits, "category"),
        sender_domains=[
            SenderDomainItem(
                name=item.name,
                value=item.value,
                sources=item.sources,
                category=_dominant(domain_categories.get(item.name)),
            )
            for item in count_by(hits, "senderDomain", TOP_SENDER_DOMAINS)
        ],
        brands=count_by(hits, "brand", TOP_BRANDS),
        countries=count_by(hits, "country", TOP_COUNTRIES),
    )


def threat_velocity(
    snapshot: Snapshot,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> List[SeriesPoint]:
    settings = settings or get_settings()
    signals = normalize_records(snapshot.threats, "threats", settings)
    return build_daily_series(
        signals,
        by_severity,
        now=now,
        categories=SEVERITY_ORDER,
        settings=settings,
    )


def _combine(
    distributions: Iterable[List[DistributionItem]], top_n: Optional[int] = None
) -> List[DistributionItem]:
    totals: Counter = Counter()
    sources: Dict[str, Set[str]] = defaultdict(set)
    for items in distributions:
        for item in items:
            totals[item.name] += item.value
            sources[item.name].update(item.sources)
    combined = rank(
        [
            DistributionItem(name=name, value=value, sources=sorted(sources[name]))
            for name, value in totals.items()
        ],
        "value",
    )
    return combined if top_n is None else combined[:top_n]


def feed_analytics(
    snapshot: Snapshot,
    settings: Optional[Settings] = None,
) -> FeedAnalytics:
    settings = settings or get_settings()
    threats = normalize_records(snapshot.threats, "threats", settings)
    news = normalize_records(snapshot.threat_news, "threat_news", settings)
    social = normalize_records(snapshot.social_iocs, "social_iocs", settings)
    spam = normalize_records(snapshot.spam_trap_hits, "spam_trap_hits", settings)

    brand_signals: List[Signal] = threats + news + social
    return FeedAnalytics(
        severity=severity_distribution(threats),
        ioc_types=_combine(
            [count_by(threats, "attackType"), count_by(social, "iocType")],
            TOP_IOC_TYPES,
        ),
        geography=count_by(threats + spam, "country", TOP_COUNTRIES),
        feed_volume=count_by(threats, "source"),
        top_brands=count_by(brand_signals, "brand", TOP_BRANDS),
    )


def build_dashboard(
    snapshot: Snapshot,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> DashboardView:
    """Build every panel against one ``now``; invalid settings raise ``ValueError``."""
    settings = validate_settings(settings or get_settings())
    now = resolve_now(now)
    view = DashboardView(
        generated_at=now,
        providers=hosting_provider_panel(snapshot, now, settings),
        timeline=correlation_timeline(snapshot, settings),
        spam_trap_volume=spam_trap_daily_volume(snapshot, now, settings),
        spam_trap=spam_trap_analytics(snapshot, settings),
        threat_velocity=threat_velocity(snapshot, now, settings),
        analytics=feed_analytics(snapshot, settings),
        correlations=correlate(snapshot, now, settings),
    )
    logger.debug(
        "Dashboard built: %d provider(s), %d timeline entr(ies)",
        view.providers.provider_count,
        len(view.timeline),
    )
    return view
