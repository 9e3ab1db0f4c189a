"""Local cross-signal correlation counts.

These are the counts the converged-intelligence view builds over the
last recent window before anything is sent to the remote analysis
service: threat infrastructure matched against DMARC failures, ATO
source IPs, social-media IOCs and breach checks.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from ..config import Settings, get_settings
from ..schemas import CorrelationSummary, Snapshot
from ..utils.datetime import parse_timestamp, resolve_now
from .normalize import parse_record

logger = logging.getLogger(__name__)

MAX_WEAPONIZED_DOMAINS = 20
MAX_TARGETED_BRANDS = 15
MAX_TRENDING_TAGS = 10

_SOCIAL_DOMAIN_TYPES = {"domain", "url"}
_SOCIAL_HASH_TYPES = {"sha256", "md5"}


def _recent_records(
    rows: Iterable[Mapping[str, Any]],
    source_table: str,
    since: datetime,
) -> List[Any]:
    out: List[BaseModel] = []
    for row in rows:
        record = parse_record(row, source_table)
        if record is None:
            continue
        created = parse_timestamp(record.created_at)
        if created is None or created < since:
            continue
        out.append(record)
    return out


def _distinct(values: Iterable[Optional[str]]) -> List[str]:
    seen: dict = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return list(seen)


def _lower(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_dmarc_failure(report: Any) -> bool:
    return not report.dmarc_aligned or not report.spf_pass or not report.dkim_pass


def correlate(
    snapshot: Snapshot,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> CorrelationSummary:
    settings = settings or get_settings()
    now = resolve_now(now)
    since = now - timedelta(days=settings.recent_window_days)

    threats = _recent_records(snapshot.threats, "threats", since)
    reports = _recent_records(snapshot.email_auth_reports, "email_auth_reports", since)
    ato_events = _recent_records(snapshot.ato_events, "ato_events", since)
    news = _recent_records(snapshot.threat_news, "threat_news", since)
    social = _recent_records(snapshot.social_iocs, "social_iocs", since)
    breaches = _recent_records(snapshot.breach_checks, "breach_checks", since)

    dmarc_failures = [r for r in reports if is_dmarc_failure(r)]
    threat_brands = _distinct(_lower(t.brand) for t in threats)
    threat_domains = _distinct(_lower(t.domain) for t in threats)
    threat_ips = {t.ip_address for t in threats if t.ip_address}

    active_high = [
        t
        for t in threats
        if _lower(t.status) == "active" and _lower(t.severity) in ("critical", "high")
    ]
    correlated_dmarc = [
        r
        for r in dmarc_failures
        if any(brand in _lower(r.source_name) for brand in threat_brands)
    ]
    correlated_ato = [
        a for a in ato_events if a.ip_from in threat_ips or a.ip_to in threat_ips
    ]

    social_domains = [s for s in social if _lower(s.ioc_type) in _SOCIAL_DOMAIN_TYPES]
    social_ips = [s for s in social if _lower(s.ioc_type) == "ip"]
    social_hashes = [s for s in social if _lower(s.ioc_type) in _SOCIAL_HASH_TYPES]
    correlated_social = [
        s
        for s in social_domains
        if any(domain in _lower(s.ioc_value) for domain in threat_domains)
    ]
    correlated_social_ips = [s for s in social_ips if s.ioc_value in threat_ips]

    tag_counts: Counter = Counter(tag for s in social for tag in s.tags if tag)
    trending = sorted(tag_counts.items(), key=lambda item: (-item[1], item[0]))

    high_risk = [b for b in breaches if _lower(b.risk_level) in ("high", "critical")]
    correlated_breach = [
        b
        for b in breaches
        if _lower(b.check_type) == "domain"
        and any(brand in _lower(b.check_value) for brand in threat_brands)
    ]

    summary = CorrelationSummary(
        total_threats=len(threats),
        active_high_threats=len(active_high),
        dmarc_failures=len(dmarc_failures),
        ato_events=len(ato_events),
        correlated_dmarc_threats=len(correlated_dmarc),
        correlated_ato_threats=len(correlated_ato),
        weaponized_domains=threat_domains[:MAX_WEAPONIZED_DOMAINS],
        targeted_brands=threat_brands[:MAX_TARGETED_BRANDS],
        kev_alerts=sum(1 for n in news if _lower(n.severity) == "critical"),
        social_iocs=len(social),
        social_domains=len(social_domains),
        social_ips=len(social_ips),
        social_hashes=len(social_hashes),
        correlated_social_threats=len(correlated_social),
        correlated_social_ips=len(correlated_social_ips),
        trending_tags=trending[:MAX_TRENDING_TAGS],
        breach_checks=len(breaches),
        high_risk_breaches=len(high_risk),
        correlated_breach_brands=len(correlated_breach),
    )
    logger.debug(
        "Correlated %d threat(s) against %d DMARC failure(s) and %d ATO event(s)",
        summary.total_threats,
        summary.dmarc_failures,
        summary.ato_events,
    )
    return summary
