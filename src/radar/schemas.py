from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

Severity = Literal["critical", "high", "medium", "low", "info"]
SEVERITY_ORDER: Tuple[str, ...] = ("critical", "high", "medium", "low", "info")
DEFAULT_SEVERITY = "medium"

SourceTable = Literal[
    "threats",
    "threat_news",
    "social_iocs",
    "breach_checks",
    "email_auth_reports",
    "ato_events",
    "spam_trap_hits",
]
SOURCE_TABLES: Tuple[str, ...] = (
    "threats",
    "threat_news",
    "social_iocs",
    "breach_checks",
    "email_auth_reports",
    "ato_events",
    "spam_trap_hits",
)

TrendCategory = Literal["worst_now", "previously_bad", "most_improved"]
TREND_CATEGORIES: Tuple[str, ...] = ("worst_now", "previously_bad", "most_improved")

# Dimension names a Signal may carry in ``group_keys``.
DIMENSIONS: Tuple[str, ...] = (
    "org",
    "brand",
    "country",
    "attackType",
    "iocType",
    "source",
    "product",
    "checkType",
    "sender",
    "policy",
    "category",
    "senderDomain",
)


def _coerce_id(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# Optional feed fields never fail a row: values that cannot be read as
# the declared type become None (or are left out of lists).


def _lenient_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _lenient_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (str, int, float)):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return []
    return [text for text in (_lenient_text(item) for item in value) if text is not None]


def _lenient_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _lenient_int(value: Any) -> Optional[int]:
    number = _lenient_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


_TRUE_TOKENS = {"true", "t", "yes", "y", "1", "pass"}
_FALSE_TOKENS = {"false", "f", "no", "n", "0", "fail"}


def _lenient_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
    return None


Text = Annotated[Optional[str], BeforeValidator(_lenient_text)]
RequiredText = Annotated[str, BeforeValidator(_coerce_id)]
TextList = Annotated[List[str], BeforeValidator(_lenient_text_list)]
OptInt = Annotated[Optional[int], BeforeValidator(_lenient_int)]
OptFloat = Annotated[Optional[float], BeforeValidator(_lenient_float)]
OptBool = Annotated[Optional[bool], BeforeValidator(_lenient_bool)]


# ── Raw record variants ─────────────────────────────────────────


class _RecordBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: RequiredText
    created_at: Any = None


class ThreatRecord(_RecordBase):
    source_table: Literal["threats"] = "threats"
    brand: Text = None
    domain: Text = None
    attack_type: Text = None
    severity: Text = None
    status: Text = None
    source: Text = None
    country: Text = None
    ip_address: Text = None
    asn: Text = None
    org_name: Text = None
    isp: Text = None
    abuse_contact: Text = None
    first_seen: Any = None
    last_seen: Any = None


class ThreatNewsRecord(_RecordBase):
    source_table: Literal["threat_news"] = "threat_news"
    title: Text = None
    cve_id: Text = None
    vendor: Text = None
    product: Text = None
    severity: Text = None
    source: Text = None
    url: Text = None
    date_published: Any = None


class SocialIocRecord(_RecordBase):
    source_table: Literal["social_iocs"] = "social_iocs"
    ioc_type: Text = None
    ioc_value: Text = None
    source: Text = None
    source_user: Text = None
    confidence: Text = None
    tags: TextList = Field(default_factory=list)
    date_shared: Any = None


class BreachCheckRecord(_RecordBase):
    source_table: Literal["breach_checks"] = "breach_checks"
    check_type: Text = None
    check_value: Text = None
    risk_level: Text = None
    breaches_found: OptInt = None
    pastes_found: OptInt = None
    breach_names: TextList = Field(default_factory=list)
    last_checked: Any = None


class EmailAuthReportRecord(_RecordBase):
    source_table: Literal["email_auth_reports"] = "email_auth_reports"
    source_name: Text = None
    policy: Text = None
    spf_pass: OptBool = None
    dkim_pass: OptBool = None
    dmarc_aligned: OptBool = None
    volume: OptInt = None
    report_date: Any = None


class AtoEventRecord(_RecordBase):
    source_table: Literal["ato_events"] = "ato_events"
    event_type: Text = None
    user_email: Text = None
    ip_from: Text = None
    ip_to: Text = None
    location_from: Text = None
    location_to: Text = None
    risk_score: OptFloat = None
    resolved: OptBool = None
    detected_at: Any = None


class SpamTrapHitRecord(_RecordBase):
    source_table: Literal["spam_trap_hits"] = "spam_trap_hits"
    trap_address: Text = None
    sender_email: Text = None
    sender_domain: Text = None
    sender_ip: Text = None
    country: Text = None
    subject: Text = None
    category: Text = None
    brand_mentioned: Text = None
    spf_pass: OptBool = None
    dkim_pass: OptBool = None
    confidence: OptFloat = None
    received_at: Any = None


RawRecord = Annotated[
    Union[
        ThreatRecord,
        ThreatNewsRecord,
        SocialIocRecord,
        BreachCheckRecord,
        EmailAuthReportRecord,
        AtoEventRecord,
        SpamTrapHitRecord,
    ],
    Field(discriminator="source_table"),
]


# ── Engine models ───────────────────────────────────────────────


class Signal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    severity: Severity = DEFAULT_SEVERITY
    group_keys: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    source_table: SourceTable
    attributes: Dict[str, List[str]] = Field(default_factory=dict)
    detail: str = ""


class WindowCounts(BaseModel):
    recent_count: int = 0
    prior_count: int = 0


class GroupStat(BaseModel):
    key: str
    dimension: str
    total_count: int = 0
    recent_count: int = 0
    prior_count: int = 0
    distinct_values: Dict[str, List[str]] = Field(default_factory=dict)
    severity_histogram: Dict[str, int] = Field(default_factory=dict)
    last_seen: Optional[datetime] = None

    @property
    def improvement(self) -> int:
        return self.prior_count - self.recent_count


class TimelineEntry(BaseModel):
    time: datetime
    severity: Severity
    source_table: SourceTable
    detail: str
    signal_id: str


class SeriesPoint(BaseModel):
    day: date
    day_label: str
    counts: Dict[str, int] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


class VisibleSlice(BaseModel):
    items: List[Any] = Field(default_factory=list)
    has_more: bool = False
    total: int = 0


class DistributionItem(BaseModel):
    name: str
    value: int
    sources: List[str] = Field(default_factory=list)


class CorrelationSummary(BaseModel):
    total_threats: int = 0
    active_high_threats: int = 0
    dmarc_failures: int = 0
    ato_events: int = 0
    correlated_dmarc_threats: int = 0
    correlated_ato_threats: int = 0
    weaponized_domains: List[str] = Field(default_factory=list)
    targeted_brands: List[str] = Field(default_factory=list)
    kev_alerts: int = 0
    social_iocs: int = 0
    social_domains: int = 0
    social_ips: int = 0
    social_hashes: int = 0
    correlated_social_threats: int = 0
    correlated_social_ips: int = 0
    trending_tags: List[Tuple[str, int]] = Field(default_factory=list)
    breach_checks: int = 0
    high_risk_breaches: int = 0
    correlated_breach_brands: int = 0


class AbuseReportingInfo(BaseModel):
    provider: str
    url: str
    instructions: str


# ── Dashboard views ─────────────────────────────────────────────


class Snapshot(BaseModel):
    """One refresh worth of raw rows, keyed by source table."""

    threats: List[Dict[str, Any]] = Field(default_factory=list)
    threat_news: List[Dict[str, Any]] = Field(default_factory=list)
    social_iocs: List[Dict[str, Any]] = Field(default_factory=list)
    breach_checks: List[Dict[str, Any]] = Field(default_factory=list)
    email_auth_reports: List[Dict[str, Any]] = Field(default_factory=list)
    ato_events: List[Dict[str, Any]] = Field(default_factory=list)
    spam_trap_hits: List[Dict[str, Any]] = Field(default_factory=list)


class ProviderCard(BaseModel):
    stat: GroupStat
    abuse: Optional[AbuseReportingInfo] = None


class ProviderPanel(BaseModel):
    provider_count: int = 0
    categories: Dict[str, VisibleSlice] = Field(default_factory=dict)


class FeedAnalytics(BaseModel):
    severity: List[DistributionItem] = Field(default_factory=list)
    ioc_types: List[DistributionItem] = Field(default_factory=list)
    geography: List[DistributionItem] = Field(default_factory=list)
    feed_volume: List[DistributionItem] = Field(default_factory=list)
    top_brands: List[DistributionItem] = Field(default_factory=list)


class SenderDomainItem(DistributionItem):
    category: Optional[str] = None


class SpamTrapAnalytics(BaseModel):
    total_hits: int = 0
    categories: List[DistributionItem] = Field(default_factory=list)
    sender_domains: List[SenderDomainItem] = Field(default_factory=list)
    brands: List[DistributionItem] = Field(default_factory=list)
    countries: List[DistributionItem] = Field(default_factory=list)


class DashboardView(BaseModel):
    generated_at: datetime
    providers: ProviderPanel
    timeline: List[TimelineEntry] = Field(default_factory=list)
    spam_trap_volume: List[SeriesPoint] = Field(default_factory=list)
    spam_trap: SpamTrapAnalytics = Field(default_factory=SpamTrapAnalytics)
    threat_velocity: List[SeriesPoint] = Field(default_factory=list)
    analytics: FeedAnalytics
    correlations: CorrelationSummary
