"""Record normalization: raw feed rows to :class:`~radar.schemas.Signal`.

Each source table has one normalizer function registered in
``_NORMALIZERS``.  Adding a feed type means adding a record variant to
:mod:`radar.schemas` and one entry here; nothing downstream changes.

Rows are validated against the discriminated ``RawRecord`` union.  A row
that fails validation or carries no usable timestamp is dropped and
logged at DEBUG level.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..config import Settings, get_settings
from ..schemas import (
    DEFAULT_SEVERITY,
    SEVERITY_ORDER,
    SOURCE_TABLES,
    AtoEventRecord,
    BreachCheckRecord,
    EmailAuthReportRecord,
    RawRecord,
    Signal,
    SocialIocRecord,
    SpamTrapHitRecord,
    ThreatNewsRecord,
    ThreatRecord,
)
from ..utils.datetime import first_timestamp
from ..utils.text import check_mark, clean_value, clean_values, snippet

logger = logging.getLogger(__name__)

UNKNOWN_PROVIDER = "Unknown Provider"

_RAW_RECORD_ADAPTER: TypeAdapter = TypeAdapter(RawRecord)


def normalize_severity(value: Any) -> str:
    token = (clean_value(value) or "").lower()
    return token if token in SEVERITY_ORDER else DEFAULT_SEVERITY


def _normalize_brand(value: Any) -> Optional[str]:
    brand = clean_value(value)
    if not brand or len(brand) < 2:
        return None
    return brand.lower()


def _group_keys(pairs: Iterable[tuple[str, Any]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for dimension, raw in pairs:
        value = clean_value(raw)
        if value:
            out[dimension] = value
    return out


def _attributes(pairs: Iterable[tuple[str, Iterable[Any]]]) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for name, values in pairs:
        cleaned = clean_values(values)
        if cleaned:
            out[name] = cleaned
    return out


def _signal(
    record: BaseModel,
    timestamp: Optional[datetime],
    *,
    severity: Any,
    group_keys: Dict[str, str],
    attributes: Dict[str, List[str]],
    tags: Iterable[Any] = (),
    detail: str = "",
) -> Optional[Signal]:
    if timestamp is None:
        return None
    return Signal(
        id=str(record.id),
        timestamp=timestamp,
        severity=normalize_severity(severity),
        group_keys=group_keys,
        tags=clean_values(tags),
        source_table=record.source_table,
        attributes=attributes,
        detail=snippet(detail),
    )


# ── Per-source normalizers ──────────────────────────────────────


def _threat(record: ThreatRecord, settings: Settings) -> Optional[Signal]:
    org = clean_value(record.org_name) or clean_value(record.isp)
    if org == UNKNOWN_PROVIDER:
        org = None
    group_keys = _group_keys(
        [
            ("org", org),
            ("country", record.country),
            ("attackType", record.attack_type),
            ("source", record.source),
        ]
    )
    brand = _normalize_brand(record.brand)
    if brand:
        group_keys["brand"] = brand
    return _signal(
        record,
        first_timestamp(record.last_seen, record.created_at),
        severity=record.severity,
        group_keys=group_keys,
        attributes=_attributes(
            [
                ("ips", [record.ip_address]),
                ("domains", [record.domain]),
                ("asns", [record.asn]),
                ("isps", [record.isp]),
                ("abuseContacts", [record.abuse_contact]),
            ]
        ),
        tags=[record.status],
        detail=f"{record.brand or '?'}: {record.domain or '?'} ({record.attack_type or '?'})",
    )


def _threat_news(record: ThreatNewsRecord, settings: Settings) -> Optional[Signal]:
    group_keys = _group_keys([("product", record.product), ("source", record.source)])
    brand = _normalize_brand(record.vendor)
    if brand:
        group_keys["brand"] = brand
    title = record.title or record.cve_id or "Advisory"
    return _signal(
        record,
        first_timestamp(record.date_published, record.created_at),
        severity=record.severity,
        group_keys=group_keys,
        attributes={},
        tags=[record.cve_id],
        detail=f"{record.cve_id}: {title}" if record.cve_id else title,
    )


_SOCIAL_ATTRIBUTE = {
    "ip": "ips",
    "domain": "domains",
    "url": "domains",
    "sha256": "hashes",
    "md5": "hashes",
}


def _social_ioc(record: SocialIocRecord, settings: Settings) -> Optional[Signal]:
    group_keys = _group_keys([("iocType", record.ioc_type), ("source", record.source)])
    brand = _normalize_brand(record.tags[0]) if record.tags else None
    if brand:
        group_keys["brand"] = brand
    ioc_type = (clean_value(record.ioc_type) or "").lower()
    attribute = _SOCIAL_ATTRIBUTE.get(ioc_type)
    attributes = _attributes([(attribute, [record.ioc_value])]) if attribute else {}
    return _signal(
        record,
        first_timestamp(record.date_shared, record.created_at),
        severity=None,
        group_keys=group_keys,
        attributes=attributes,
        tags=record.tags,
        detail=f"[{record.ioc_type or '?'}] {record.ioc_value or '?'} via {record.source or '?'}",
    )


def _breach_check(record: BreachCheckRecord, settings: Settings) -> Optional[Signal]:
    check_type = (clean_value(record.check_type) or "").lower()
    attribute = {"domain": "domains", "email": "emails"}.get(check_type)
    attributes = _attributes([(attribute, [record.check_value])]) if attribute else {}
    return _signal(
        record,
        first_timestamp(record.last_checked, record.created_at),
        severity=record.risk_level,
        group_keys=_group_keys([("checkType", record.check_type)]),
        attributes=attributes,
        tags=record.breach_names,
        detail=(
            f"{record.check_type or '?'}:{record.check_value or '?'}: "
            f"breaches:{record.breaches_found or 0}"
        ),
    )


def _email_auth_report(
    record: EmailAuthReportRecord, settings: Settings
) -> Optional[Signal]:
    failures = [
        tag
        for tag, passed in (
            ("spf_fail", record.spf_pass),
            ("dkim_fail", record.dkim_pass),
            ("dmarc_fail", record.dmarc_aligned),
        )
        if not passed
    ]
    return _signal(
        record,
        first_timestamp(record.created_at, record.report_date),
        severity="high" if failures else "info",
        group_keys=_group_keys([("sender", record.source_name), ("policy", record.policy)]),
        attributes={},
        tags=failures,
        detail=(
            f"DMARC {'failure' if not record.dmarc_aligned else 'pass'}: "
            f"{record.source_name or '?'}: SPF:{check_mark(record.spf_pass)} "
            f"DKIM:{check_mark(record.dkim_pass)} Vol:{record.volume or 0}"
        ),
    )


def _ato_event(record: AtoEventRecord, settings: Settings) -> Optional[Signal]:
    risk = record.risk_score or 0
    return _signal(
        record,
        first_timestamp(record.detected_at, record.created_at),
        severity="critical" if risk >= settings.ato_critical_risk_score else "high",
        group_keys=_group_keys([("attackType", record.event_type)]),
        attributes=_attributes([("ips", [record.ip_from, record.ip_to])]),
        tags=["resolved" if record.resolved else "open"],
        detail=(
            f"{record.event_type or '?'}: {record.user_email or '?'}: "
            f"{record.location_from or '?'} → {record.location_to or '?'}"
        ),
    )


def _spam_trap_hit(record: SpamTrapHitRecord, settings: Settings) -> Optional[Signal]:
    group_keys = _group_keys(
        [
            ("category", record.category),
            ("country", record.country),
            ("senderDomain", record.sender_domain),
        ]
    )
    brand = _normalize_brand(record.brand_mentioned)
    if brand:
        group_keys["brand"] = brand
    return _signal(
        record,
        first_timestamp(record.received_at),
        severity=None,
        group_keys=group_keys,
        attributes=_attributes(
            [("ips", [record.sender_ip]), ("domains", [record.sender_domain])]
        ),
        tags=[record.category],
        detail=f"{record.category or '?'}: {record.sender_domain or '?'}: {record.subject or ''}",
    )


_NORMALIZERS: Dict[str, Callable[[Any, Settings], Optional[Signal]]] = {
    "threats": _threat,
    "threat_news": _threat_news,
    "social_iocs": _social_ioc,
    "breach_checks": _breach_check,
    "email_auth_reports": _email_auth_report,
    "ato_events": _ato_event,
    "spam_trap_hits": _spam_trap_hit,
}


# ── Public API ──────────────────────────────────────────────────


def parse_record(
    record: Union[Mapping[str, Any], BaseModel], source_table: str
) -> Optional[BaseModel]:
    """Validate *record* as the variant for *source_table*.

    Returns *None* when the row does not validate.
    """
    if source_table not in SOURCE_TABLES:
        raise ValueError(f"Unknown source table: {source_table!r}")
    if isinstance(record, BaseModel):
        if getattr(record, "source_table", None) != source_table:
            raise ValueError(
                f"Record of type {type(record).__name__} does not belong to {source_table!r}"
            )
        return record
    if not isinstance(record, Mapping):
        logger.debug("Dropping %s row of type %s", source_table, type(record).__name__)
        return None
    payload = dict(record)
    payload["source_table"] = source_table
    try:
        return _RAW_RECORD_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        logger.debug(
            "Dropping invalid %s row %r: %d validation error(s)",
            source_table,
            record.get("id"),
            exc.error_count(),
        )
        return None


def normalize_record(
    record: Union[Mapping[str, Any], BaseModel],
    source_table: str,
    settings: Optional[Settings] = None,
) -> Optional[Signal]:
    """Map one raw row to a Signal, or *None* when it cannot be used."""
    parsed = parse_record(record, source_table)
    if parsed is None:
        return None
    signal = _NORMALIZERS[source_table](parsed, settings or get_settings())
    if signal is None:
        logger.debug("Dropping %s row %r: no usable timestamp", source_table, parsed.id)
    return signal


def normalize_records(
    records: Iterable[Union[Mapping[str, Any], BaseModel]],
    source_table: str,
    settings: Optional[Settings] = None,
) -> List[Signal]:
    settings = settings or get_settings()
    signals: List[Signal] = []
    dropped = 0
    for record in records:
        signal = normalize_record(record, source_table, settings)
        if signal is None:
            dropped += 1
            continue
        signals.append(signal)
    if dropped:
        logger.debug(
            "Normalized %d %s row(s), dropped %d", len(signals), source_table, dropped
        )
    return signals
