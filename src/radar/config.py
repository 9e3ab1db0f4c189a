from __future__ import annotations

import logging
import os
from dataclasses import dataclass


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


@dataclass(frozen=True)
class Settings:
    # ── Trend windows ────────────────────────────────────────
    # Recent window is (now - recent, now]; prior is (now - prior, now - recent].
    recent_window_days: int = _env_int("RADAR_RECENT_WINDOW_DAYS", "7")
    prior_window_days: int = _env_int("RADAR_PRIOR_WINDOW_DAYS", "30")

    # ── Charts and lists ─────────────────────────────────────
    series_days: int = _env_int("RADAR_SERIES_DAYS", "7")
    day_label_format: str = os.getenv("RADAR_DAY_LABEL_FORMAT", "%b %d")
    timeline_limit: int = _env_int("RADAR_TIMELINE_LIMIT", "20")
    leaderboard_visible: int = _env_int("RADAR_LEADERBOARD_VISIBLE", "5")

    # Per-stream caps for the correlation timeline
    timeline_threat_cap: int = _env_int("RADAR_TIMELINE_THREAT_CAP", "10")
    timeline_dmarc_cap: int = _env_int("RADAR_TIMELINE_DMARC_CAP", "5")
    timeline_ato_cap: int = _env_int("RADAR_TIMELINE_ATO_CAP", "5")

    # ── Normalization ────────────────────────────────────────
    ato_critical_risk_score: int = _env_int("RADAR_ATO_CRITICAL_RISK_SCORE", "70")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def get_settings() -> Settings:
    return Settings()


def validate_settings(settings: Settings) -> Settings:
    if settings.recent_window_days <= 0:
        raise ValueError("RADAR_RECENT_WINDOW_DAYS must be positive")
    if settings.prior_window_days <= settings.recent_window_days:
        raise ValueError(
            "RADAR_PRIOR_WINDOW_DAYS must be greater than RADAR_RECENT_WINDOW_DAYS"
        )
    if settings.series_days < 0:
        raise ValueError("RADAR_SERIES_DAYS must be >= 0")
    for env_name, value in (
        ("RADAR_TIMELINE_LIMIT", settings.timeline_limit),
        ("RADAR_LEADERBOARD_VISIBLE", settings.leaderboard_visible),
        ("RADAR_TIMELINE_THREAT_CAP", settings.timeline_threat_cap),
        ("RADAR_TIMELINE_DMARC_CAP", settings.timeline_dmarc_cap),
        ("RADAR_TIMELINE_ATO_CAP", settings.timeline_ato_cap),
    ):
        if value < 0:
            raise ValueError(f"{env_name} must be >= 0")
    if not 0 <= settings.ato_critical_risk_score <= 100:
        raise ValueError("RADAR_ATO_CRITICAL_RISK_SCORE must be between 0 and 100")
    return settings


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging for a host process embedding the engine."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)
