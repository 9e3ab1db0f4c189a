"""Shared text-processing utilities for group keys and timeline details."""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional

_WS_RE = re.compile(r"\s+")


def clean_value(value: Any) -> Optional[str]:
    """Strip and collapse whitespace; empty or missing values become *None*."""
    if value is None:
        return None
    text = _WS_RE.sub(" ", str(value)).strip()
    return text or None


def clean_values(values: Iterable[Any]) -> List[str]:
    """Clean every value and return the sorted distinct survivors."""
    out = {cleaned for cleaned in (clean_value(v) for v in values) if cleaned}
    return sorted(out)


def snippet(text: str, limit: int = 160) -> str:
    """Truncate *text* to *limit* characters with an ellipsis."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def check_mark(value: Optional[bool]) -> str:
    return "✓" if value else "✗"
