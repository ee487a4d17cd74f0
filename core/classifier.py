"""
Heuristic classification of raw changelog text.

Everything here is a pure function of its arguments. Callers pass ``today``
explicitly so a whole crawl pass shares one reference date.

Date normalisation never raises: text that matches none of the known shapes
is reported as ``today``. That is a data-quality compromise (the entry is kept
with an approximate date) rather than data loss, and consumers of the stored
records should treat the date of fallback-extracted entries as approximate.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from dateutil import parser as date_parser

from .models import (
    ClassifiedUpdate,
    ExtractionStrategy,
    RawUpdate,
    UpdateMetadata,
    UpdateType,
    dedupe_casefold,
)

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 400

# Confidence depends on the extraction path only, never on the adapter.
CONFIDENCE: Dict[ExtractionStrategy, float] = {
    ExtractionStrategy.PRIMARY: 0.9,
    ExtractionStrategy.FALLBACK: 0.6,
    ExtractionStrategy.PROBE: 0.6,
}

# Checked in order, first hit wins: "new security fix" is security.
TYPE_KEYWORDS: Tuple[Tuple[UpdateType, Tuple[str, ...]], ...] = (
    (UpdateType.BREAKING, ("breaking", "deprecated")),
    (UpdateType.SECURITY, ("security", "vulnerability")),
    (UpdateType.PERFORMANCE, ("performance", "speed", "faster")),
    (UpdateType.BUGFIX, ("bug", "fix", "issue")),
    (UpdateType.PRICING, ("pricing", "plan", "cost")),
    (UpdateType.FEATURE, ("new", "add", "launch")),
)

TAG_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "api": ("api", "rest", "graphql", "endpoint"),
    "ui": ("ui", "interface", "design", "dashboard"),
    "mobile": ("mobile", "ios", "android", "app"),
    "web": ("web", "browser", "frontend"),
    "backend": ("backend", "server", "infrastructure"),
    "database": ("database", "db", "sql", "storage"),
    "auth": ("auth", "authentication", "login", "oauth"),
    "billing": ("billing", "payment", "subscription", "invoice"),
    "security": ("security", "encryption", "ssl", "vulnerability"),
    "performance": ("performance", "speed", "optimization", "faster"),
}

_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ][\d:.]+(?:Z|[+-]\d{2}:?\d{2})?)?$")
_US_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_MONTH_DAY_YEAR_RE = re.compile(r"^([A-Za-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})$")
_RELATIVE_RE = re.compile(
    r"^(\d+|an?|one)\s+(minute|min|hour|hr|day|week|month|year)s?\s+ago$",
    re.IGNORECASE,
)

_PARSER_INFO = date_parser.parserinfo()

_RELATIVE_DAYS = {
    "minute": 0,
    "min": 0,
    "hour": 0,
    "hr": 0,
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}


# --------------------------------------------------------------------------- #
# Type / tags
# --------------------------------------------------------------------------- #


def classify_type(title: str, description: str = "") -> UpdateType:
    content = f"{title} {description}".lower()
    for update_type, keywords in TYPE_KEYWORDS:
        if any(keyword in content for keyword in keywords):
            return update_type
    return UpdateType.IMPROVEMENT


def extract_tags(text: str) -> List[str]:
    """Return every generic tag whose keywords occur in ``text``."""
    content = text.lower()
    return [
        tag.capitalize()
        for tag, keywords in TAG_KEYWORDS.items()
        if any(keyword in content for keyword in keywords)
    ]


def keyword_tags(text: str, tag_map: Sequence[Tuple[str, Sequence[str]]]) -> List[str]:
    """Match ``text`` against an adapter's (tag, keywords) vocabulary."""
    content = text.lower()
    tags = [
        tag for tag, keywords in tag_map
        if any(keyword in content for keyword in keywords)
    ]
    return dedupe_casefold(tags)


# --------------------------------------------------------------------------- #
# Dates
# --------------------------------------------------------------------------- #


def _parse_absolute(text: str) -> Optional[date]:
    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError):
        return None


def parse_date(raw_date: str, today: date) -> Optional[date]:
    """Parse one of the known date shapes, or return ``None``."""
    text = " ".join(raw_date.split())
    if not text:
        return None

    # only the known absolute shapes reach dateutil, which would guess at anything
    if _ISO_RE.match(text) or _US_RE.match(text):
        return _parse_absolute(text)

    m = _MONTH_DAY_YEAR_RE.match(text)
    if m:
        if _PARSER_INFO.month(m.group(1)) is None:
            return None
        return _parse_absolute(text)

    lowered = text.lower()
    if lowered in ("today", "just now"):
        return today
    if lowered == "yesterday":
        return today - timedelta(days=1)

    m = _RELATIVE_RE.match(text)
    if m:
        amount = m.group(1).lower()
        count = 1 if amount in ("a", "an", "one") else int(amount)
        unit = m.group(2).lower()
        if unit in ("hour", "hr") and count >= 24:
            return today - timedelta(days=count // 24)
        return today - timedelta(days=count * _RELATIVE_DAYS[unit])

    return None


def normalize_date(raw_date: str, today: Optional[date] = None) -> str:
    """Normalise ``raw_date`` to ``YYYY-MM-DD``; unparseable input yields ``today``."""
    today = today or datetime.now(tz=timezone.utc).date()
    parsed = parse_date(raw_date or "", today)
    return (parsed or today).isoformat()


# --------------------------------------------------------------------------- #
# Whole-record classification
# --------------------------------------------------------------------------- #


def truncate_title(title: str) -> str:
    title = " ".join(title.split())
    if len(title) > MAX_TITLE_LENGTH:
        return title[:MAX_TITLE_LENGTH] + "..."
    return title


def classify_update(
    raw: RawUpdate,
    *,
    url: str,
    default_service: str,
    today: date,
) -> Optional[ClassifiedUpdate]:
    """Turn a :class:`RawUpdate` into a :class:`ClassifiedUpdate`.

    Returns ``None`` when the title is empty once whitespace is collapsed.
    ``default_service`` fills ``affectedServices`` when the adapter found no
    domain tags.
    """
    title = truncate_title(raw.title)
    if not title:
        return None

    description = raw.raw_description.strip()[:MAX_DESCRIPTION_LENGTH] or title
    text = f"{raw.title} {raw.raw_description}"
    services = list(raw.tags) or [default_service]

    return ClassifiedUpdate(
        title=title,
        date=normalize_date(raw.raw_date, today),
        type=classify_type(raw.title, raw.raw_description),
        description=description,
        tags=list(raw.tags) + extract_tags(text),
        confidence=CONFIDENCE[raw.strategy],
        metadata=UpdateMetadata(
            source_section=raw.section,
            affected_services=services,
        ),
        url=url,
    )
