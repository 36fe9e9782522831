"""
Recency window checks for posted dates.

Accepts the two shapes kariyer.net uses:
  - relative Turkish phrases on listing cards: "3 gün önce", "5 saat önce", "Bugün"
  - absolute dates from structured data or detail pages: "2026-10-12", "12.10.2026"

English variants ("3 days ago") are accepted too.

Policy for values we cannot read (None, "", "Acil", ...): they are always
treated as inside the window. Dropping a job because its date label changed
wording is worse than keeping one old posting.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum

from dateutil import parser as date_parser

from .utils import now_utc


class AgeWindow(Enum):
    ALL = None
    LAST_24H = 1
    LAST_7D = 7
    LAST_30D = 30

    @property
    def max_days(self) -> int | None:
        return self.value

    @classmethod
    def parse(cls, raw: object) -> AgeWindow:
        """
        Accepts enum members, 'all', '24h', '7d', '30d', 'last_7d', '7 days',
        '24 hours', 1/7/30 (days). Raises ValueError otherwise.
        """
        if isinstance(raw, AgeWindow):
            return raw
        if raw is None:
            return cls.ALL
        key = re.sub(r"[\s_\-]+", "", str(raw).strip().lower())
        if key in _WINDOW_ALIASES:
            return _WINDOW_ALIASES[key]
        raise ValueError(f"Unknown age window: {raw!r}")


_WINDOW_ALIASES: dict[str, AgeWindow] = {
    "": AgeWindow.ALL,
    "all": AgeWindow.ALL,
    "any": AgeWindow.ALL,
    "24h": AgeWindow.LAST_24H,
    "last24h": AgeWindow.LAST_24H,
    "24hours": AgeWindow.LAST_24H,
    "1d": AgeWindow.LAST_24H,
    "1": AgeWindow.LAST_24H,
    "7d": AgeWindow.LAST_7D,
    "last7d": AgeWindow.LAST_7D,
    "7days": AgeWindow.LAST_7D,
    "7": AgeWindow.LAST_7D,
    "30d": AgeWindow.LAST_30D,
    "last30d": AgeWindow.LAST_30D,
    "30days": AgeWindow.LAST_30D,
    "30": AgeWindow.LAST_30D,
}

# unit synonym -> days
_UNIT_DAYS: dict[str, float] = {
    "dakika": 1 / 1440,
    "dk": 1 / 1440,
    "minute": 1 / 1440,
    "minutes": 1 / 1440,
    "min": 1 / 1440,
    "saat": 1 / 24,
    "hour": 1 / 24,
    "hours": 1 / 24,
    "gün": 1.0,
    "gun": 1.0,
    "day": 1.0,
    "days": 1.0,
    "hafta": 7.0,
    "week": 7.0,
    "weeks": 7.0,
    "ay": 30.0,
    "month": 30.0,
    "months": 30.0,
}

_RELATIVE_RE = re.compile(r"(\d+)\s*\+?\s*([a-zçğıöşü]+)\s+(?:önce|once|ago)", re.IGNORECASE)

_NAMED_DAYS: dict[str, float] = {
    "bugün": 0.0,
    "bugun": 0.0,
    "today": 0.0,
    "yeni": 0.0,
    "dün": 1.0,
    "dun": 1.0,
    "yesterday": 1.0,
}


def _relative_days(text: str) -> float | None:
    low = text.strip().lower()
    m = _RELATIVE_RE.search(low)
    if m:
        unit = _UNIT_DAYS.get(m.group(2))
        if unit is not None:
            return int(m.group(1)) * unit
    for word, days in _NAMED_DAYS.items():
        if re.search(rf"(?<!\w){word}(?!\w)", low):
            return days
    return None


def _absolute_days(text: str, now: datetime) -> float | None:
    try:
        # ISO strings parse unambiguously; dayfirst only matters for "12.10.2026"
        dt = date_parser.parse(text, dayfirst=not re.match(r"^\d{4}-", text.strip()))
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (now - dt).total_seconds() / 86400.0


def elapsed_days(posted: str | None, *, now: datetime | None = None) -> float | None:
    """Days between `posted` and now, or None if the value cannot be read."""
    if posted is None:
        return None
    text = str(posted).strip()
    if not text:
        return None
    rel = _relative_days(text)
    if rel is not None:
        return rel
    return _absolute_days(text, now or now_utc())


def is_within_age(posted: str | None, window: AgeWindow | str | None, *, now: datetime | None = None) -> bool:
    """
    True if `posted` falls inside `window` (inclusive).

    ALL always passes; unreadable values always pass (see module docstring).
    """
    window = AgeWindow.parse(window)
    if window is AgeWindow.ALL:
        return True
    days = elapsed_days(posted, now=now)
    if days is None:
        return True
    return days <= window.max_days
