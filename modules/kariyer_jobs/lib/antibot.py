"""
Keyword heuristics for anti-bot interstitials (Cloudflare challenges, WAF
"access denied" pages, captcha walls).

This is a plain substring match, so it will misfire now and then: a real job
ad that mentions "forbidden" is reported as blocked, and a challenge page with
unfamiliar wording slips through.
"""

from __future__ import annotations

BLOCK_PHRASES: tuple[str, ...] = (
    "access denied",
    "cloudflare",
    "just a moment",
    "are you a robot",
    "ddos protection",
    "forbidden",
    "temporarily blocked",
    "attention required",
    "captcha",
    "robot olmadığınızı",
    "erişim engellendi",
)


def blocked_reason(html_or_text: str | None) -> str | None:
    """Return the first matching block phrase, or None for a normal page."""
    if not html_or_text:
        return None
    haystack = html_or_text.lower()
    for phrase in BLOCK_PHRASES:
        if phrase in haystack:
            return phrase
    return None


def is_blocked(html_or_text: str | None) -> bool:
    return blocked_reason(html_or_text) is not None
