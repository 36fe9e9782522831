"""
Browser-like request headers.

A profile fixes browser + OS so the User-Agent, client hints (sec-ch-ua*) and
Accept headers stay consistent with each other; only the exact browser version
is varied between calls.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

DEFAULT_LOCALE = "tr-TR"
DEFAULT_REFERER = "https://www.kariyer.net/is-ilanlari"


@dataclass(frozen=True)
class DeviceProfile:
    browser: str  # chrome | edge | firefox
    os: str  # windows | macos
    platform: str  # value for sec-ch-ua-platform
    ua_template: str


PROFILES: dict[str, DeviceProfile] = {
    "chrome-windows": DeviceProfile(
        browser="chrome",
        os="windows",
        platform='"Windows"',
        ua_template=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/{v}.0.0.0 Safari/537.36"
        ),
    ),
    "chrome-macos": DeviceProfile(
        browser="chrome",
        os="macos",
        platform='"macOS"',
        ua_template=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/{v}.0.0.0 Safari/537.36"
        ),
    ),
    "edge-windows": DeviceProfile(
        browser="edge",
        os="windows",
        platform='"Windows"',
        ua_template=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/{v}.0.0.0 Safari/537.36 Edg/{v}.0.0.0"
        ),
    ),
    "firefox-windows": DeviceProfile(
        browser="firefox",
        os="windows",
        platform='"Windows"',
        ua_template="Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:{v}.0) Gecko/20100101 Firefox/{v}.0",
    ),
}

_CHROMIUM_VERSIONS = (126, 127, 128, 129, 130, 131)
_FIREFOX_VERSIONS = (128, 129, 130, 131, 132)


def accept_language(locale: str) -> str:
    """'tr-TR' -> 'tr-TR,tr;q=0.9,en-US;q=0.8,en;q=0.7'."""
    lang = locale.split("-", 1)[0]
    if lang == "en":
        return f"{locale},en;q=0.9"
    return f"{locale},{lang};q=0.9,en-US;q=0.8,en;q=0.7"


class HeaderProfileGenerator:
    def __init__(
        self,
        *,
        locale: str = DEFAULT_LOCALE,
        referer: str | None = DEFAULT_REFERER,
        profiles: list[str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        names = profiles or list(PROFILES)
        unknown = [n for n in names if n not in PROFILES]
        if unknown:
            raise ValueError(f"Unknown header profiles: {unknown}")
        self.locale = locale
        self.referer = referer
        self._names = names
        self._rng = rng or random.Random()

    def headers(self, profile: str | None = None) -> dict[str, str]:
        name = profile or self._rng.choice(self._names)
        prof = PROFILES[name]
        if prof.browser == "firefox":
            version = self._rng.choice(_FIREFOX_VERSIONS)
        else:
            version = self._rng.choice(_CHROMIUM_VERSIONS)

        out = {
            "User-Agent": prof.ua_template.format(v=version),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": accept_language(self.locale),
            "Accept-Encoding": "gzip, deflate",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "same-origin" if self.referer else "none",
            "Sec-Fetch-User": "?1",
        }
        if prof.browser != "firefox":
            brand = "Microsoft Edge" if prof.browser == "edge" else "Google Chrome"
            out["sec-ch-ua"] = f'"Chromium";v="{version}", "{brand}";v="{version}", "Not?A_Brand";v="99"'
            out["sec-ch-ua-mobile"] = "?0"
            out["sec-ch-ua-platform"] = prof.platform
        if self.referer:
            out["Referer"] = self.referer
        return out
