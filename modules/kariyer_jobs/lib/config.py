from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode, urlsplit

from .age_filter import AgeWindow
from .headers import PROFILES
from .utils import getenv_str, positive_int, truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings (run failure, before any fetch)."""


DEFAULT_BASE_URL = "https://www.kariyer.net"
SEARCH_PATH = "/is-ilanlari"
DEFAULT_API_URL = "https://api.kariyer.net/search/positions"

# Where listing pages come from: rendered HTML search pages or the JSON search API
LISTING_HTML = "html"
LISTING_API = "api"
LISTING_SOURCES = (LISTING_HTML, LISTING_API)
DEFAULT_SQLITE_PATH = os.path.join("local", "state", "kariyer_jobs.db")

# Every accepted spelling of the target count; the smallest positive value wins
TARGET_COUNT_KEYS = ("target_count", "targetCount", "results_wanted", "max_items", "maxItems")
AGE_WINDOW_KEYS = ("age_window", "ageWindow", "max_job_age")

APIFY_PROXY_HOST = "proxy.apify.com:8000"


# -----------------------------
# Models
# -----------------------------
@dataclass
class Settings:
    """
    Canonical configuration for one crawl run.

    Start URLs come from `start_urls` when given, otherwise one search URL is
    built from `keyword` / `location`. A run with neither fails validation.
    With listing_source="api" the only start URL is page 1 of the JSON search
    endpoint.
    """

    # What to crawl
    keyword: str = ""
    location: str = ""
    start_urls: list[str] = field(default_factory=list)
    base_url: str = DEFAULT_BASE_URL
    listing_source: str = LISTING_HTML
    api_url: str = DEFAULT_API_URL

    # Budget
    target_count: int | None = None  # None = unbounded
    max_pages: int = 50

    # Behaviour
    collect_details: bool = True
    age_window: AgeWindow = AgeWindow.ALL
    dedupe: bool = True
    concurrency: int = 3

    # Fetching / identity
    request_timeout: float = 30.0
    max_retries: int = 5
    min_delay: float = 1.0
    max_delay: float = 3.0
    locale: str = "tr-TR"
    header_profiles: list[str] = field(default_factory=list)
    proxy_urls: list[str] = field(default_factory=list, repr=False)
    proxy_country: str | None = None
    proxy_groups: list[str] = field(default_factory=list)

    # Hard run ceiling (None = no ceiling)
    max_run_seconds: float | None = 3600.0
    max_requests: int | None = None

    # Output
    sqlite_path: str = DEFAULT_SQLITE_PATH

    # ------------- convenience -------------
    def search_url(self) -> str | None:
        params = {k: v for k, v in (("kw", self.keyword), ("loc", self.location)) if v}
        if not params:
            return None
        return f"{self.base_url.rstrip('/')}{SEARCH_PATH}?{urlencode(params)}"

    def api_page_url(self, page: int) -> str:
        params: dict[str, Any] = {"page": page}
        if self.keyword:
            params["keyword"] = self.keyword
        if self.location:
            params["location"] = self.location
        return f"{self.api_url}?{urlencode(params)}"

    def resolved_start_urls(self) -> list[str]:
        if self.listing_source == LISTING_API:
            return [self.api_page_url(1)]
        if self.start_urls:
            return list(self.start_urls)
        url = self.search_url()
        return [url] if url else []

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from run input kwargs, with env fallbacks.

        Recognised kwargs (all optional, but some start URL must be derivable):

            keyword, location: str
            start_urls: list[str | {"url": str}]
            target_count | targetCount | results_wanted | max_items | maxItems: int
            max_pages: int = 50
            collect_details | collectDetails: bool = true
            age_window | ageWindow | max_job_age: "all" | "24h" | "7d" | "30d" (+ aliases)
            concurrency: int = 3
            dedupe: bool = true
            proxy_urls: list[str], proxy_country: str, proxy_groups: list[str]
            proxyConfiguration: {"useApifyProxy", "apifyProxyGroups"|"groups",
                                 "apifyProxyCountry"|"countryCode", "proxyUrls"}
            request_timeout, max_retries, min_delay, max_delay, locale, header_profiles
            listing_source | listingSource: "html" | "api" = "html"
                ("api" reads listing pages from the JSON search endpoint at api_url,
                 filtered by keyword / location; start_urls are ignored)
            max_run_seconds, max_requests, sqlite_path, base_url, api_url

        Env fallbacks: PROXY_URLS (comma-separated), KARIYER_SQLITE_PATH,
        APIFY_PROXY_PASSWORD (needed for useApifyProxy).
        """
        kw = dict(kwargs or {})

        try:
            age_window = AgeWindow.parse(_first_present(kw, AGE_WINDOW_KEYS))
        except ValueError as e:
            raise ConfigError(str(e)) from e

        proxy_urls, proxy_country, proxy_groups = _proxy_settings(kw)

        settings = cls(
            keyword=str(kw.get("keyword") or "").strip(),
            location=str(kw.get("location") or "").strip(),
            start_urls=_parse_start_urls(kw.get("start_urls", kw.get("startUrls"))),
            base_url=str(kw.get("base_url") or DEFAULT_BASE_URL).strip(),
            listing_source=str(
                _first_present(kw, ("listing_source", "listingSource"), LISTING_HTML)
            ).strip().lower(),
            api_url=str(kw.get("api_url") or DEFAULT_API_URL).strip(),
            target_count=_target_count(kw),
            max_pages=_int(kw, "max_pages", 50),
            collect_details=truthy(_first_present(kw, ("collect_details", "collectDetails"), True)),
            age_window=age_window,
            dedupe=truthy(_first_present(kw, ("dedupe",), True)),
            concurrency=_int(kw, "concurrency", 3),
            request_timeout=_float(kw, "request_timeout", 30.0),
            max_retries=_int(kw, "max_retries", 5),
            min_delay=_float(kw, "min_delay", 1.0),
            max_delay=_float(kw, "max_delay", 3.0),
            locale=str(kw.get("locale") or "tr-TR").strip(),
            header_profiles=[str(p) for p in (kw.get("header_profiles") or [])],
            proxy_urls=proxy_urls,
            proxy_country=proxy_country,
            proxy_groups=proxy_groups,
            max_run_seconds=_optional_float(kw, "max_run_seconds", 3600.0),
            max_requests=positive_int(kw.get("max_requests")),
            sqlite_path=str(
                kw.get("sqlite_path") or getenv_str("KARIYER_SQLITE_PATH") or DEFAULT_SQLITE_PATH
            ).strip(),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _first_present(kw: Mapping[str, Any], keys: tuple[str, ...], default: Any = None) -> Any:
    for k in keys:
        if k in kw and kw[k] is not None:
            return kw[k]
    return default


def _target_count(kw: Mapping[str, Any]) -> int | None:
    values = [positive_int(kw.get(k)) for k in TARGET_COUNT_KEYS]
    values = [v for v in values if v is not None]
    return min(values) if values else None


def _int(kw: Mapping[str, Any], key: str, default: int) -> int:
    raw = kw.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer (got {raw!r}).") from e


def _float(kw: Mapping[str, Any], key: str, default: float) -> float:
    raw = kw.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number (got {raw!r}).") from e


def _optional_float(kw: Mapping[str, Any], key: str, default: float | None) -> float | None:
    if key not in kw:
        return default
    value = _float(kw, key, 0.0)
    return value if value > 0 else None


def _parse_start_urls(value: Any) -> list[str]:
    """
    Accepts: "https://...", ["https://...", ...] or [{"url": "https://..."}, ...]
    """
    if not value:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigError("'start_urls' must be a list.")
    out: list[str] = []
    for i, item in enumerate(value):
        url = item.get("url") if isinstance(item, dict) else item
        url = str(url or "").strip()
        if not url:
            raise ConfigError(f"start_urls[{i}] has no url.")
        if urlsplit(url).scheme not in ("http", "https"):
            raise ConfigError(f"start_urls[{i}] is not an http(s) URL: {url!r}")
        out.append(url)
    return out


def _str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return [str(s).strip() for s in value if str(s).strip()]


def _proxy_settings(kw: Mapping[str, Any]) -> tuple[list[str], str | None, list[str]]:
    """
    Resolve (proxy_urls, country, groups) from flat kwargs, a proxyConfiguration
    object, or the PROXY_URLS env var, in that order of precedence.
    """
    cfg = kw.get("proxyConfiguration") or kw.get("proxy") or {}
    if not isinstance(cfg, Mapping):
        raise ConfigError("'proxyConfiguration' must be an object.")

    urls = _str_list(kw.get("proxy_urls")) or _str_list(cfg.get("proxyUrls"))
    country = str(
        kw.get("proxy_country") or cfg.get("apifyProxyCountry") or cfg.get("countryCode") or ""
    ).strip() or None
    groups = _str_list(kw.get("proxy_groups")) or _str_list(cfg.get("apifyProxyGroups") or cfg.get("groups"))

    if not urls and truthy(cfg.get("useApifyProxy")):
        password = getenv_str("APIFY_PROXY_PASSWORD")
        if not password:
            raise ConfigError("useApifyProxy requires APIFY_PROXY_PASSWORD in the environment.")
        user = []
        if groups:
            user.append("groups-{groups}")
        user.append("session-{session}")
        if country:
            user.append("country-{country}")
        urls = [f"http://{','.join(user)}:{password}@{APIFY_PROXY_HOST}"]

    if not urls:
        urls = _str_list(getenv_str("PROXY_URLS"))
    return urls, country, groups


def _validate_settings(s: Settings) -> None:
    if not s.resolved_start_urls():
        raise ConfigError("No start URL derivable: provide 'start_urls', 'keyword' or 'location'.")
    if urlsplit(s.base_url).scheme not in ("http", "https"):
        raise ConfigError(f"'base_url' must be an http(s) URL (got {s.base_url!r}).")
    if s.listing_source not in LISTING_SOURCES:
        raise ConfigError(f"'listing_source' must be one of {LISTING_SOURCES} (got {s.listing_source!r}).")
    if urlsplit(s.api_url).scheme not in ("http", "https"):
        raise ConfigError(f"'api_url' must be an http(s) URL (got {s.api_url!r}).")
    if s.max_pages <= 0:
        raise ConfigError("'max_pages' must be >= 1.")
    if not 1 <= s.concurrency <= 32:
        raise ConfigError("'concurrency' must be between 1 and 32.")
    if s.request_timeout <= 0:
        raise ConfigError("'request_timeout' must be > 0.")
    if s.max_retries < 0:
        raise ConfigError("'max_retries' must be >= 0.")
    if s.min_delay < 0 or s.max_delay < s.min_delay:
        raise ConfigError("Pacing delays must satisfy 0 <= min_delay <= max_delay.")
    unknown = [p for p in s.header_profiles if p not in PROFILES]
    if unknown:
        raise ConfigError(f"Unknown header profiles: {unknown}")
    if not s.sqlite_path.strip():
        raise ConfigError("'sqlite_path' cannot be empty.")
