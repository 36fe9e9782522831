import json
import os
import tempfile
import threading
import types

import pytest
from freezegun import freeze_time

from modules.kariyer_jobs.lib.config import Settings
from modules.kariyer_jobs.lib.http_client import FetchResponse

BASE = "https://www.kariyer.net"
SEARCH_URL = f"{BASE}/is-ilanlari?kw=python"


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    # Marker registration (so pytest --markers shows it)
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="kj-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")

    # Nothing from the developer's shell should leak into Settings
    for name in ("PROXY_URLS", "APIFY_PROXY_PASSWORD", "KARIYER_SQLITE_PATH", "INPUT_PATH"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2026-10-17T12:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Fake fetch client
# ---------------------------------------------------------------------
class FakeClient:
    """
    Canned responses per URL. A route value may be:
      - str                     -> 200 with that body
      - (status, body)          -> that status
      - Exception instance      -> raised
      - list of the above       -> consumed one per call (last one repeats)
    Unknown URLs get a 404.
    """

    def __init__(self, routes: dict | None = None):
        self.routes = dict(routes or {})
        self.calls: list[dict] = []
        self.rotations = 0
        self.closed = False
        self._lock = threading.Lock()

    def fetch(self, url, *, proxy=None, headers=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "proxy": proxy, "headers": headers, "timeout": timeout})
            route = self.routes.get(url, (404, "<html><body>Sayfa bulunamadı</body></html>"))
            if isinstance(route, list):
                route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            raise route
        if isinstance(route, tuple):
            status, body = route
        else:
            status, body = 200, route
        return FetchResponse(status_code=status, body=body, url=url)

    def rotate_identity(self):
        self.rotations += 1

    def close(self):
        self.closed = True

    def urls(self) -> list[str]:
        return [c["url"] for c in self.calls]


@pytest.fixture
def fake_client():
    return FakeClient


# ---------------------------------------------------------------------
# HTML builders
# ---------------------------------------------------------------------
def card_html(
    href: str | None,
    title: str = "Python Developer",
    company: str | None = "Acme Yazılım",
    location: str | None = "İstanbul",
    date: str | None = "2 gün önce",
) -> str:
    inner = f"<h3 data-test='ad-card-title'>{title}</h3>"
    if company:
        inner += f"<span data-test='subtitle'>{company}</span>"
    if location:
        inner += f"<span data-test='location'>{location}</span>"
    if date:
        inner += f"<span data-test='ad-date-item'>{date}</span>"
    if href is None:
        return f"<div class='list-items'>{inner}</div>"
    return f"<div class='list-items'><a class='k-ad-card' href='{href}'>{inner}</a></div>"


def listing_html(cards: list[str], next_href: str | None = None) -> str:
    nav = f"<nav class='pagination'><a rel='next' href='{next_href}'>Sonraki</a></nav>" if next_href else ""
    return (
        "<html><head><title>İş İlanları</title></head><body>"
        f"<div class='list-items-wrapper'>{''.join(cards)}</div>{nav}"
        "</body></html>"
    )


def detail_html(posting: dict | None = None, body: str = "") -> str:
    ld = ""
    if posting is not None:
        ld = f"<script type='application/ld+json'>{json.dumps(posting, ensure_ascii=False)}</script>"
    return f"<html><head>{ld}</head><body>{body}</body></html>"


def job_url(slug: str) -> str:
    return f"{BASE}/is-ilani/{slug}"


@pytest.fixture
def make_settings(tmp_path):
    """Fast, deterministic Settings: no pacing, no ceiling, one worker."""

    def _make(**overrides) -> Settings:
        values = {
            "start_urls": [SEARCH_URL],
            "min_delay": 0.0,
            "max_delay": 0.0,
            "max_run_seconds": None,
            "concurrency": 1,
            "sqlite_path": str(tmp_path / "kariyer_jobs.db"),
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def pages():
    """HTML builders for listing/detail fixtures."""
    return types.SimpleNamespace(
        card=card_html,
        listing=listing_html,
        detail=detail_html,
        job_url=job_url,
        base=BASE,
        search_url=SEARCH_URL,
    )
