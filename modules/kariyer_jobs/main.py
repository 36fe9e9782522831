from __future__ import annotations

from typing import Any

from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity
from .lib.sink import ItemSink


def run(sink: ItemSink | None = None, **kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'kariyer_jobs' module.

    Accepts run-input kwargs (see Settings.from_env_and_kwargs), including:
      keyword / location: str         -> builds the search URL
      start_urls: list[str]           -> overrides keyword/location
      target_count: int               -> stop after N saved records
      max_pages: int = 50
      collect_details: bool = True
      age_window: "all" | "24h" | "7d" | "30d"
      proxyConfiguration: dict

    `sink` replaces the default SQLite store (tests, --print-items).

    Returns the crawl report as a plain dict.
    Raises ConfigError before any fetch when the input is unusable.
    """
    settings = Settings.from_env_and_kwargs(kwargs)

    log_activity({
        "component": "kariyer_jobs.main",
        "op": "start",
        "start_urls": settings.resolved_start_urls(),
        "flags": {
            "collect_details": settings.collect_details,
            "dedupe": settings.dedupe,
            "age_window": settings.age_window.name,
        },
        "sink": type(sink).__name__ if sink is not None else "SqliteSink",
    })

    report = _run_engine(settings, sink=sink)
    return report.as_dict()
