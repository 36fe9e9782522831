# modules/kariyer_jobs/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, Settings
from .engine import Crawler, run_once
from .models import CrawlReport, JobRecord, PartialJob
from .sink import MemorySink, SqliteSink

__all__ = [
    "ConfigError",
    "CrawlReport",
    "Crawler",
    "JobRecord",
    "MemorySink",
    "PartialJob",
    "Settings",
    "SqliteSink",
    "run_once",
]
