from __future__ import annotations

import copy
import logging
from typing import Any

from service import logging_utils as _backend

# Keys that should be redacted from structured logs
_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "auth",
    "bearer",
    "cookie",
    "proxy",
    "proxy_url",
    "proxy_urls",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record and redact obvious secret-like fields at top level.
    Proxy URLs carry provider passwords, so they are dropped too.
    """
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret") or lk.endswith("_password"):
            redacted[k] = "***REDACTED***"
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Append an activity record to the JSONL activity log.
    Falls back to stdlib logging as structured info if the write fails.
    """
    payload = _redact_record(record)
    try:
        _backend.write_activity_log(payload)
        return
    except Exception:
        logging.getLogger("kariyer_jobs.activity").debug("activity log write failed", exc_info=True)
    logging.getLogger("kariyer_jobs.activity").info(payload)


def error(record: dict[str, Any]) -> None:
    """
    Append an error record to the JSONL error log.
    Falls back to stdlib logging as structured error if the write fails.
    """
    payload = _redact_record(record)
    try:
        _backend.write_error_log(payload)
        return
    except Exception:
        logging.getLogger("kariyer_jobs.error").debug("error log write failed", exc_info=True)
    logging.getLogger("kariyer_jobs.error").error(payload)
