from __future__ import annotations

import contextlib
import json
import os
import sqlite3
import threading
from typing import Protocol

from .logging_bridge import error as log_error
from .models import JobRecord


class ItemSink(Protocol):
    """Append-only output. No dedupe and no schema checks happen here."""

    def push(self, record: JobRecord) -> None: ...


class MemorySink:
    """In-process list sink (tests, dry runs, CLI --print-items)."""

    def __init__(self) -> None:
        self.items: list[JobRecord] = []
        self._lock = threading.Lock()

    def push(self, record: JobRecord) -> None:
        with self._lock:
            self.items.append(record)

    def __len__(self) -> int:
        return len(self.items)


class SqliteSink:
    """
    Durable append-only job store.

    One row per push; the full camelCase record is kept as JSON next to a few
    indexed columns. Duplicate URLs are stored as-is.
    """

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path
        self._lock = threading.Lock()
        init_db(sqlite_path)

    def push(self, record: JobRecord) -> None:
        payload = record.to_dict()
        try:
            with self._lock, contextlib.closing(_connect(self.sqlite_path)) as conn:
                _apply_pragmas(conn)
                conn.execute(
                    """
                    INSERT INTO jobs (url, job_id, title, company, date_posted, crawled_at_utc, record_json)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.url,
                        record.id,
                        record.title,
                        record.company,
                        record.date_posted,
                        record.crawled_at,
                        json.dumps(payload, ensure_ascii=False),
                    ),
                )
        except Exception as e:
            log_error({
                "component": "kariyer_jobs.sink",
                "op": "push",
                "sqlite_path": self.sqlite_path,
                "url": record.url,
                "error": repr(e),
            })
            raise


# ---- Public helpers -----------------------------------------------------------


def init_db(sqlite_path: str) -> None:
    """
    Ensure the SQLite database and schema exist.
    Safe to call multiple times.
    """
    _ensure_dir(sqlite_path)
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)


def count_rows(sqlite_path: str) -> int:
    """Return total rows in jobs table; 0 if DB missing/empty."""
    if not os.path.exists(sqlite_path):
        return 0
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _ensure_schema(conn)
        (n,) = conn.execute("SELECT COUNT(*) FROM jobs").fetchone()
    return int(n or 0)


def load_records(sqlite_path: str, limit: int | None = None) -> list[dict]:
    """Stored records (camelCase dicts), oldest first."""
    if not os.path.exists(sqlite_path):
        return []
    sql = "SELECT record_json FROM jobs ORDER BY id"
    params: tuple = ()
    if limit:
        sql += " LIMIT ?"
        params = (int(limit),)
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _ensure_schema(conn)
        rows = conn.execute(sql, params).fetchall()
    return [json.loads(r[0]) for r in rows]


def reset_db(sqlite_path: str) -> None:
    """
    Remove the DB file entirely (for pytest fixtures).
    Safe if it doesn't exist.
    """
    with contextlib.suppress(FileNotFoundError):
        os.remove(sqlite_path)


# ---- Internal utilities -------------------------------------------------------


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # isolation_level=None: autocommit, one INSERT per push
    return sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS jobs (
          id INTEGER PRIMARY KEY,
          url TEXT NOT NULL,
          job_id TEXT,
          title TEXT,
          company TEXT,
          date_posted TEXT,
          crawled_at_utc TEXT NOT NULL,
          record_json TEXT NOT NULL
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS ix_jobs_url ON jobs (url);")
