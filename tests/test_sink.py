# tests/test_sink.py
import pytest

from modules.kariyer_jobs.lib.models import JobRecord
from modules.kariyer_jobs.lib.sink import MemorySink, SqliteSink, count_rows, load_records, reset_db


def _record(n, **kw):
    return JobRecord(url=f"https://www.kariyer.net/is-ilani/job-{n}", id=str(n), title=f"İlan {n}", **kw)


def test_sqlite_sink_appends_without_dedupe(tmp_path):
    dbp = str(tmp_path / "state" / "jobs.db")
    reset_db(dbp)
    sink = SqliteSink(dbp)

    sink.push(_record(1, description_html="<p>Açıklama</p>"))
    sink.push(_record(2))
    sink.push(_record(1))

    assert count_rows(dbp) == 3
    rows = load_records(dbp)
    assert [r["id"] for r in rows] == ["1", "2", "1"]
    assert rows[0]["descriptionText"] == "Açıklama"
    assert rows[0]["source"] == "kariyer.net"
    assert load_records(dbp, limit=1) == rows[:1]


def test_helpers_on_missing_db(tmp_path):
    dbp = str(tmp_path / "missing.db")
    assert count_rows(dbp) == 0
    assert load_records(dbp) == []
    reset_db(dbp)  # no error


def test_sqlite_sink_write_failure_is_raised(tmp_path, monkeypatch):
    sink = SqliteSink(str(tmp_path / "jobs.db"))

    def boom(_path):
        raise OSError("read-only file system")

    monkeypatch.setattr("modules.kariyer_jobs.lib.sink._connect", boom)
    with pytest.raises(OSError):
        sink.push(_record(1))


def test_memory_sink():
    sink = MemorySink()
    sink.push(_record(1))
    sink.push(_record(1))
    assert len(sink) == 2
