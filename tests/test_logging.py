# tests/test_logging.py
import json
import os

from modules.kariyer_jobs.lib import logging_bridge
from service import logging_utils


def _read(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_activity_record_is_stamped_and_redacted():
    logging_bridge.activity({
        "component": "test",
        "op": "ping",
        "proxy_url": "http://user:pw@proxy:8000",
        "nested": {"api_token": "abc", "keep": 1},
    })

    (rec,) = _read(logging_utils.get_activity_log_path())
    assert rec["op"] == "ping"
    assert rec["proxy_url"] == "***REDACTED***"
    assert rec["nested"] == {"api_token": "***REDACTED***", "keep": 1}
    assert "ts" in rec
    assert set(rec["_meta"]) == {"host", "pid"}


def test_error_log_is_separate_file():
    logging_bridge.error({"component": "test", "op": "boom", "error": "x"})

    files = os.listdir(os.environ["LOG_DIR"])
    assert len(files) == 1
    assert files[0].startswith("error-test-")


def test_log_disable(monkeypatch):
    monkeypatch.setenv("LOG_DISABLE", "1")
    logging_bridge.activity({"component": "test", "op": "silent"})
    assert os.listdir(os.environ["LOG_DIR"]) == []


def test_size_rotation(monkeypatch):
    monkeypatch.setenv("ACTIVITY_LOG_MAX_BYTES", "50")
    for i in range(3):
        logging_utils.write_activity_log({"op": "fill", "i": i, "pad": "x" * 40})

    files = sorted(os.listdir(os.environ["LOG_DIR"]))
    assert len(files) >= 2
    assert any(f.endswith(".jsonl") for f in files)


def test_bridge_falls_back_to_stdlib_logging(monkeypatch, caplog):
    def broken(_record):
        raise OSError("disk gone")

    monkeypatch.setattr(logging_utils, "write_activity_log", broken)
    with caplog.at_level("INFO", logger="kariyer_jobs.activity"):
        logging_bridge.activity({"component": "test", "op": "fallback"})

    assert any("fallback" in r.getMessage() for r in caplog.records)
