# tests/test_cli.py
import json

import pytest

from modules.kariyer_jobs import main as kariyer_main
from modules.kariyer_jobs.lib import engine
from modules.kariyer_jobs.lib.config import ConfigError
from modules.kariyer_jobs.lib.sink import MemorySink, count_rows
from service import cli, config_schema, logging_utils


@pytest.fixture
def offline_client(monkeypatch, fake_client, pages):
    """Replace the production HttpClient with canned pages."""
    client = fake_client({
        pages.search_url: pages.listing([
            pages.card("/is-ilani/acme-python-4100001", title="Python Developer"),
            pages.card("/is-ilani/beta-python-4100002", title="Django Developer"),
        ]),
    })
    monkeypatch.setattr(engine, "HttpClient", lambda **kw: client)
    return client


# ----------------------------------------------------------------------
# Input loading
# ----------------------------------------------------------------------
def test_load_input_json_and_yaml(tmp_path):
    j = tmp_path / "input.json"
    j.write_text(json.dumps({"keyword": "python", "targetCount": 3}), encoding="utf-8")
    y = tmp_path / "input.yaml"
    y.write_text("keyword: python\nlocation: İzmir\ncollect_details: false\n", encoding="utf-8")

    assert config_schema.load_input(str(j)) == {"keyword": "python", "targetCount": 3}
    assert config_schema.load_input(str(y)) == {"keyword": "python", "location": "İzmir", "collect_details": False}


def test_load_input_env_fallback_and_default(tmp_path, monkeypatch):
    assert config_schema.load_input() == {}

    p = tmp_path / "run.json"
    p.write_text('{"keyword": "go"}', encoding="utf-8")
    monkeypatch.setenv("INPUT_PATH", str(p))
    assert config_schema.load_input() == {"keyword": "go"}


@pytest.mark.parametrize(
    "name, content",
    [
        ("bad.json", "{ nope"),
        ("bad.yaml", "keyword: [unclosed"),
        ("list.json", "[1, 2]"),
    ],
)
def test_load_input_rejects_bad_files(tmp_path, name, content):
    p = tmp_path / name
    p.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        config_schema.load_input(str(p))


def test_load_input_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        config_schema.load_input(str(tmp_path / "nope.json"))


def test_validate_returns_settings():
    settings = config_schema.validate({"keyword": "python", "max_pages": 2})
    assert settings.max_pages == 2


# ----------------------------------------------------------------------
# Module entry point
# ----------------------------------------------------------------------
def test_main_run_returns_report_dict(offline_client, pages, tmp_path):
    sink = MemorySink()

    summary = kariyer_main.run(
        sink=sink,
        keyword="python",
        collect_details=False,
        min_delay=0,
        max_delay=0,
        sqlite_path=str(tmp_path / "unused.db"),
    )

    assert summary["items_saved"] == 2
    assert summary["stop_reason"] == "drained"
    assert summary["stats"]["requests"] == 1
    assert [r.title for r in sink.items] == ["Python Developer", "Django Developer"]
    assert offline_client.urls() == [pages.search_url]


def test_main_run_invalid_input_fetches_nothing(offline_client):
    with pytest.raises(ConfigError):
        kariyer_main.run(target_count=3)
    assert offline_client.calls == []


# ----------------------------------------------------------------------
# CLI
# ----------------------------------------------------------------------
def test_cli_validate_input_ok(capsys):
    rc = cli.main(["validate-input", "--kwargs", "keyword=python", "location=Ankara"])

    out = capsys.readouterr().out
    assert rc == 0
    assert "OK: run input is valid." in out
    assert "kw=python&loc=Ankara" in out


def test_cli_validate_input_invalid_exit_code(capsys):
    rc = cli.main(["validate-input", "--kwargs", "target_count=3"])

    assert rc == 2
    assert "run input invalid" in capsys.readouterr().err


def test_cli_kwargs_must_be_pairs(capsys):
    assert cli.main(["validate-input", "--kwargs", "keyword"]) == 2


def test_cli_crawl_print_items(offline_client, capsys, tmp_path):
    dbp = tmp_path / "cli.db"
    rc = cli.main([
        "crawl",
        "--kwargs", "keyword=python", "collect_details=false", "min_delay=0", "max_delay=0",
        f"sqlite_path={dbp}",
        "--print-items",
    ])

    captured = capsys.readouterr()
    lines = [json.loads(line) for line in captured.out.splitlines() if line.strip()]
    assert rc == 0
    assert [r["title"] for r in lines] == ["Python Developer", "Django Developer"]
    assert lines[0]["id"] == "4100001"
    assert "DONE: saved 2 item(s)" in captured.err
    assert count_rows(str(dbp)) == 0


def test_cli_crawl_input_file_with_overrides(offline_client, capsys, tmp_path):
    dbp = tmp_path / "cli.db"
    p = tmp_path / "input.yaml"
    p.write_text(
        f"keyword: python\ncollect_details: true\nmin_delay: 0\nmax_delay: 0\nsqlite_path: {dbp}\n",
        encoding="utf-8",
    )

    rc = cli.main(["crawl", "--input", str(p), "--kwargs", "collect_details=false", "targetCount=1"])

    assert rc == 0
    assert "DONE: saved 1 item(s)" in capsys.readouterr().out
    assert count_rows(str(dbp)) == 1


def test_cli_crawl_invalid_input(capsys):
    assert cli.main(["crawl", "--kwargs", "concurrency=0", "keyword=x"]) == 2


def test_cli_crawl_succeeds_when_activity_log_is_unwritable(offline_client, capsys, monkeypatch):
    def unwritable(record):
        raise PermissionError("read-only log dir")

    monkeypatch.setattr(logging_utils, "write_activity_log", unwritable)
    rc = cli.main([
        "crawl", "--kwargs", "keyword=python", "collect_details=false", "min_delay=0", "max_delay=0",
        "--print-items",
    ])

    assert rc == 0
    assert "DONE: saved 2 item(s)" in capsys.readouterr().err
