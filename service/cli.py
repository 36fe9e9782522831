# service/cli.py
"""
User-facing command-line entrypoints.

Subcommands
-----------
crawl [--input PATH] [--kwargs k=v ...] [--print-items]
    - Loads run input via config_schema.load_input(), overlays --kwargs
    - Executes modules.kariyer_jobs.main.run(...)
    - Prints a concise summary; with --print-items, records go to stdout
      as JSON lines instead of the SQLite store

validate-input [--input PATH] [--kwargs k=v ...]
    - Builds Settings from the input and returns nonzero on error

Exit codes: 0 ok, 1 run failure, 2 invalid input, 130 interrupted.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from modules.kariyer_jobs import main as _kariyer
from modules.kariyer_jobs.lib import logging_bridge
from modules.kariyer_jobs.lib.config import ConfigError
from modules.kariyer_jobs.lib.sink import MemorySink
from service import config_schema as _config_schema

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


def _run_input(args: argparse.Namespace) -> dict[str, Any]:
    """File input first, then --kwargs on top."""
    data = dict(_config_schema.load_input(args.input))
    data.update(_parse_kv_pairs(args.kwargs or []))
    return data


def _now_iso():
    return datetime.now().astimezone().isoformat()


# ------------------------------ Subcommands ----------------------------------
def cmd_validate_input(args: argparse.Namespace) -> int:
    try:
        settings = _config_schema.validate(_run_input(args))
        print("OK: run input is valid.")
        for url in settings.resolved_start_urls():
            print(f"  start: {url}")
        return 0
    except KeyboardInterrupt:
        return 130
    except (ConfigError, argparse.ArgumentTypeError) as e:
        print(f"ERROR: run input invalid: {e}", file=sys.stderr)
        return 2


def cmd_crawl(args: argparse.Namespace) -> int:
    run_id = uuid.uuid4().hex
    start_time = time.monotonic()
    kwargs: dict[str, Any] = {}

    try:
        kwargs = _run_input(args)
        LOG.debug("crawl with kwargs=%s", kwargs)

        sink = MemorySink() if args.print_items else None
        summary = _kariyer.run(sink=sink, **kwargs)

        logging_bridge.activity({
            "ts": _now_iso(),
            "event": "cli_crawl",
            "run_id": run_id,
            "kwargs": kwargs,
            "items_saved": summary["items_saved"],
            "stop_reason": summary["stop_reason"],
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        })

        if sink is not None:
            for record in sink.items:
                print(json.dumps(record.to_dict(), ensure_ascii=False))
        stats = summary["stats"]
        print(
            f"DONE: saved {summary['items_saved']} item(s) from {summary['pages_visited']} listing page(s) "
            f"(stop: {summary['stop_reason']}, failed: {stats['pages_failed']}, "
            f"blocked: {stats['pages_blocked']}).",
            file=sys.stderr if args.print_items else sys.stdout,
        )
        return 0

    except KeyboardInterrupt:
        return 130
    except (ConfigError, argparse.ArgumentTypeError) as e:
        print(f"ERROR: run input invalid: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        duration_s = time.monotonic() - start_time
        print(f"FAILURE: {e}", file=sys.stderr)
        logging_bridge.error({
            "ts": _now_iso(),
            "where": "cli.crawl",
            "run_id": run_id,
            "kwargs": kwargs,
            "error": repr(e),
            "duration_ms": int(duration_s * 1000),
        })
        return 1


# ------------------------------- Argparse ------------------------------------
def _add_input_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "--input",
        help="Path to a JSON/YAML run-input file (fallbacks to INPUT_PATH env).",
    )
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Run-input overrides (JSON values supported), applied over --input.",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="kariyer.net job crawler",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # crawl
    sp = sub.add_parser("crawl", help="Run one crawl.")
    _add_input_args(sp)
    sp.add_argument(
        "--print-items",
        action="store_true",
        help="Print records to stdout as JSON lines instead of storing them in SQLite.",
    )
    sp.set_defaults(func=cmd_crawl)

    # validate-input
    sp = sub.add_parser("validate-input", help="Validate run input and exit.")
    _add_input_args(sp)
    sp.set_defaults(func=cmd_validate_input)

    return p


def main(argv: list[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
