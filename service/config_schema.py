# service/config_schema.py
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

import yaml

from modules.kariyer_jobs.lib.config import ConfigError, Settings

logger = logging.getLogger(__name__)


@dataclass
class _LoadResult:
    """Internal convenience container (not required by callers)."""

    data: dict[str, Any]
    source: str


def load_input(path: str | None = None) -> dict[str, Any]:
    """
    Load a crawl run-input document (the kwargs for modules.kariyer_jobs.main.run).

    Resolution order:
      1) Explicit `path` argument (if provided)
      2) os.environ['INPUT_PATH'] (if set)
      3) Empty input ({}), so CLI --kwargs alone can drive a run

    Returns a plain dict; raises ConfigError on unreadable/invalid files.
    """
    resolved_path = path or os.environ.get("INPUT_PATH")
    if not resolved_path:
        logger.info("INPUT_PATH not provided; using empty run input.")
        return {}
    return _read_any(resolved_path).data


def validate(data: dict[str, Any]) -> Settings:
    """
    Validate a run input by building Settings from it. Raise ConfigError on any problem.
    No prints, no sys.exit().
    """
    if not isinstance(data, dict):
        raise ConfigError("Run input must be an object/dict.")
    return Settings.from_env_and_kwargs(data)


def _read_any(path: str) -> _LoadResult:
    lower = path.lower()
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Input file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read input file: {path}: {e}") from e

    if lower.endswith(".yml") or lower.endswith(".yaml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        return _LoadResult(data=_as_mapping(data, path), source=path)

    # .json and unknown extensions
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    return _LoadResult(data=_as_mapping(data, path), source=path)


def _as_mapping(data: Any, path: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level of {path} must be a mapping/object.")
    return data
