"""Orchestrator config file handling (JSON on disk)."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from orchestrator.errors import ConfigError
from orchestrator.types import OrchestratorConfig

# Top-level sections the admin API may overwrite
SAFE_KEYS = (
    "unlock_rules",
    "doorbell_rules",
    "event_source",
    "logging",
    "server",
    "unifi",
    "resolver",
    "doors",
)
REDACTED = "***REDACTED***"


def read_config_file(path: Path) -> Dict[str, Any]:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}")
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return raw


def load_config(path: Path) -> OrchestratorConfig:
    raw = read_config_file(path)
    try:
        return OrchestratorConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}")


def save_config(path: Path, data: Dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(data, indent=2), encoding="utf-8")


def _deep_merge(target: Any, source: Any) -> Any:
    if not isinstance(source, dict):
        return source
    merged = dict(target) if isinstance(target, dict) else {}
    for key, value in source.items():
        if isinstance(value, dict):
            merged[key] = _deep_merge(merged.get(key), value)
        else:
            merged[key] = value
    return merged


def merge_config_updates(current: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Apply admin updates to the raw config.

    Only `SAFE_KEYS` are considered. Objects merge recursively; arrays and
    scalars replace what was there.
    """
    merged = copy.deepcopy(current)
    for key in SAFE_KEYS:
        if key not in updates:
            continue
        value = updates[key]
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)

    # A sanitized config echoed back must not overwrite the real token
    unifi = merged.get("unifi")
    if isinstance(unifi, dict) and unifi.get("token") == REDACTED:
        unifi["token"] = (current.get("unifi") or {}).get("token", "")
    return merged


def sanitize_config(config: OrchestratorConfig) -> Dict[str, Any]:
    data = config.model_dump(mode="json")
    if data.get("unifi", {}).get("token"):
        data["unifi"]["token"] = REDACTED
    return data
