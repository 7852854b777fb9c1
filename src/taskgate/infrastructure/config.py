"""Configuration loading for the coordination engine."""

from __future__ import annotations

import json
from dataclasses import fields
from pathlib import Path
from typing import Any

from taskgate.application.config import EngineConfig, LockPolicy
from taskgate.domain.exceptions import ValidationError


class ConfigurationError(Exception):
    """Raised when a configuration file is missing or invalid."""

    pass


_KNOWN_KEYS = frozenset(f.name for f in fields(EngineConfig))


def engine_config_from_dict(data: dict[str, Any], source: str = "config") -> EngineConfig:
    """
    Build an EngineConfig from a plain mapping.

    Raises:
        ConfigurationError: On unknown keys or invalid values
    """
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected a JSON object in {source}, got {type(data).__name__}"
        )

    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in {source}: {', '.join(unknown)}. "
            f"Valid keys: {', '.join(sorted(_KNOWN_KEYS))}"
        )

    values = dict(data)
    if "lock_policy" in values:
        try:
            values["lock_policy"] = LockPolicy(str(values["lock_policy"]).lower())
        except ValueError as e:
            valid = ", ".join(p.value for p in LockPolicy)
            raise ConfigurationError(
                f"Invalid lock_policy '{data['lock_policy']}' in {source}. "
                f"Valid policies: {valid}"
            ) from e

    for key in (
        "lock_retry_window_seconds",
        "lock_wait_timeout_seconds",
        "session_timeout_seconds",
    ):
        if key in values and (
            isinstance(values[key], bool) or not isinstance(values[key], int | float)
        ):
            raise ConfigurationError(f"'{key}' in {source} must be a number")

    if "gate_forward_transitions" in values and not isinstance(
        values["gate_forward_transitions"], bool
    ):
        raise ConfigurationError(
            f"'gate_forward_transitions' in {source} must be true or false"
        )

    try:
        return EngineConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {source}: {e}") from e


def load_engine_config(path: Path | str) -> EngineConfig:
    """
    Load engine configuration from a JSON file.

    Args:
        path: Path to a JSON object with EngineConfig keys

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

    return engine_config_from_dict(data, source=str(path))
