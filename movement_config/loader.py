"""
Configuration Loader (``movement_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and compiles it into a
``CompiledMovementConfig``.  Runtime callers go through
``movement_config.get_active_config()``; the functions here are exposed
for tests and tooling.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Every canonical movement type is configured exactly once; legacy aliases
  are rejected (enforced by ``MovementTypeRegistry``).
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown movement / task type, non-positive timeout  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from movement_config.schema import CompiledMovementConfig, StockCheckSettings
from movement_kernel.domain.settings import SettingsTemplate
from movement_kernel.domain.type_config import (
    MovementPolicy,
    MovementTypeConfig,
    MovementTypeRegistry,
)
from movement_kernel.domain.types import MovementType, TaskType


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_bool(data: dict[str, Any], key: str, default: bool | None = None) -> bool:
    if key not in data:
        if default is None:
            raise KeyError(f"Missing required key {key!r}")
        return default
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"{key!r} must be true or false, got {value!r}")
    return value


def parse_movement_type(key: str, data: dict[str, Any]) -> MovementTypeConfig:
    """
    Parse one ``movement_types`` entry.

    Raises:
        ValueError: unknown movement type key or task type.
        KeyError: a required location / stock flag is missing.
    """
    try:
        movement_type = MovementType(key)
    except ValueError:
        raise ValueError(f"Unknown movement type {key!r}") from None

    tasks = []
    for raw in data.get("suggested_tasks") or []:
        try:
            tasks.append(TaskType(raw))
        except ValueError:
            raise ValueError(f"{key}: unknown task type {raw!r}") from None

    return MovementTypeConfig(
        movement_type=movement_type,
        label=data.get("label", key.replace("_", " ").title()),
        description=data.get("description", ""),
        requires_source_location=_parse_bool(data, "requires_source_location"),
        requires_destination_location=_parse_bool(data, "requires_destination_location"),
        requires_stock_validation=_parse_bool(data, "requires_stock_validation"),
        allows_negative_stock=_parse_bool(data, "allows_negative_stock", False),
        suggested_tasks=tuple(tasks),
        requires_reference_number=_parse_bool(data, "requires_reference_number", False),
        reference_placeholder=data.get("reference_placeholder"),
    )


def parse_policy(data: dict[str, Any]) -> MovementPolicy:
    """Parse the ``workflow`` switches (all optional)."""
    return MovementPolicy(
        reject_insufficient_stock=_parse_bool(data, "reject_insufficient_stock", True),
        require_reference_numbers=_parse_bool(data, "require_reference_numbers", False),
    )


def parse_stock_check(data: dict[str, Any]) -> StockCheckSettings:
    """Parse the ``stock_check`` block (all optional)."""
    defaults = StockCheckSettings()
    timeout = float(data.get("timeout_seconds", defaults.timeout_seconds))
    workers = int(data.get("max_workers", defaults.max_workers))
    if timeout <= 0:
        raise ValueError(f"stock_check.timeout_seconds must be positive, got {timeout}")
    if workers < 1:
        raise ValueError(f"stock_check.max_workers must be at least 1, got {workers}")
    return StockCheckSettings(timeout_seconds=timeout, max_workers=workers)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def compile_config(data: dict[str, Any]) -> CompiledMovementConfig:
    """
    Compile a parsed configuration set.

    Raises:
        KeyError: ``config_id`` or ``movement_types`` is missing.
        ValueError: the movement type table is incomplete or invalid.
    """
    types_data = data["movement_types"]
    if not isinstance(types_data, dict):
        raise ValueError("movement_types must be a mapping of type -> policy")

    registry = MovementTypeRegistry(
        parse_movement_type(key, entry or {}) for key, entry in types_data.items()
    )

    return CompiledMovementConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        registry=registry,
        policy=parse_policy(data.get("workflow") or {}),
        stock_check=parse_stock_check(data.get("stock_check") or {}),
        site_settings=SettingsTemplate(data.get("site_settings") or {}),
    )


def load_config(path: Path) -> CompiledMovementConfig:
    """Load and compile the configuration set at ``path``."""
    return compile_config(load_yaml_file(path))
