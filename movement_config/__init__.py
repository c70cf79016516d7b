"""
movement_config -- single public entrypoint for movement configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a ``CompiledMovementConfig`` holding
    the movement type registry, workflow switches, stock-check bounds and
    the site settings template.

Architecture position:
    Configuration -- YAML-driven.  This package sits above
    ``movement_kernel``; the kernel MUST NEVER import from
    ``movement_config``.  ``movement_config.bridges`` turns the compiled
    artifact into wired kernel services.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Loaded once per path per process; later calls return the same object.
    - The movement type table covers every canonical type (validated at load).

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` / ``ValueError`` -- structural validation failures.

Audit relevance:
    Every load emits a ``movement_config_loaded`` log entry with the
    config_id, version, checksum and type count.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from movement_config.loader import load_config
from movement_config.schema import CompiledMovementConfig, StockCheckSettings
from movement_kernel.logging_config import get_logger

__all__ = [
    "CompiledMovementConfig",
    "StockCheckSettings",
    "get_active_config",
    "clear_config_cache",
]

_logger = get_logger("config")

# Default configuration set
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

# Overrides the default path when set
CONFIG_PATH_ENV = "MOVEMENT_CONFIG_PATH"

_cache: dict[Path, CompiledMovementConfig] = {}
_cache_lock = threading.Lock()


def get_active_config(config_path: Path | None = None) -> CompiledMovementConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a configuration set.  Defaults to
            ``$MOVEMENT_CONFIG_PATH`` or ``movement_config/sets/default.yaml``.

    Returns:
        CompiledMovementConfig -- frozen, cached per resolved path.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        KeyError, ValueError: If the configuration is invalid.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH).resolve()

    with _cache_lock:
        cached = _cache.get(path)
        if cached is not None:
            return cached

        config = load_config(path)
        _cache[path] = config

    _logger.info(
        "movement_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "movement_type_count": len(config.registry),
            "reject_insufficient_stock": config.policy.reject_insufficient_stock,
            "require_reference_numbers": config.policy.require_reference_numbers,
        },
    )
    return config


def clear_config_cache() -> None:
    """Forget loaded configurations. FOR TESTING ONLY."""
    with _cache_lock:
        _cache.clear()
