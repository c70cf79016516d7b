"""
Configuration schema (``movement_config.schema``).

Frozen dataclasses for the compiled configuration artifact.  The movement
type table and workflow switches are compiled straight into the kernel's
own value types (``MovementTypeRegistry``, ``MovementPolicy``,
``SettingsTemplate``) so services can take them without translation.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from movement_kernel.domain.settings import SettingsTemplate
from movement_kernel.domain.type_config import MovementPolicy, MovementTypeRegistry


@dataclass(frozen=True)
class StockCheckSettings:
    """Bounds for the advisory stock pre-check."""

    timeout_seconds: float = 2.0
    max_workers: int = 4


@dataclass(frozen=True)
class CompiledMovementConfig:
    """The sole runtime configuration artifact.

    ``checksum`` is the SHA-256 of the canonical JSON form of the source
    YAML; two configs with the same checksum behave identically.
    """

    config_id: str
    version: int
    checksum: str
    registry: MovementTypeRegistry
    policy: MovementPolicy
    stock_check: StockCheckSettings = field(default_factory=StockCheckSettings)
    site_settings: SettingsTemplate = field(default_factory=SettingsTemplate)
