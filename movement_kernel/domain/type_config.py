"""
Movement type policy (``movement_kernel.domain.type_config``).

Responsibility
--------------
Frozen per-type policy records and the read-only registry that maps each
``MovementType`` to its policy: which locations are required, whether stock
is pre-checked, whether negative stock is tolerated, which tasks are
suggested, and whether a reference number is expected.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The registry is
built once by ``movement_config`` at startup and handed to services by
constructor injection; it is never mutated afterwards.

Invariants enforced
-------------------
* Every canonical ``MovementType`` has exactly one config.
* Legacy aliases (INBOUND, OUTBOUND, SHIPMENT) have none; looking one up
  raises ``UnconfiguredMovementTypeError``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from movement_kernel.domain.types import (
    CANONICAL_MOVEMENT_TYPES,
    LEGACY_MOVEMENT_TYPES,
    MovementType,
    TaskType,
)
from movement_kernel.exceptions import UnconfiguredMovementTypeError


@dataclass(frozen=True)
class MovementTypeConfig:
    """Static policy for one movement type."""

    movement_type: MovementType
    label: str
    requires_source_location: bool
    requires_destination_location: bool
    requires_stock_validation: bool
    allows_negative_stock: bool = False
    suggested_tasks: tuple[TaskType, ...] = ()
    requires_reference_number: bool = False
    reference_placeholder: str | None = None
    description: str = ""


@dataclass(frozen=True)
class MovementPolicy:
    """Process-wide workflow switches.

    ``reject_insufficient_stock``: when False, a failed stock pre-check is
    logged and the operation proceeds.
    ``require_reference_numbers``: when True, types flagged with
    ``requires_reference_number`` reject creation without one.
    """

    reject_insufficient_stock: bool = True
    require_reference_numbers: bool = False


class MovementTypeRegistry(Mapping[MovementType, MovementTypeConfig]):
    """Read-only ``MovementType -> MovementTypeConfig`` table.

    Raises:
        ValueError: at construction if a canonical type is missing, a
            legacy alias is configured, or a type appears twice.
    """

    def __init__(self, configs: Iterable[MovementTypeConfig]):
        table: dict[MovementType, MovementTypeConfig] = {}
        for config in configs:
            if config.movement_type in table:
                raise ValueError(
                    f"Duplicate config for movement type {config.movement_type.value}"
                )
            if config.movement_type in LEGACY_MOVEMENT_TYPES:
                raise ValueError(
                    f"Legacy movement type {config.movement_type.value} must stay unconfigured"
                )
            table[config.movement_type] = config

        missing = [t.value for t in CANONICAL_MOVEMENT_TYPES if t not in table]
        if missing:
            raise ValueError(f"Movement types without config: {', '.join(missing)}")

        self._table = MappingProxyType(table)

    def __getitem__(self, movement_type: MovementType) -> MovementTypeConfig:
        try:
            return self._table[movement_type]
        except KeyError:
            raise UnconfiguredMovementTypeError(
                getattr(movement_type, "value", str(movement_type))
            ) from None

    def __contains__(self, movement_type: object) -> bool:
        return movement_type in self._table

    def get(self, movement_type, default=None):
        return self._table.get(movement_type, default)

    def __iter__(self) -> Iterator[MovementType]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def get_config(self, movement_type: MovementType) -> MovementTypeConfig:
        """Return the policy for ``movement_type`` or raise UnconfiguredMovementTypeError."""
        return self[movement_type]

    def requires_source(self, movement_type: MovementType) -> bool:
        return self[movement_type].requires_source_location

    def requires_destination(self, movement_type: MovementType) -> bool:
        return self[movement_type].requires_destination_location

    def requires_stock_check(self, movement_type: MovementType) -> bool:
        return self[movement_type].requires_stock_validation

    def suggested_tasks(self, movement_type: MovementType) -> tuple[TaskType, ...]:
        return self[movement_type].suggested_tasks
