"""
External collaborators of the movement kernel.

Structural protocols for the systems the kernel reads from (location and
item directories, stock-availability oracle) and the one it writes to
(inventory sink).  Implementations live outside the kernel; tests use
in-memory fakes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from movement_kernel.domain.dtos import (
    ItemRef,
    LocationRef,
    MovementCompletion,
    WarehouseRef,
)


@runtime_checkable
class LocationDirectory(Protocol):
    def get_location(self, location_id: UUID) -> LocationRef | None: ...

    def get_warehouse(self, warehouse_id: UUID) -> WarehouseRef | None: ...


@runtime_checkable
class ItemDirectory(Protocol):
    def get_item(self, item_id: UUID) -> ItemRef | None: ...


@runtime_checkable
class StockAvailabilityOracle(Protocol):
    """Answers "does ``location_id`` hold at least ``quantity`` of ``item_id``"."""

    def has_available_stock(
        self, item_id: UUID, location_id: UUID, quantity: Decimal,
    ) -> bool: ...


@runtime_checkable
class InventorySink(Protocol):
    """Applies a completed movement to on-hand inventory.

    Called exactly once per movement, inside the caller's transaction and
    after the COMPLETED status has been written.
    """

    def apply_movement_deltas(self, completion: MovementCompletion) -> None: ...
