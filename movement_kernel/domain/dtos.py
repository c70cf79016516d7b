"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures that cross the kernel boundary: creation requests
    (LineSpec, TaskSpec), read models (MovementInfo, MovementLineInfo,
    MovementTaskInfo), the completion intent handed to the inventory system
    (MovementCompletion, InventoryDelta), stock pre-check results
    (StockCheckResult) and directory records (WarehouseRef, LocationRef,
    ItemRef).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Services return these, never ORM rows.

Invariants enforced:
    - Counters on MovementInfo (total_lines, completed_lines, pending_tasks,
      quantity totals) are derived from the nested lines/tasks, never stored.
    - StockCheckResult carries a shortage only for INSUFFICIENT and a reason
      only for SKIPPED.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID

from movement_kernel.domain.types import (
    TERMINAL_TASK_STATUSES,
    LineStatus,
    MovementAction,
    MovementPriority,
    MovementStatus,
    MovementType,
    TaskStatus,
    TaskType,
)
from movement_kernel.exceptions import InsufficientStockError

DEFAULT_UNIT_OF_MEASURE = "EA"
DEFAULT_TASK_PRIORITY = 5


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class LineSpec:
    """One requested line of a new movement."""

    item_id: UUID
    requested_quantity: Decimal
    actual_quantity: Decimal | None = None
    unit_of_measure: str | None = None
    from_location_id: UUID | None = None
    to_location_id: UUID | None = None
    lot_id: UUID | None = None
    serial_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class TaskSpec:
    """One requested task of a movement."""

    task_type: TaskType
    priority: int = DEFAULT_TASK_PRIORITY
    assigned_user_id: UUID | None = None
    location_id: UUID | None = None
    movement_line_id: UUID | None = None
    scheduled_start_time: datetime | None = None
    expected_completion_time: datetime | None = None
    instructions: str | None = None


# =============================================================================
# Read models
# =============================================================================


@dataclass(frozen=True)
class MovementLineInfo:
    """Immutable snapshot of a movement line.

    ``from_location_id`` / ``to_location_id`` are the effective values:
    the line's own location, or the movement's source/destination when unset.
    """

    id: UUID
    movement_id: UUID
    line_number: int
    item_id: UUID
    requested_quantity: Decimal
    actual_quantity: Decimal
    unit_of_measure: str
    from_location_id: UUID | None
    to_location_id: UUID | None
    lot_id: UUID | None
    serial_id: UUID | None
    status: LineStatus
    notes: str | None = None

    @property
    def variance_quantity(self) -> Decimal:
        return self.actual_quantity - self.requested_quantity

    @property
    def is_short(self) -> bool:
        return self.actual_quantity < self.requested_quantity


@dataclass(frozen=True)
class MovementTaskInfo:
    """Immutable snapshot of a movement task.

    ``is_overdue`` is computed against the clock at read time.
    """

    id: UUID
    movement_id: UUID
    task_type: TaskType
    priority: int
    status: TaskStatus
    movement_line_id: UUID | None = None
    assigned_user_id: UUID | None = None
    location_id: UUID | None = None
    scheduled_start_time: datetime | None = None
    expected_completion_time: datetime | None = None
    actual_start_time: datetime | None = None
    actual_completion_time: datetime | None = None
    instructions: str | None = None
    cancellation_reason: str | None = None
    is_overdue: bool = False

    @property
    def duration(self) -> timedelta | None:
        if self.actual_start_time is None or self.actual_completion_time is None:
            return None
        return self.actual_completion_time - self.actual_start_time

    @property
    def duration_minutes(self) -> int | None:
        duration = self.duration
        if duration is None:
            return None
        return int(duration.total_seconds() // 60)


@dataclass(frozen=True)
class MovementInfo:
    """Immutable snapshot of a movement with its lines and tasks."""

    id: UUID
    movement_type: MovementType
    priority: MovementPriority
    status: MovementStatus
    warehouse_id: UUID
    movement_date: date
    version: int
    created_by_id: UUID
    lines: tuple[MovementLineInfo, ...]
    tasks: tuple[MovementTaskInfo, ...]
    allowed_actions: tuple[MovementAction, ...]
    source_location_id: UUID | None = None
    destination_location_id: UUID | None = None
    reference_number: str | None = None
    notes: str | None = None
    expected_date: date | None = None
    scheduled_date: date | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    completed_by_id: UUID | None = None
    held_at: datetime | None = None
    hold_reason: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    @property
    def completed_lines(self) -> int:
        return sum(1 for line in self.lines if line.status == LineStatus.COMPLETED)

    @property
    def pending_tasks(self) -> int:
        return sum(1 for task in self.tasks if task.status not in TERMINAL_TASK_STATUSES)

    @property
    def total_requested_quantity(self) -> Decimal:
        return sum((line.requested_quantity for line in self.lines), Decimal("0"))

    @property
    def total_actual_quantity(self) -> Decimal:
        return sum((line.actual_quantity for line in self.lines), Decimal("0"))


# =============================================================================
# Completion intent
# =============================================================================


@dataclass(frozen=True)
class InventoryDelta:
    """Per-line inventory effect: take ``quantity`` from ``from_location_id``
    (when set) and put it at ``to_location_id`` (when set)."""

    line_id: UUID
    item_id: UUID
    quantity: Decimal
    unit_of_measure: str
    from_location_id: UUID | None
    to_location_id: UUID | None
    lot_id: UUID | None = None
    serial_id: UUID | None = None


@dataclass(frozen=True)
class MovementCompletion:
    """Everything the inventory system needs to apply a completed movement."""

    movement_id: UUID
    movement_type: MovementType
    warehouse_id: UUID
    completed_at: datetime
    completed_by_id: UUID
    allows_negative_stock: bool
    deltas: tuple[InventoryDelta, ...]
    reference_number: str | None = None


# =============================================================================
# Stock pre-check
# =============================================================================


class StockCheckOutcome(str, Enum):
    PASSED = "passed"
    INSUFFICIENT = "insufficient"
    SKIPPED = "skipped"
    NOT_REQUIRED = "not_required"


@dataclass(frozen=True)
class StockShortage:
    """First line that failed the availability check."""

    item_id: UUID
    location_id: UUID
    line_index: int
    requested_quantity: Decimal


@dataclass(frozen=True)
class StockCheckResult:
    """Result of the advisory stock pre-check.

    SKIPPED means the oracle was unavailable or too slow; validation proceeds
    and the inventory system re-checks at commit time.
    """

    outcome: StockCheckOutcome
    checked_lines: int = 0
    shortage: StockShortage | None = None
    skipped_reason: str | None = None

    def __post_init__(self) -> None:
        if (self.outcome == StockCheckOutcome.INSUFFICIENT) != (self.shortage is not None):
            raise ValueError("shortage must be set exactly when outcome is INSUFFICIENT")
        if self.outcome == StockCheckOutcome.SKIPPED and not self.skipped_reason:
            raise ValueError("SKIPPED result requires a reason")

    @classmethod
    def passed(cls, checked_lines: int) -> StockCheckResult:
        return cls(outcome=StockCheckOutcome.PASSED, checked_lines=checked_lines)

    @classmethod
    def not_required(cls) -> StockCheckResult:
        return cls(outcome=StockCheckOutcome.NOT_REQUIRED)

    @classmethod
    def skipped(cls, reason: str, checked_lines: int = 0) -> StockCheckResult:
        return cls(
            outcome=StockCheckOutcome.SKIPPED,
            checked_lines=checked_lines,
            skipped_reason=reason,
        )

    @classmethod
    def insufficient(cls, shortage: StockShortage, checked_lines: int) -> StockCheckResult:
        return cls(
            outcome=StockCheckOutcome.INSUFFICIENT,
            checked_lines=checked_lines,
            shortage=shortage,
        )

    @property
    def is_insufficient(self) -> bool:
        return self.outcome == StockCheckOutcome.INSUFFICIENT

    def raise_for_shortage(self) -> None:
        """Raise InsufficientStockError when the check found a shortage."""
        if self.shortage is not None:
            raise InsufficientStockError(
                item_id=str(self.shortage.item_id),
                location_id=str(self.shortage.location_id),
                line_index=self.shortage.line_index,
                requested_quantity=self.shortage.requested_quantity,
            )


# =============================================================================
# Directory records
# =============================================================================


@dataclass(frozen=True)
class WarehouseRef:
    id: UUID
    code: str
    name: str = ""


@dataclass(frozen=True)
class LocationRef:
    id: UUID
    warehouse_id: UUID
    code: str
    name: str = ""


@dataclass(frozen=True)
class ItemRef:
    id: UUID
    sku: str
    name: str = ""
    unit_of_measure: str = DEFAULT_UNIT_OF_MEASURE
