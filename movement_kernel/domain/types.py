"""
movement_kernel.domain.types -- Enumerations for movements, lines and tasks.

ZERO I/O.  Values are lower-case strings so they can be stored in plain
``String`` columns and YAML configuration without translation.
"""

from __future__ import annotations

from enum import Enum


class MovementType(str, Enum):
    """Category of inventory movement.

    The first ten members are canonical and must each have a policy entry.
    INBOUND, OUTBOUND and SHIPMENT are legacy display aliases with no
    policy; they are rejected at creation time.
    """

    RECEIPT = "receipt"
    ISSUE = "issue"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    PICKING = "picking"
    PUTAWAY = "putaway"
    RETURN = "return"
    CYCLE_COUNT = "cycle_count"
    QUARANTINE = "quarantine"
    RELOCATION = "relocation"
    # Legacy aliases (unconfigured)
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    SHIPMENT = "shipment"


LEGACY_MOVEMENT_TYPES: frozenset[MovementType] = frozenset({
    MovementType.INBOUND,
    MovementType.OUTBOUND,
    MovementType.SHIPMENT,
})

CANONICAL_MOVEMENT_TYPES: tuple[MovementType, ...] = tuple(
    t for t in MovementType if t not in LEGACY_MOVEMENT_TYPES
)


class MovementStatus(str, Enum):
    """Movement lifecycle state."""

    DRAFT = "draft"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class MovementPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"


class MovementAction(str, Enum):
    """Actions accepted by the movement state machine."""

    START = "start"
    COMPLETE = "complete"
    HOLD = "hold"
    RELEASE = "release"
    CANCEL = "cancel"
    DELETE = "delete"
    EDIT = "edit"


class LineStatus(str, Enum):
    """Movement line lifecycle state."""

    PENDING = "pending"
    PICKED = "picked"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LineAction(str, Enum):
    PICK = "pick"
    DISPATCH = "dispatch"
    COMPLETE = "complete"
    CANCEL = "cancel"


class TaskType(str, Enum):
    """Unit of physical work executed for a movement."""

    PICK = "pick"
    PUTAWAY = "putaway"
    COUNT = "count"
    PACK = "pack"
    LOAD = "load"
    UNLOAD = "unload"
    INSPECT = "inspect"
    RECEIVE = "receive"
    SHIP = "ship"
    TRANSFER = "transfer"


class TaskStatus(str, Enum):
    """Movement task lifecycle state."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskAction(str, Enum):
    ASSIGN = "assign"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


TERMINAL_MOVEMENT_STATUSES: frozenset[MovementStatus] = frozenset({
    MovementStatus.COMPLETED,
    MovementStatus.CANCELLED,
})

TERMINAL_LINE_STATUSES: frozenset[LineStatus] = frozenset({
    LineStatus.COMPLETED,
    LineStatus.CANCELLED,
})

TERMINAL_TASK_STATUSES: frozenset[TaskStatus] = frozenset({
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
})
