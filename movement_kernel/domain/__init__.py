"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from movement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from movement_kernel.domain.collaborators import (
    InventorySink,
    ItemDirectory,
    LocationDirectory,
    StockAvailabilityOracle,
)
from movement_kernel.domain.dtos import (
    DEFAULT_TASK_PRIORITY,
    DEFAULT_UNIT_OF_MEASURE,
    InventoryDelta,
    ItemRef,
    LineSpec,
    LocationRef,
    MovementCompletion,
    MovementInfo,
    MovementLineInfo,
    MovementTaskInfo,
    StockCheckOutcome,
    StockCheckResult,
    StockShortage,
    TaskSpec,
    WarehouseRef,
)
from movement_kernel.domain.settings import SettingsTemplate, WarehouseSettings
from movement_kernel.domain.type_config import (
    MovementPolicy,
    MovementTypeConfig,
    MovementTypeRegistry,
)
from movement_kernel.domain.types import (
    CANONICAL_MOVEMENT_TYPES,
    LEGACY_MOVEMENT_TYPES,
    TERMINAL_LINE_STATUSES,
    TERMINAL_MOVEMENT_STATUSES,
    TERMINAL_TASK_STATUSES,
    LineAction,
    LineStatus,
    MovementAction,
    MovementPriority,
    MovementStatus,
    MovementType,
    TaskAction,
    TaskStatus,
    TaskType,
)
from movement_kernel.domain.workflow import (
    LINE_WORKFLOW,
    MOVEMENT_WORKFLOW,
    TASK_WORKFLOW,
    Guard,
    MovementTransitionPlan,
    TaskTransitionPlan,
    Transition,
    Workflow,
    allowed_line_actions,
    allowed_movement_actions,
    allowed_task_actions,
    is_editable,
    plan_line_transition,
    plan_movement_transition,
    plan_task_transition,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Collaborators
    "LocationDirectory",
    "ItemDirectory",
    "StockAvailabilityOracle",
    "InventorySink",
    # DTOs
    "DEFAULT_TASK_PRIORITY",
    "DEFAULT_UNIT_OF_MEASURE",
    "LineSpec",
    "TaskSpec",
    "MovementInfo",
    "MovementLineInfo",
    "MovementTaskInfo",
    "InventoryDelta",
    "MovementCompletion",
    "StockCheckOutcome",
    "StockCheckResult",
    "StockShortage",
    "WarehouseRef",
    "LocationRef",
    "ItemRef",
    # Settings
    "SettingsTemplate",
    "WarehouseSettings",
    # Type policy
    "MovementTypeConfig",
    "MovementPolicy",
    "MovementTypeRegistry",
    # Enums
    "MovementType",
    "MovementStatus",
    "MovementPriority",
    "MovementAction",
    "LineStatus",
    "LineAction",
    "TaskType",
    "TaskStatus",
    "TaskAction",
    "CANONICAL_MOVEMENT_TYPES",
    "LEGACY_MOVEMENT_TYPES",
    "TERMINAL_MOVEMENT_STATUSES",
    "TERMINAL_LINE_STATUSES",
    "TERMINAL_TASK_STATUSES",
    # Workflows
    "Guard",
    "Transition",
    "Workflow",
    "MOVEMENT_WORKFLOW",
    "LINE_WORKFLOW",
    "TASK_WORKFLOW",
    "MovementTransitionPlan",
    "TaskTransitionPlan",
    "plan_movement_transition",
    "plan_task_transition",
    "plan_line_transition",
    "allowed_movement_actions",
    "allowed_task_actions",
    "allowed_line_actions",
    "is_editable",
]
