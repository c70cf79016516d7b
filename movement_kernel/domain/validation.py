"""
Creation and mutation checks for movements (pure, no I/O).

Each function either returns normally or raises the typed error describing
the first violation found.  Stock availability is not checked here; that
needs the external oracle and lives in ``services.stock_check``.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from movement_kernel.domain.dtos import LineSpec, TaskSpec
from movement_kernel.domain.type_config import MovementPolicy, MovementTypeConfig
from movement_kernel.exceptions import (
    EmptyLineSetError,
    InvalidQuantityError,
    InvalidTaskPriorityError,
    MissingLocationError,
    MissingReferenceNumberError,
)

MIN_TASK_PRIORITY = 1
MAX_TASK_PRIORITY = 10


def validate_locations(
    config: MovementTypeConfig,
    source_location_id: UUID | None,
    destination_location_id: UUID | None,
) -> None:
    """Raise MissingLocationError if a location the type requires is absent."""
    if config.requires_source_location and source_location_id is None:
        raise MissingLocationError(config.movement_type.value, "source")
    if config.requires_destination_location and destination_location_id is None:
        raise MissingLocationError(config.movement_type.value, "destination")


def validate_requested_quantity(quantity: Decimal, line_index: int) -> None:
    if quantity <= 0:
        raise InvalidQuantityError(line_index, quantity)


def validate_actual_quantity(quantity: Decimal, line_index: int) -> None:
    if quantity < 0:
        raise InvalidQuantityError(line_index, quantity, field="actual_quantity")


def validate_creation(
    config: MovementTypeConfig,
    source_location_id: UUID | None,
    destination_location_id: UUID | None,
    lines: Sequence[LineSpec],
) -> None:
    """Validate a movement-creation request against its type policy.

    Raises:
        MissingLocationError: a required source/destination is absent.
        EmptyLineSetError: ``lines`` is empty.
        InvalidQuantityError: a requested quantity <= 0 or actual < 0.
    """
    validate_locations(config, source_location_id, destination_location_id)
    if not lines:
        raise EmptyLineSetError()
    for index, line in enumerate(lines):
        validate_requested_quantity(line.requested_quantity, index)
        if line.actual_quantity is not None:
            validate_actual_quantity(line.actual_quantity, index)


def validate_task_priority(priority: int) -> None:
    if not MIN_TASK_PRIORITY <= priority <= MAX_TASK_PRIORITY:
        raise InvalidTaskPriorityError(priority)


def validate_task_specs(tasks: Sequence[TaskSpec]) -> None:
    for task in tasks:
        validate_task_priority(task.priority)


def validate_reference_number(
    config: MovementTypeConfig,
    reference_number: str | None,
    policy: MovementPolicy,
) -> None:
    """Enforce the type's reference-number flag when the policy switch is on."""
    if not policy.require_reference_numbers or not config.requires_reference_number:
        return
    if reference_number is None or not reference_number.strip():
        raise MissingReferenceNumberError(
            config.movement_type.value, config.reference_placeholder,
        )


def suggest_tasks(config: MovementTypeConfig) -> tuple[TaskSpec, ...]:
    """Default PENDING tasks for a movement of this type, in suggested order."""
    return tuple(TaskSpec(task_type=task_type) for task_type in config.suggested_tasks)
