"""
Tests for creation and mutation checks.

These tests verify:
- Required locations, non-empty lines and quantity ranges
- Task priority range
- Reference numbers only enforced when the policy switch is on
- Suggested tasks follow the type's order
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from movement_kernel.domain.dtos import LineSpec, TaskSpec
from movement_kernel.domain.type_config import MovementPolicy
from movement_kernel.domain.types import CANONICAL_MOVEMENT_TYPES, MovementType, TaskType
from movement_kernel.domain.validation import (
    suggest_tasks,
    validate_creation,
    validate_reference_number,
    validate_task_specs,
)
from movement_kernel.exceptions import (
    EmptyLineSetError,
    InvalidQuantityError,
    InvalidTaskPriorityError,
    MissingLocationError,
    MissingReferenceNumberError,
)

L1 = uuid4()
L2 = uuid4()
I1 = uuid4()


def _line(quantity: str, actual: str | None = None) -> LineSpec:
    return LineSpec(
        item_id=I1,
        requested_quantity=Decimal(quantity),
        actual_quantity=Decimal(actual) if actual is not None else None,
    )


class TestValidateCreation:
    """validate_creation against the type policy."""

    def test_transfer_with_both_locations_passes(self, registry):
        validate_creation(registry[MovementType.TRANSFER], L1, L2, [_line("5")])

    def test_transfer_without_destination_fails(self, registry):
        with pytest.raises(MissingLocationError) as exc_info:
            validate_creation(registry[MovementType.TRANSFER], L1, None, [_line("5")])
        assert exc_info.value.location_role == "destination"
        assert exc_info.value.movement_type == "transfer"

    def test_issue_without_source_fails(self, registry):
        with pytest.raises(MissingLocationError) as exc_info:
            validate_creation(registry[MovementType.ISSUE], None, None, [_line("1")])
        assert exc_info.value.location_role == "source"

    def test_receipt_needs_only_destination(self, registry):
        validate_creation(registry[MovementType.RECEIPT], None, L2, [_line("1")])

    @pytest.mark.parametrize("movement_type", CANONICAL_MOVEMENT_TYPES, ids=lambda t: t.value)
    def test_exactly_the_required_locations_pass(self, registry, movement_type):
        config = registry[movement_type]
        source = L1 if config.requires_source_location else None
        destination = L2 if config.requires_destination_location else None
        validate_creation(config, source, destination, [_line("1")])

    @pytest.mark.parametrize("movement_type", CANONICAL_MOVEMENT_TYPES, ids=lambda t: t.value)
    def test_each_missing_required_location_fails(self, registry, movement_type):
        config = registry[movement_type]
        required = []
        if config.requires_source_location:
            required.append(("source", None, L2))
        if config.requires_destination_location:
            required.append(("destination", L1, None))

        for role, source, destination in required:
            with pytest.raises(MissingLocationError) as exc_info:
                validate_creation(config, source, destination, [_line("1")])
            assert exc_info.value.location_role == role
            assert exc_info.value.movement_type == movement_type.value

    def test_location_checked_before_lines(self, registry):
        with pytest.raises(MissingLocationError):
            validate_creation(registry[MovementType.TRANSFER], None, None, [])

    def test_empty_lines_fail(self, registry):
        with pytest.raises(EmptyLineSetError):
            validate_creation(registry[MovementType.TRANSFER], L1, L2, [])

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_non_positive_requested_quantity_fails(self, registry, quantity):
        with pytest.raises(InvalidQuantityError) as exc_info:
            validate_creation(
                registry[MovementType.TRANSFER], L1, L2, [_line("3"), _line(quantity)],
            )
        assert exc_info.value.line_index == 1
        assert exc_info.value.field == "requested_quantity"

    def test_negative_actual_quantity_fails(self, registry):
        with pytest.raises(InvalidQuantityError) as exc_info:
            validate_creation(registry[MovementType.TRANSFER], L1, L2, [_line("3", "-1")])
        assert exc_info.value.field == "actual_quantity"

    def test_zero_actual_quantity_allowed(self, registry):
        validate_creation(registry[MovementType.TRANSFER], L1, L2, [_line("3", "0")])


class TestTaskSpecs:

    @pytest.mark.parametrize("priority", [1, 5, 10])
    def test_priority_in_range(self, priority):
        validate_task_specs([TaskSpec(task_type=TaskType.PICK, priority=priority)])

    @pytest.mark.parametrize("priority", [0, 11])
    def test_priority_out_of_range(self, priority):
        with pytest.raises(InvalidTaskPriorityError) as exc_info:
            validate_task_specs([TaskSpec(task_type=TaskType.PICK, priority=priority)])
        assert exc_info.value.priority == priority

    def test_suggested_tasks_in_order(self, registry):
        tasks = suggest_tasks(registry[MovementType.ISSUE])
        assert [t.task_type for t in tasks] == [TaskType.PICK, TaskType.PACK, TaskType.SHIP]
        assert all(t.priority == 5 for t in tasks)


class TestReferenceNumber:

    def test_not_enforced_by_default(self, registry):
        validate_reference_number(registry[MovementType.ISSUE], None, MovementPolicy())

    def test_enforced_when_switched_on(self, registry):
        policy = MovementPolicy(require_reference_numbers=True)
        with pytest.raises(MissingReferenceNumberError) as exc_info:
            validate_reference_number(registry[MovementType.ISSUE], "  ", policy)
        assert "Sales Order" in str(exc_info.value)

    def test_type_without_flag_never_enforced(self, registry):
        policy = MovementPolicy(require_reference_numbers=True)
        validate_reference_number(registry[MovementType.TRANSFER], None, policy)

    def test_present_reference_passes(self, registry):
        policy = MovementPolicy(require_reference_numbers=True)
        validate_reference_number(registry[MovementType.ISSUE], "SO-1001", policy)
