"""
Tests for the movement type policy table.

These tests verify:
- Every canonical type carries the documented location / stock flags
- Legacy aliases stay unconfigured and raise on lookup
- The registry refuses incomplete, duplicated or legacy entries
"""

import pytest

from movement_kernel.domain.type_config import MovementTypeConfig, MovementTypeRegistry
from movement_kernel.domain.types import (
    CANONICAL_MOVEMENT_TYPES,
    LEGACY_MOVEMENT_TYPES,
    MovementType,
    TaskType,
)
from movement_kernel.exceptions import UnconfiguredMovementTypeError

T = MovementType

# type -> (needs source, needs destination, stock check, negative stock ok)
POLICY_TABLE = {
    T.RECEIPT: (False, True, False, False),
    T.ISSUE: (True, False, True, False),
    T.TRANSFER: (True, True, True, False),
    T.ADJUSTMENT: (False, True, False, True),
    T.PICKING: (True, True, True, False),
    T.PUTAWAY: (True, True, True, False),
    T.RETURN: (True, True, False, False),
    T.CYCLE_COUNT: (False, True, False, True),
    T.QUARANTINE: (True, True, True, False),
    T.RELOCATION: (True, True, True, False),
}


def _config(movement_type: MovementType) -> MovementTypeConfig:
    return MovementTypeConfig(
        movement_type=movement_type,
        label=movement_type.value,
        requires_source_location=False,
        requires_destination_location=False,
        requires_stock_validation=False,
    )


class TestPolicyTable:
    """The default configuration set matches the documented policy table."""

    @pytest.mark.parametrize("movement_type", list(POLICY_TABLE))
    def test_flags(self, registry, movement_type):
        source, destination, stock, negative = POLICY_TABLE[movement_type]
        config = registry.get_config(movement_type)
        assert config.requires_source_location is source
        assert config.requires_destination_location is destination
        assert config.requires_stock_validation is stock
        assert config.allows_negative_stock is negative

    def test_helper_lookups(self, registry):
        assert registry.requires_source(T.ISSUE)
        assert not registry.requires_destination(T.ISSUE)
        assert registry.requires_stock_check(T.TRANSFER)
        assert registry.suggested_tasks(T.RECEIPT) == (
            TaskType.RECEIVE, TaskType.INSPECT, TaskType.PUTAWAY,
        )
        assert registry.suggested_tasks(T.PUTAWAY) == (TaskType.PUTAWAY,)

    def test_reference_flags_and_placeholders(self, registry):
        assert registry[T.ISSUE].requires_reference_number
        assert not registry[T.TRANSFER].requires_reference_number
        assert "RMA" in registry[T.RETURN].reference_placeholder

    def test_covers_exactly_the_canonical_types(self, registry):
        assert set(registry) == set(CANONICAL_MOVEMENT_TYPES)
        assert len(registry) == 10


class TestLegacyAliases:
    """INBOUND / OUTBOUND / SHIPMENT have no policy."""

    @pytest.mark.parametrize("movement_type", sorted(LEGACY_MOVEMENT_TYPES, key=lambda t: t.value))
    def test_lookup_raises(self, registry, movement_type):
        assert movement_type not in registry
        with pytest.raises(UnconfiguredMovementTypeError) as exc_info:
            registry.get_config(movement_type)
        assert exc_info.value.movement_type == movement_type.value
        assert exc_info.value.code == "UNCONFIGURED_MOVEMENT_TYPE"

    def test_mapping_get_returns_default(self, registry):
        assert registry.get(T.SHIPMENT) is None


class TestRegistryConstruction:
    """The registry is built complete or not at all."""

    def test_missing_canonical_type_rejected(self):
        configs = [_config(t) for t in CANONICAL_MOVEMENT_TYPES if t != T.RELOCATION]
        with pytest.raises(ValueError, match="relocation"):
            MovementTypeRegistry(configs)

    def test_duplicate_rejected(self):
        configs = [_config(t) for t in CANONICAL_MOVEMENT_TYPES] + [_config(T.ISSUE)]
        with pytest.raises(ValueError, match="Duplicate"):
            MovementTypeRegistry(configs)

    def test_legacy_alias_rejected(self):
        configs = [_config(t) for t in CANONICAL_MOVEMENT_TYPES] + [_config(T.INBOUND)]
        with pytest.raises(ValueError, match="Legacy"):
            MovementTypeRegistry(configs)

    def test_configs_are_frozen(self, registry):
        with pytest.raises(AttributeError):
            registry[T.ISSUE].requires_stock_validation = False
