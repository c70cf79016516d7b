"""
Tests for movement configuration loading.

These tests verify:
- The default set compiles into a complete registry and policy
- get_active_config() caches per path and honours the environment override
- Incomplete or malformed sets are rejected at load time
- The checksum is deterministic
- The bridge wires services from the compiled config
"""

import copy
from pathlib import Path

import pytest
import yaml

from movement_config import (
    CONFIG_PATH_ENV,
    clear_config_cache,
    get_active_config,
)
from movement_config.bridges import (
    build_movement_service,
    build_stock_checker,
    close_stock_checkers,
    shared_stock_checker,
)
from movement_config.loader import (
    compile_config,
    compute_checksum,
    load_yaml_file,
    parse_movement_type,
    parse_stock_check,
)
from movement_kernel.domain.types import MovementType, TaskType
from movement_kernel.services.movement_service import MovementService

DEFAULT_SET = Path(__file__).resolve().parents[2] / "movement_config" / "sets" / "default.yaml"


@pytest.fixture
def default_data():
    return load_yaml_file(DEFAULT_SET)


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_config_cache()
    yield
    clear_config_cache()


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "movement.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultSet:

    def test_compiles(self):
        config = get_active_config()
        assert config.config_id == "default"
        assert config.version == 1
        assert len(config.registry) == 10
        assert config.policy.reject_insufficient_stock is True
        assert config.policy.require_reference_numbers is False
        assert config.stock_check.timeout_seconds == 2.0
        assert config.stock_check.max_workers == 4
        assert len(config.checksum) == 64

    def test_cached_per_path(self):
        assert get_active_config() is get_active_config()

    def test_clear_cache_reloads(self):
        first = get_active_config()
        clear_config_cache()
        second = get_active_config()
        assert first is not second
        assert first.checksum == second.checksum

    def test_load_is_logged(self, captured_logs):
        get_active_config()
        records = [r for r in captured_logs() if r["message"] == "movement_config_loaded"]
        assert len(records) == 1
        assert records[0]["config_id"] == "default"
        assert records[0]["movement_type_count"] == 10

    def test_environment_override(self, tmp_path, monkeypatch, default_data):
        data = copy.deepcopy(default_data)
        data["config_id"] = "site-b"
        monkeypatch.setenv(CONFIG_PATH_ENV, str(_write(tmp_path, data)))
        assert get_active_config().config_id == "site-b"

    def test_explicit_path(self, tmp_path, default_data):
        data = copy.deepcopy(default_data)
        data["workflow"]["reject_insufficient_stock"] = False
        config = get_active_config(_write(tmp_path, data))
        assert config.policy.reject_insufficient_stock is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")


class TestValidation:

    def test_missing_canonical_type_rejected(self, default_data):
        data = copy.deepcopy(default_data)
        del data["movement_types"]["quarantine"]
        with pytest.raises(ValueError, match="quarantine"):
            compile_config(data)

    def test_legacy_alias_rejected(self, default_data):
        data = copy.deepcopy(default_data)
        data["movement_types"]["shipment"] = copy.deepcopy(data["movement_types"]["issue"])
        with pytest.raises(ValueError, match="Legacy"):
            compile_config(data)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError, match="Unknown movement type"):
            parse_movement_type("teleport", {})

    def test_unknown_task_type_rejected(self, default_data):
        entry = dict(default_data["movement_types"]["issue"], suggested_tasks=["pick", "juggle"])
        with pytest.raises(ValueError, match="juggle"):
            parse_movement_type("issue", entry)

    def test_required_flag_missing(self, default_data):
        entry = dict(default_data["movement_types"]["issue"])
        del entry["requires_stock_validation"]
        with pytest.raises(KeyError):
            parse_movement_type("issue", entry)

    def test_non_boolean_flag_rejected(self, default_data):
        entry = dict(default_data["movement_types"]["issue"], requires_source_location="yes")
        with pytest.raises(ValueError, match="true or false"):
            parse_movement_type("issue", entry)

    def test_missing_config_id(self, default_data):
        data = copy.deepcopy(default_data)
        del data["config_id"]
        with pytest.raises(KeyError):
            compile_config(data)

    @pytest.mark.parametrize(
        "block", [{"timeout_seconds": 0}, {"timeout_seconds": -1}, {"max_workers": 0}]
    )
    def test_bad_stock_check_bounds(self, block):
        with pytest.raises(ValueError):
            parse_stock_check(block)

    def test_parsed_type_fields(self, default_data):
        config = parse_movement_type("adjustment", default_data["movement_types"]["adjustment"])
        assert config.movement_type == MovementType.ADJUSTMENT
        assert config.allows_negative_stock is True
        assert config.suggested_tasks == (TaskType.COUNT, TaskType.INSPECT)
        assert config.label == "Adjustment"


class TestChecksum:

    def test_deterministic(self, default_data):
        assert compute_checksum(default_data) == compute_checksum(copy.deepcopy(default_data))

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_changes_with_content(self, default_data):
        data = copy.deepcopy(default_data)
        data["version"] = 2
        assert compute_checksum(data) != compute_checksum(default_data)


class TestBridges:

    def test_stock_checker_uses_configured_timeout(self, active_config):
        checker = build_stock_checker(active_config, oracle=None)
        try:
            assert checker.timeout_seconds == active_config.stock_check.timeout_seconds
        finally:
            checker.close()

    def test_build_movement_service(self, session, active_config):
        service = build_movement_service(session, active_config)
        assert isinstance(service, MovementService)


class _NoStockOracle:
    def has_available_stock(self, item_id, location_id, quantity):
        return False


class TestSharedStockChecker:

    @pytest.fixture(autouse=True)
    def _close_shared(self):
        yield
        close_stock_checkers()

    def test_one_checker_per_oracle(self, active_config):
        oracle = _NoStockOracle()
        first = shared_stock_checker(active_config, oracle)
        assert shared_stock_checker(active_config, oracle) is first
        assert shared_stock_checker(active_config, _NoStockOracle()) is not first

    def test_services_reuse_the_shared_checker(self, session, active_config):
        oracle = _NoStockOracle()
        one = build_movement_service(session, active_config, oracle=oracle)
        two = build_movement_service(session, active_config, oracle=oracle)
        assert one._stock_checker is two._stock_checker
        assert one._stock_checker is shared_stock_checker(active_config, oracle)

    def test_explicit_checker_wins(self, session, active_config):
        checker = build_stock_checker(active_config, _NoStockOracle())
        try:
            service = build_movement_service(
                session, active_config, oracle=_NoStockOracle(), stock_checker=checker,
            )
            assert service._stock_checker is checker
        finally:
            checker.close()

    def test_close_forgets_checkers(self, active_config):
        oracle = _NoStockOracle()
        first = shared_stock_checker(active_config, oracle)
        close_stock_checkers()
        assert shared_stock_checker(active_config, oracle) is not first
