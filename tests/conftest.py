"""
Pytest fixtures for the movement kernel test suite.

Provides:
- SQLite database sessions (in-memory per test; file-backed for tests that
  need several connections)
- In-memory fakes of the external collaborators (directories, stock oracle,
  inventory sink)
- Service / selector fixtures wired from the default configuration set
- Factories for common movements

Environment Variables:
- MOVEMENT_TEST_DATABASE_URL: PostgreSQL URL for tests marked ``postgres``.
  Those tests are skipped when it is not set.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from movement_config import clear_config_cache, get_active_config
from movement_config.bridges import build_movement_service
from movement_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from movement_kernel.domain.clock import DeterministicClock
from movement_kernel.domain.dtos import (
    ItemRef,
    LineSpec,
    LocationRef,
    MovementCompletion,
    WarehouseRef,
)
from movement_kernel.domain.types import MovementStatus, MovementType
from movement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from movement_kernel.selectors.movement_selector import MovementSelector
from movement_kernel.services.stock_check import StockAvailabilityChecker
from movement_kernel.services.task_service import TaskService

TEST_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")

POSTGRES_URL_ENV = "MOVEMENT_TEST_DATABASE_URL"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture movement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, movement_service):
            movement_service.start(movement_id, actor_id=actor)
            logs = captured_logs()
            assert any(r["message"] == "movement_transitioned" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("movement_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def active_config():
    """The default configuration set, loaded fresh for each test."""
    clear_config_cache()
    yield get_active_config()
    clear_config_cache()


@pytest.fixture
def registry(active_config):
    return active_config.registry


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Services only flush; nothing is committed, and the in-memory database
    disappears with the engine at teardown.
    """
    sess = get_session()
    yield sess
    try:
        sess.rollback()
    finally:
        sess.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Session factory over a file-backed SQLite database.

    Each session gets its own connection, so tests can interleave two
    transactions against the same rows and commit for real.
    """
    init_engine_from_url(f"sqlite:///{tmp_path / 'movements.db'}")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def postgres_session_factory():
    """Session factory over PostgreSQL; skips when no URL is configured."""
    url = os.environ.get(POSTGRES_URL_ENV)
    if not url:
        pytest.skip(f"{POSTGRES_URL_ENV} not set")
    init_engine_from_url(url)
    drop_tables()
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


# =============================================================================
# Collaborator fakes
# =============================================================================


class InMemoryLocationDirectory:
    """LocationDirectory backed by dicts."""

    def __init__(self):
        self.warehouses: dict[UUID, WarehouseRef] = {}
        self.locations: dict[UUID, LocationRef] = {}

    def add_warehouse(self, code: str) -> WarehouseRef:
        warehouse = WarehouseRef(id=uuid4(), code=code, name=f"Warehouse {code}")
        self.warehouses[warehouse.id] = warehouse
        return warehouse

    def add_location(self, warehouse_id: UUID, code: str) -> LocationRef:
        location = LocationRef(id=uuid4(), warehouse_id=warehouse_id, code=code)
        self.locations[location.id] = location
        return location

    def get_location(self, location_id: UUID) -> LocationRef | None:
        return self.locations.get(location_id)

    def get_warehouse(self, warehouse_id: UUID) -> WarehouseRef | None:
        return self.warehouses.get(warehouse_id)


class InMemoryItemDirectory:
    """ItemDirectory backed by a dict."""

    def __init__(self):
        self.items: dict[UUID, ItemRef] = {}

    def add_item(self, sku: str, unit_of_measure: str = "EA") -> ItemRef:
        item = ItemRef(id=uuid4(), sku=sku, name=sku, unit_of_measure=unit_of_measure)
        self.items[item.id] = item
        return item

    def get_item(self, item_id: UUID) -> ItemRef | None:
        return self.items.get(item_id)


class FakeStockOracle:
    """Stock oracle answering from a fixed on-hand table (default: nothing on hand)."""

    def __init__(self):
        self.on_hand: dict[tuple[UUID, UUID], Decimal] = {}
        self.calls: list[tuple[UUID, UUID, Decimal]] = []

    def set_on_hand(self, item_id: UUID, location_id: UUID, quantity: Decimal) -> None:
        self.on_hand[(item_id, location_id)] = Decimal(quantity)

    def has_available_stock(self, item_id: UUID, location_id: UUID, quantity: Decimal) -> bool:
        self.calls.append((item_id, location_id, quantity))
        return self.on_hand.get((item_id, location_id), Decimal("0")) >= quantity


class RecordingSink:
    """InventorySink that records every completion it receives."""

    def __init__(self):
        self.completions: list[MovementCompletion] = []

    def apply_movement_deltas(self, completion: MovementCompletion) -> None:
        self.completions.append(completion)


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def location_directory():
    return InMemoryLocationDirectory()


@pytest.fixture
def item_directory():
    return InMemoryItemDirectory()


@pytest.fixture
def warehouse(location_directory) -> WarehouseRef:
    return location_directory.add_warehouse("WH-01")


@pytest.fixture
def source_location(location_directory, warehouse) -> LocationRef:
    return location_directory.add_location(warehouse.id, "A-01-01")


@pytest.fixture
def destination_location(location_directory, warehouse) -> LocationRef:
    return location_directory.add_location(warehouse.id, "B-02-01")


@pytest.fixture
def item(item_directory) -> ItemRef:
    return item_directory.add_item("SKU-100", unit_of_measure="BOX")


@pytest.fixture
def stock_oracle():
    return FakeStockOracle()


@pytest.fixture
def stock_checker(stock_oracle):
    checker = StockAvailabilityChecker(stock_oracle, timeout_seconds=1.0)
    yield checker
    checker.close()


@pytest.fixture
def inventory_sink():
    return RecordingSink()


# =============================================================================
# Services and selectors
# =============================================================================


@pytest.fixture
def movement_service(
    session,
    active_config,
    deterministic_clock,
    stock_checker,
    inventory_sink,
    location_directory,
    item_directory,
):
    return build_movement_service(
        session,
        active_config,
        clock=deterministic_clock,
        stock_checker=stock_checker,
        sink=inventory_sink,
        location_directory=location_directory,
        item_directory=item_directory,
    )


@pytest.fixture
def task_service(session, deterministic_clock):
    return TaskService(session, deterministic_clock)


@pytest.fixture
def movement_selector(session, deterministic_clock):
    return MovementSelector(session, deterministic_clock)


# =============================================================================
# Movement factories
# =============================================================================


@pytest.fixture
def create_transfer(
    movement_service,
    warehouse,
    source_location,
    destination_location,
    item,
    stock_oracle,
    test_actor_id,
):
    """
    Factory creating a TRANSFER from ``source_location`` to
    ``destination_location`` with enough stock on hand.

    Usage::

        info = create_transfer(quantity=Decimal("5"), status=MovementStatus.DRAFT)
    """

    def _create(
        quantity: Decimal = Decimal("5"),
        status: MovementStatus = MovementStatus.PENDING,
        lines: list[LineSpec] | None = None,
        **kwargs,
    ):
        stock_oracle.set_on_hand(item.id, source_location.id, Decimal("1000"))
        return movement_service.create_movement(
            MovementType.TRANSFER,
            warehouse.id,
            lines or [LineSpec(item_id=item.id, requested_quantity=quantity)],
            actor_id=test_actor_id,
            status=status,
            source_location_id=source_location.id,
            destination_location_id=destination_location.id,
            **kwargs,
        )

    return _create


@pytest.fixture
def started_transfer(create_transfer, movement_service, test_actor_id):
    """An IN_PROGRESS transfer with one line of 5."""
    info = create_transfer()
    return movement_service.start(info.id, actor_id=test_actor_id)
