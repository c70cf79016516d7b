"""
Config -> Kernel Bridges.

Functions that wire kernel services from a CompiledMovementConfig.  These
live in movement_config (the producer) because the kernel must NEVER import
movement_config.

Usage:
    from movement_config import get_active_config
    from movement_config.bridges import build_movement_service

    config = get_active_config()
    with session_scope() as session:
        service = build_movement_service(session, config, oracle=oracle, sink=sink)
        service.complete(movement_id, actor_id=user_id)

Services are built per session, but the stock checker owns a worker pool.
``shared_stock_checker`` keeps one checker per (config, oracle) pair for the
life of the process; ``close_stock_checkers`` shuts them all down.
"""

from __future__ import annotations

import threading

from sqlalchemy.orm import Session

from movement_config.schema import CompiledMovementConfig
from movement_kernel.domain.clock import Clock
from movement_kernel.domain.collaborators import (
    InventorySink,
    ItemDirectory,
    LocationDirectory,
    StockAvailabilityOracle,
)
from movement_kernel.logging_config import get_logger
from movement_kernel.services.movement_service import MovementService
from movement_kernel.services.stock_check import StockAvailabilityChecker

_logger = get_logger("config.bridges")

_checkers: dict[tuple[str, int], tuple[StockAvailabilityOracle, StockAvailabilityChecker]] = {}
_checkers_lock = threading.Lock()


def build_stock_checker(
    config: CompiledMovementConfig,
    oracle: StockAvailabilityOracle | None,
) -> StockAvailabilityChecker:
    """New StockAvailabilityChecker bounded by the configured timeout and pool size.

    The caller owns the result and must ``close()`` it.
    """
    return StockAvailabilityChecker(
        oracle,
        timeout_seconds=config.stock_check.timeout_seconds,
        max_workers=config.stock_check.max_workers,
    )


def shared_stock_checker(
    config: CompiledMovementConfig,
    oracle: StockAvailabilityOracle,
) -> StockAvailabilityChecker:
    """Process-wide checker for ``oracle`` under ``config``, built on first use."""
    key = (config.checksum, id(oracle))
    with _checkers_lock:
        entry = _checkers.get(key)
        # The oracle is held in the entry, so its id cannot be reused while cached.
        if entry is not None and entry[0] is oracle:
            return entry[1]
        checker = build_stock_checker(config, oracle)
        _checkers[key] = (oracle, checker)

    _logger.info(
        "stock_checker_created",
        extra={
            "config_id": config.config_id,
            "timeout_seconds": config.stock_check.timeout_seconds,
            "max_workers": config.stock_check.max_workers,
        },
    )
    return checker


def close_stock_checkers() -> None:
    """Shut down every shared checker's worker pool."""
    with _checkers_lock:
        entries = list(_checkers.values())
        _checkers.clear()
    for _, checker in entries:
        checker.close()


def build_movement_service(
    session: Session,
    config: CompiledMovementConfig,
    *,
    clock: Clock | None = None,
    oracle: StockAvailabilityOracle | None = None,
    stock_checker: StockAvailabilityChecker | None = None,
    sink: InventorySink | None = None,
    location_directory: LocationDirectory | None = None,
    item_directory: ItemDirectory | None = None,
) -> MovementService:
    """MovementService wired with the configured registry and policy.

    An explicit ``stock_checker`` wins; otherwise ``oracle`` (when given) is
    wrapped in the shared checker for this config, so repeated calls reuse
    one worker pool.
    """
    if stock_checker is None and oracle is not None:
        stock_checker = shared_stock_checker(config, oracle)
    return MovementService(
        session,
        config.registry,
        clock=clock,
        policy=config.policy,
        stock_checker=stock_checker,
        inventory_sink=sink,
        location_directory=location_directory,
        item_directory=item_directory,
    )
