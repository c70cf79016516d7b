"""
StockAvailabilityChecker -- advisory stock pre-check against an external oracle.

Responsibility:
    Asks the stock-availability oracle whether each line's effective source
    location holds the requested quantity and reports the first shortage.

Architecture position:
    Kernel > Services.  Performs I/O only through the injected
    ``StockAvailabilityOracle``; never touches the session.

Invariants enforced:
    - The whole check runs under one bounded deadline; the caller never
      waits longer than ``timeout_seconds`` for the oracle.
    - Oracle failure or timeout yields ``StockCheckResult.skipped(reason)``
      and a WARNING log, never an exception.  The inventory system re-checks
      at commit time, so the pre-check is advisory.

Failure modes:
    - None raised.  ``StockCheckResult.raise_for_shortage()`` converts an
      INSUFFICIENT result into InsufficientStockError when the caller's
      policy says so.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from uuid import UUID

from movement_kernel.domain.collaborators import StockAvailabilityOracle
from movement_kernel.domain.dtos import LineSpec, StockCheckResult, StockShortage
from movement_kernel.domain.type_config import MovementTypeConfig
from movement_kernel.logging_config import get_logger

logger = get_logger("services.stock_check")

DEFAULT_TIMEOUT_SECONDS = 2.0


class StockAvailabilityChecker:
    """Runs the oracle calls for one movement under a bounded timeout.

    The oracle is called from a small worker pool so a hung oracle cannot
    stall the transition path.  ``close()`` releases the pool.
    """

    def __init__(
        self,
        oracle: StockAvailabilityOracle | None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_workers: int = 4,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._oracle = oracle
        self._timeout_seconds = timeout_seconds
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="stock-oracle",
            )
        return self._executor

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def check(
        self,
        config: MovementTypeConfig,
        lines: Sequence[LineSpec],
        default_source_location_id: UUID | None,
    ) -> StockCheckResult:
        """Check every line whose effective from-location is set.

        Args:
            config: Policy of the movement's type.
            lines: Lines in movement order; ``line_index`` refers to this order.
            default_source_location_id: Movement source, used for lines
                without their own from-location.

        Returns:
            NOT_REQUIRED if the type does not validate stock, PASSED,
            INSUFFICIENT with the first failing line, or SKIPPED(reason).
        """
        if not config.requires_stock_validation:
            return StockCheckResult.not_required()

        requests = [
            (index, line.item_id, line.from_location_id or default_source_location_id, line)
            for index, line in enumerate(lines)
            if (line.from_location_id or default_source_location_id) is not None
        ]

        if self._oracle is None:
            return self._skipped(config, "no stock availability oracle configured")

        oracle = self._oracle

        def run() -> StockCheckResult:
            for index, item_id, location_id, line in requests:
                if not oracle.has_available_stock(item_id, location_id, line.requested_quantity):
                    return StockCheckResult.insufficient(
                        StockShortage(
                            item_id=item_id,
                            location_id=location_id,
                            line_index=index,
                            requested_quantity=line.requested_quantity,
                        ),
                        checked_lines=len(requests),
                    )
            return StockCheckResult.passed(len(requests))

        future = self._pool().submit(run)
        try:
            result = future.result(timeout=self._timeout_seconds)
        except FutureTimeoutError:
            future.cancel()
            return self._skipped(
                config, f"stock oracle timed out after {self._timeout_seconds}s",
            )
        except Exception as exc:
            return self._skipped(
                config, f"stock oracle failed: {type(exc).__name__}: {exc}",
            )

        if result.is_insufficient:
            logger.warning(
                "stock_check_insufficient",
                extra={
                    "movement_type": config.movement_type.value,
                    "item_id": str(result.shortage.item_id),
                    "location_id": str(result.shortage.location_id),
                    "line_index": result.shortage.line_index,
                    "requested_quantity": str(result.shortage.requested_quantity),
                },
            )
        else:
            logger.debug(
                "stock_check_passed",
                extra={
                    "movement_type": config.movement_type.value,
                    "checked_lines": result.checked_lines,
                },
            )
        return result

    def _skipped(self, config: MovementTypeConfig, reason: str) -> StockCheckResult:
        logger.warning(
            "stock_check_skipped",
            extra={
                "movement_type": config.movement_type.value,
                "reason": reason,
            },
        )
        return StockCheckResult.skipped(reason)
