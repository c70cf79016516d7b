"""Write-side services: flush within the caller's transaction, never commit."""

from movement_kernel.services.base import BaseService, MovementWriteService
from movement_kernel.services.movement_service import MovementService
from movement_kernel.services.retry import retry_on_conflict
from movement_kernel.services.stock_check import StockAvailabilityChecker
from movement_kernel.services.task_service import TaskService

__all__ = [
    "BaseService",
    "MovementWriteService",
    "MovementService",
    "TaskService",
    "StockAvailabilityChecker",
    "retry_on_conflict",
]
