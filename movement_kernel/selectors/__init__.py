"""Read-only query selectors returning frozen DTOs."""

from movement_kernel.selectors.base import BaseSelector
from movement_kernel.selectors.movement_selector import MovementSelector

__all__ = [
    "BaseSelector",
    "MovementSelector",
]
