"""SQLAlchemy ORM models for the movement kernel."""

from movement_kernel.models.movement import Movement, MovementLine, MovementTask

__all__ = [
    "Movement",
    "MovementLine",
    "MovementTask",
]
