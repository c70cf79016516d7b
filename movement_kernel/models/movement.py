"""
ORM models for movements, movement lines and movement tasks.

Contract:
    Movement owns its lines and tasks (cascade delete).  Every row converts
    to an immutable DTO through ``to_dto()``; services and selectors hand
    those out, never the rows themselves.

Architecture: movement_kernel/models.  Imports from movement_kernel.db and
    movement_kernel.domain only.

Invariants enforced:
    - ``Movement.version`` is the SQLAlchemy version counter: every UPDATE or
      DELETE of a movement row is conditioned on the version that was read.
    - ``(movement_id, line_number)`` is UNIQUE; line numbers come from
      ``Movement.last_line_number`` and are never reused.
    - Counters (total_lines, completed_lines, pending_tasks) are not stored;
      MovementInfo derives them from the children.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from movement_kernel.db.base import TrackedBase, UUIDString
from movement_kernel.domain.dtos import MovementInfo, MovementLineInfo, MovementTaskInfo
from movement_kernel.domain.types import (
    TERMINAL_MOVEMENT_STATUSES,
    TERMINAL_TASK_STATUSES,
    LineStatus,
    MovementPriority,
    MovementStatus,
    MovementType,
    TaskStatus,
    TaskType,
)
from movement_kernel.domain.workflow import allowed_movement_actions


class Movement(TrackedBase):
    """A request to receive, issue, relocate or adjust inventory."""

    __tablename__ = "movements"

    __table_args__ = (
        Index("ix_movements_warehouse_status", "warehouse_id", "status"),
        Index("ix_movements_type", "movement_type"),
        Index("ix_movements_reference_number", "reference_number"),
        Index("ix_movements_created_by", "created_by_id"),
    )

    movement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    source_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    destination_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    movement_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    held_at: Mapped[datetime | None] = mapped_column(nullable=True)
    hold_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    held_from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    last_line_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_task_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    lines: Mapped[list["MovementLine"]] = relationship(
        "MovementLine",
        back_populates="movement",
        cascade="all, delete-orphan",
        order_by="MovementLine.line_number",
    )

    tasks: Mapped[list["MovementTask"]] = relationship(
        "MovementTask",
        back_populates="movement",
        cascade="all, delete-orphan",
        order_by="MovementTask.task_number",
    )

    @property
    def type_enum(self) -> MovementType:
        return MovementType(self.movement_type)

    @property
    def status_enum(self) -> MovementStatus:
        return MovementStatus(self.status)

    @property
    def held_from_enum(self) -> MovementStatus | None:
        if self.held_from_status is None:
            return None
        return MovementStatus(self.held_from_status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_MOVEMENT_STATUSES

    def next_line_number(self) -> int:
        self.last_line_number = (self.last_line_number or 0) + 1
        return self.last_line_number

    def next_task_number(self) -> int:
        self.last_task_number = (self.last_task_number or 0) + 1
        return self.last_task_number

    def to_dto(self, as_of: datetime | None = None) -> MovementInfo:
        """Snapshot with children; task overdue flags are computed against ``as_of``."""
        return MovementInfo(
            id=self.id,
            movement_type=self.type_enum,
            priority=MovementPriority(self.priority),
            status=self.status_enum,
            warehouse_id=self.warehouse_id,
            movement_date=self.movement_date,
            version=self.version,
            created_by_id=self.created_by_id,
            lines=tuple(line.to_dto() for line in self.lines),
            tasks=tuple(task.to_dto(as_of) for task in self.tasks),
            allowed_actions=allowed_movement_actions(self.status_enum),
            source_location_id=self.source_location_id,
            destination_location_id=self.destination_location_id,
            reference_number=self.reference_number,
            notes=self.notes,
            expected_date=self.expected_date,
            scheduled_date=self.scheduled_date,
            started_at=self.started_at,
            completed_at=self.completed_at,
            completed_by_id=self.completed_by_id,
            held_at=self.held_at,
            hold_reason=self.hold_reason,
            cancelled_at=self.cancelled_at,
            cancellation_reason=self.cancellation_reason,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class MovementLine(TrackedBase):
    """One item / quantity / location tuple of a movement."""

    __tablename__ = "movement_lines"

    __table_args__ = (
        UniqueConstraint("movement_id", "line_number", name="uq_movement_line_number"),
        Index("ix_movement_lines_item", "item_id"),
        Index("ix_movement_lines_status", "status"),
    )

    movement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("movements.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requested_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    actual_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)
    from_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    to_location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    lot_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    serial_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)

    movement: Mapped["Movement"] = relationship("Movement", back_populates="lines")

    @property
    def status_enum(self) -> LineStatus:
        return LineStatus(self.status)

    @property
    def effective_from_location_id(self) -> UUID | None:
        return self.from_location_id or self.movement.source_location_id

    @property
    def effective_to_location_id(self) -> UUID | None:
        return self.to_location_id or self.movement.destination_location_id

    def to_dto(self) -> MovementLineInfo:
        return MovementLineInfo(
            id=self.id,
            movement_id=self.movement_id,
            line_number=self.line_number,
            item_id=self.item_id,
            requested_quantity=Decimal(self.requested_quantity),
            actual_quantity=Decimal(self.actual_quantity),
            unit_of_measure=self.unit_of_measure,
            from_location_id=self.effective_from_location_id,
            to_location_id=self.effective_to_location_id,
            lot_id=self.lot_id,
            serial_id=self.serial_id,
            status=self.status_enum,
            notes=self.notes,
        )


class MovementTask(TrackedBase):
    """A unit of physical work executed for a movement."""

    __tablename__ = "movement_tasks"

    __table_args__ = (
        Index("ix_movement_tasks_movement", "movement_id", "task_number"),
        Index("ix_movement_tasks_assignee_status", "assigned_user_id", "status"),
        Index("ix_movement_tasks_type", "task_type"),
    )

    movement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("movements.id", ondelete="CASCADE"),
        nullable=False,
    )
    movement_line_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("movement_lines.id", ondelete="SET NULL"),
        nullable=True,
    )
    task_number: Mapped[int] = mapped_column(Integer, nullable=False)
    task_type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    assigned_user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    location_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    scheduled_start_time: Mapped[datetime | None] = mapped_column(nullable=True)
    expected_completion_time: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_start_time: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_completion_time: Mapped[datetime | None] = mapped_column(nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    movement: Mapped["Movement"] = relationship("Movement", back_populates="tasks")

    @property
    def status_enum(self) -> TaskStatus:
        return TaskStatus(self.status)

    def is_overdue(self, as_of: datetime | None) -> bool:
        if as_of is None or self.expected_completion_time is None:
            return False
        if self.status_enum in TERMINAL_TASK_STATUSES:
            return False
        return self.expected_completion_time < as_of

    def to_dto(self, as_of: datetime | None = None) -> MovementTaskInfo:
        return MovementTaskInfo(
            id=self.id,
            movement_id=self.movement_id,
            task_type=TaskType(self.task_type),
            priority=self.priority,
            status=self.status_enum,
            movement_line_id=self.movement_line_id,
            assigned_user_id=self.assigned_user_id,
            location_id=self.location_id,
            scheduled_start_time=self.scheduled_start_time,
            expected_completion_time=self.expected_completion_time,
            actual_start_time=self.actual_start_time,
            actual_completion_time=self.actual_completion_time,
            instructions=self.instructions,
            cancellation_reason=self.cancellation_reason,
            is_overdue=self.is_overdue(as_of),
        )
