"""
Module: movement_kernel.selectors.movement_selector
Responsibility: Read-only queries over movements, movement lines and movement
    tasks: lookups, filtered listings, search, variance and overdue reports.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: no mutations are performed.
    - Every result is a frozen DTO; overdue flags are computed against the
      clock on each call.
    - Multi-row results have a deterministic order (movement date, then
      creation, then id; lines by line number; tasks by task number).

Failure modes:
    - Returns None or an empty list when nothing matches; never raises on
      absence of data.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from movement_kernel.domain.clock import Clock
from movement_kernel.domain.dtos import MovementInfo, MovementLineInfo, MovementTaskInfo
from movement_kernel.domain.types import (
    TERMINAL_MOVEMENT_STATUSES,
    TERMINAL_TASK_STATUSES,
    LineStatus,
    MovementStatus,
    MovementType,
    TaskStatus,
    TaskType,
)
from movement_kernel.models.movement import Movement, MovementLine, MovementTask
from movement_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50

_TERMINAL_MOVEMENT_VALUES = tuple(s.value for s in TERMINAL_MOVEMENT_STATUSES)
_TERMINAL_TASK_VALUES = tuple(s.value for s in TERMINAL_TASK_STATUSES)


class MovementSelector(BaseSelector[Movement]):
    """
    Selector for movement, line and task queries.

    Guarantees:
        - Eager loading: lines and tasks are loaded via selectinload.
        - Pagination: ``limit`` / ``offset`` apply after ordering.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # =========================================================================
    # Movements
    # =========================================================================

    def _movement_query(self):
        return select(Movement).options(
            selectinload(Movement.lines),
            selectinload(Movement.tasks),
        )

    @staticmethod
    def _movement_order():
        return (Movement.movement_date.desc(), Movement.created_at.desc(), Movement.id)

    def _to_infos(self, movements) -> list[MovementInfo]:
        now = self._clock.now()
        return [movement.to_dto(now) for movement in movements]

    def get_movement(self, movement_id: UUID) -> MovementInfo | None:
        movement = self.session.execute(
            self._movement_query().where(Movement.id == movement_id)
        ).scalar_one_or_none()
        if movement is None:
            return None
        return movement.to_dto(self._clock.now())

    def get_by_reference_number(self, reference_number: str) -> list[MovementInfo]:
        """Movements carrying ``reference_number`` (exact match)."""
        movements = self.session.execute(
            self._movement_query()
            .where(Movement.reference_number == reference_number)
            .order_by(*self._movement_order())
        ).scalars().all()
        return self._to_infos(movements)

    def _filters(
        self,
        warehouse_id: UUID | None,
        status: MovementStatus | None,
        movement_type: MovementType | None,
        created_by_id: UUID | None,
    ) -> list:
        conditions = []
        if warehouse_id is not None:
            conditions.append(Movement.warehouse_id == warehouse_id)
        if status is not None:
            conditions.append(Movement.status == status.value)
        if movement_type is not None:
            conditions.append(Movement.movement_type == movement_type.value)
        if created_by_id is not None:
            conditions.append(Movement.created_by_id == created_by_id)
        return conditions

    def list_movements(
        self,
        *,
        warehouse_id: UUID | None = None,
        status: MovementStatus | None = None,
        movement_type: MovementType | None = None,
        created_by_id: UUID | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[MovementInfo]:
        """Filtered, paginated movement listing (newest movement date first)."""
        conditions = self._filters(warehouse_id, status, movement_type, created_by_id)
        movements = self.session.execute(
            self._movement_query()
            .where(*conditions)
            .order_by(*self._movement_order())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return self._to_infos(movements)

    def count_movements(
        self,
        *,
        warehouse_id: UUID | None = None,
        status: MovementStatus | None = None,
        movement_type: MovementType | None = None,
        created_by_id: UUID | None = None,
    ) -> int:
        conditions = self._filters(warehouse_id, status, movement_type, created_by_id)
        return self.session.execute(
            select(func.count(Movement.id)).where(*conditions)
        ).scalar_one()

    def search(
        self,
        text: str,
        *,
        warehouse_id: UUID | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[MovementInfo]:
        """Case-insensitive substring search over reference number and notes."""
        pattern = f"%{text.strip()}%"
        stmt = self._movement_query().where(
            or_(
                Movement.reference_number.ilike(pattern),
                Movement.notes.ilike(pattern),
            )
        )
        if warehouse_id is not None:
            stmt = stmt.where(Movement.warehouse_id == warehouse_id)
        movements = self.session.execute(
            stmt.order_by(*self._movement_order()).limit(limit)
        ).scalars().all()
        return self._to_infos(movements)

    def overdue_movements(
        self,
        *,
        warehouse_id: UUID | None = None,
        as_of: datetime | None = None,
    ) -> list[MovementInfo]:
        """Non-terminal movements whose expected date is before today."""
        today = (as_of or self._clock.now()).date()
        stmt = self._movement_query().where(
            Movement.expected_date.is_not(None),
            Movement.expected_date < today,
            Movement.status.not_in(_TERMINAL_MOVEMENT_VALUES),
        )
        if warehouse_id is not None:
            stmt = stmt.where(Movement.warehouse_id == warehouse_id)
        movements = self.session.execute(
            stmt.order_by(Movement.expected_date, Movement.id)
        ).scalars().all()
        return self._to_infos(movements)

    # =========================================================================
    # Lines
    # =========================================================================

    def _line_query(self):
        return select(MovementLine).options(selectinload(MovementLine.movement))

    def _lines(self, stmt) -> list[MovementLineInfo]:
        rows = self.session.execute(
            stmt.order_by(MovementLine.movement_id, MovementLine.line_number)
        ).scalars().all()
        return [line.to_dto() for line in rows]

    def lines_by_movement(self, movement_id: UUID) -> list[MovementLineInfo]:
        return self._lines(self._line_query().where(MovementLine.movement_id == movement_id))

    def lines_by_item(
        self,
        item_id: UUID,
        *,
        status: LineStatus | None = None,
    ) -> list[MovementLineInfo]:
        stmt = self._line_query().where(MovementLine.item_id == item_id)
        if status is not None:
            stmt = stmt.where(MovementLine.status == status.value)
        return self._lines(stmt)

    def lines_by_status(self, status: LineStatus) -> list[MovementLineInfo]:
        return self._lines(self._line_query().where(MovementLine.status == status.value))

    def lines_with_variance(self, movement_id: UUID | None = None) -> list[MovementLineInfo]:
        """Lines whose actual quantity differs from the requested quantity."""
        stmt = self._line_query().where(
            MovementLine.actual_quantity != MovementLine.requested_quantity,
            MovementLine.status != LineStatus.CANCELLED.value,
        )
        if movement_id is not None:
            stmt = stmt.where(MovementLine.movement_id == movement_id)
        return self._lines(stmt)

    def short_picked_lines(self, movement_id: UUID | None = None) -> list[MovementLineInfo]:
        """Lines where less than the requested quantity was handled."""
        stmt = self._line_query().where(
            MovementLine.actual_quantity < MovementLine.requested_quantity,
            MovementLine.status != LineStatus.CANCELLED.value,
        )
        if movement_id is not None:
            stmt = stmt.where(MovementLine.movement_id == movement_id)
        return self._lines(stmt)

    # =========================================================================
    # Tasks
    # =========================================================================

    def _tasks(self, stmt) -> list[MovementTaskInfo]:
        rows = self.session.execute(
            stmt.order_by(MovementTask.movement_id, MovementTask.task_number)
        ).scalars().all()
        now = self._clock.now()
        return [task.to_dto(now) for task in rows]

    def tasks_by_movement(self, movement_id: UUID) -> list[MovementTaskInfo]:
        return self._tasks(select(MovementTask).where(MovementTask.movement_id == movement_id))

    def tasks_by_user(
        self,
        user_id: UUID,
        *,
        status: TaskStatus | None = None,
    ) -> list[MovementTaskInfo]:
        stmt = select(MovementTask).where(MovementTask.assigned_user_id == user_id)
        if status is not None:
            stmt = stmt.where(MovementTask.status == status.value)
        return self._tasks(stmt)

    def tasks_by_status(self, status: TaskStatus) -> list[MovementTaskInfo]:
        return self._tasks(select(MovementTask).where(MovementTask.status == status.value))

    def tasks_by_type(self, task_type: TaskType) -> list[MovementTaskInfo]:
        return self._tasks(select(MovementTask).where(MovementTask.task_type == task_type.value))

    def pending_tasks(self, user_id: UUID | None = None) -> list[MovementTaskInfo]:
        """Tasks not yet COMPLETED or CANCELLED, optionally for one assignee."""
        stmt = select(MovementTask).where(MovementTask.status.not_in(_TERMINAL_TASK_VALUES))
        if user_id is not None:
            stmt = stmt.where(MovementTask.assigned_user_id == user_id)
        return self._tasks(stmt)

    def overdue_tasks(self, as_of: datetime | None = None) -> list[MovementTaskInfo]:
        """Open tasks whose expected completion time has passed."""
        now = as_of or self._clock.now()
        rows = self.session.execute(
            select(MovementTask)
            .where(
                MovementTask.expected_completion_time.is_not(None),
                MovementTask.expected_completion_time < now,
                MovementTask.status.not_in(_TERMINAL_TASK_VALUES),
            )
            .order_by(MovementTask.expected_completion_time, MovementTask.id)
        ).scalars().all()
        return [task.to_dto(now) for task in rows]
