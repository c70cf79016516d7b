"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service, plus the movement-level helpers shared by
    MovementService and TaskService: loading rows, the edit guard, audit
    stamping and the optimistic-lock flush.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      rollback themselves.  The caller owns commit/rollback.
    - Any change to a movement, its lines or its tasks stamps the movement
      row, so the version counter moves and a concurrent writer holding
      the old version fails with ConcurrentModificationError.

Failure modes:
    - MovementNotFoundError / MovementLineNotFoundError /
      MovementTaskNotFoundError for unknown ids.
    - IllegalTransitionError(action="edit") when mutating a movement that
      is not DRAFT or PENDING.
    - ConcurrentModificationError when the conditional UPDATE matched no row.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from movement_kernel.db.base import Base
from movement_kernel.domain.clock import Clock, SystemClock
from movement_kernel.domain.types import MovementAction
from movement_kernel.domain.workflow import plan_movement_transition
from movement_kernel.exceptions import (
    ConcurrentModificationError,
    IllegalTransitionError,
    MovementLineNotFoundError,
    MovementNotFoundError,
    MovementTaskNotFoundError,
)
from movement_kernel.logging_config import get_logger
from movement_kernel.models.movement import Movement, MovementLine, MovementTask

logger = get_logger("services.base")

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``movement_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()


class MovementWriteService(BaseService[Movement]):
    """Shared plumbing for services that mutate a movement aggregate."""

    def _load_movement(self, movement_id: UUID) -> Movement:
        movement = self.session.get(Movement, movement_id)
        if movement is None:
            raise MovementNotFoundError(str(movement_id))
        return movement

    def _load_line(self, line_id: UUID) -> MovementLine:
        line = self.session.get(MovementLine, line_id)
        if line is None:
            raise MovementLineNotFoundError(str(line_id))
        return line

    def _load_task(self, task_id: UUID) -> MovementTask:
        task = self.session.get(MovementTask, task_id)
        if task is None:
            raise MovementTaskNotFoundError(str(task_id))
        return task

    def _require_editable(self, movement: Movement) -> None:
        """Raise IllegalTransitionError unless the movement is DRAFT or PENDING."""
        try:
            plan_movement_transition(
                movement.status_enum, MovementAction.EDIT, movement_id=movement.id,
            )
        except IllegalTransitionError:
            logger.warning(
                "movement_edit_rejected",
                extra={
                    "movement_id": str(movement.id),
                    "current_state": movement.status,
                },
            )
            raise

    def _touch(self, movement: Movement, actor_id: UUID) -> None:
        """Stamp the movement row so this write bumps its version."""
        movement.updated_by_id = actor_id
        movement.updated_at = self._clock.now()
        flag_modified(movement, "updated_at")

    def _flush(self, movement: Movement) -> None:
        """Flush, translating a lost optimistic-lock race.

        Raises:
            ConcurrentModificationError: another transaction changed the
                movement after it was read.
        """
        movement_id = str(movement.id)
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "movement_concurrent_modification",
                extra={"movement_id": movement_id},
            )
            raise ConcurrentModificationError("movement", movement_id) from exc
