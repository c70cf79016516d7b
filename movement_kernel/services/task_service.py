"""
TaskService -- movement task CRUD and the task sub-state machine.

Responsibility:
    Adds, edits and removes tasks of an editable movement and drives tasks
    through assign -> start -> complete (or cancel).  Legality is decided by
    ``domain.workflow.plan_task_transition``.

Architecture position:
    Kernel > Services -- imperative shell.  Shares the movement-level
    helpers (edit guard, version stamping, conflict translation) with
    MovementService through MovementWriteService.

Invariants enforced:
    - Task CRUD only while the movement is DRAFT or PENDING.
    - No task transitions while the movement is COMPLETED or CANCELLED.
    - assign carries a user; cancel carries a non-empty reason.
    - start stamps actual_start_time, complete stamps
      actual_completion_time; duration is derived on read.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from movement_kernel.db.types import as_utc
from movement_kernel.domain.dtos import MovementTaskInfo, TaskSpec
from movement_kernel.domain.types import TaskAction
from movement_kernel.domain.validation import validate_task_priority
from movement_kernel.domain.workflow import TaskTransitionPlan, plan_task_transition
from movement_kernel.exceptions import (
    IllegalTransitionError,
    MissingAssigneeError,
    MissingReasonError,
    MovementLineNotFoundError,
)
from movement_kernel.logging_config import LogContext, get_logger
from movement_kernel.models.movement import MovementTask
from movement_kernel.services.base import MovementWriteService
from movement_kernel.services.movement_service import new_task_row

logger = get_logger("services.task_service")

_UNSET = object()


class TaskService(MovementWriteService):
    """Write side of movement tasks."""

    # =========================================================================
    # CRUD
    # =========================================================================

    def add_task(self, movement_id: UUID, spec: TaskSpec, *, actor_id: UUID) -> MovementTaskInfo:
        """Append a PENDING task to a DRAFT or PENDING movement."""
        movement = self._load_movement(movement_id)
        self._require_editable(movement)
        validate_task_priority(spec.priority)

        task = new_task_row(movement, spec, actor_id)
        movement.tasks.append(task)
        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_task_added",
            extra={
                "movement_id": str(movement.id),
                "task_id": str(task.id),
                "task_type": task.task_type,
                "priority": task.priority,
                "actor_id": str(actor_id),
            },
        )
        return task.to_dto(self._clock.now())

    def update_task(
        self,
        task_id: UUID,
        *,
        actor_id: UUID,
        priority: int | object = _UNSET,
        movement_line_id: UUID | None | object = _UNSET,
        location_id: UUID | None | object = _UNSET,
        scheduled_start_time: datetime | None | object = _UNSET,
        expected_completion_time: datetime | None | object = _UNSET,
        instructions: str | None | object = _UNSET,
    ) -> MovementTaskInfo:
        """Edit scheduling fields of a task on a DRAFT or PENDING movement.

        Assignment and status change only through ``transition_task``.
        """
        task = self._load_task(task_id)
        movement = task.movement
        self._require_editable(movement)
        if priority is not _UNSET:
            validate_task_priority(priority)
        if scheduled_start_time not in (_UNSET, None):
            scheduled_start_time = as_utc(scheduled_start_time)
        if expected_completion_time not in (_UNSET, None):
            expected_completion_time = as_utc(expected_completion_time)
        if movement_line_id not in (_UNSET, None) and not any(
            line.id == movement_line_id for line in movement.lines
        ):
            raise MovementLineNotFoundError(str(movement_line_id))

        updates = {
            "priority": priority,
            "movement_line_id": movement_line_id,
            "location_id": location_id,
            "scheduled_start_time": scheduled_start_time,
            "expected_completion_time": expected_completion_time,
            "instructions": instructions,
        }
        changed = [name for name, value in updates.items() if value is not _UNSET]
        for name in changed:
            setattr(task, name, updates[name])
        task.updated_by_id = actor_id

        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_task_updated",
            extra={
                "movement_id": str(movement.id),
                "task_id": str(task.id),
                "fields": changed,
                "actor_id": str(actor_id),
            },
        )
        return task.to_dto(self._clock.now())

    def remove_task(self, task_id: UUID, *, actor_id: UUID) -> None:
        """Delete a task of a DRAFT or PENDING movement."""
        task = self._load_task(task_id)
        movement = task.movement
        self._require_editable(movement)

        movement.tasks.remove(task)
        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_task_removed",
            extra={
                "movement_id": str(movement.id),
                "task_id": str(task_id),
                "actor_id": str(actor_id),
            },
        )

    # =========================================================================
    # State machine
    # =========================================================================

    def transition_task(
        self,
        task_id: UUID,
        action: TaskAction,
        *,
        actor_id: UUID,
        assignee_id: UUID | None = None,
        reason: str | None = None,
    ) -> MovementTaskInfo:
        """Apply ``action`` to a task.

        Raises:
            IllegalTransitionError: the movement is terminal or the action is
                not legal from the task's status.
            MissingAssigneeError: assign without ``assignee_id``.
            MissingReasonError: cancel without a non-empty ``reason``.
        """
        task = self._load_task(task_id)
        movement = task.movement

        with LogContext.bind(
            movement_id=str(movement.id), task_id=str(task.id), actor_id=str(actor_id),
        ):
            if movement.is_terminal:
                self._log_rejected(task, action, movement.status)
                raise IllegalTransitionError(
                    action=action.value,
                    current_state=movement.status,
                    entity_type="movement",
                    entity_id=str(movement.id),
                )

            try:
                plan = plan_task_transition(
                    task.status_enum,
                    action,
                    assignee_id=assignee_id,
                    reason=reason,
                    task_id=task.id,
                )
            except (IllegalTransitionError, MissingAssigneeError, MissingReasonError):
                self._log_rejected(task, action, task.status)
                raise

            self._apply(task, plan)
            task.updated_by_id = actor_id
            self._touch(movement, actor_id)
            self._flush(movement)

            logger.info(
                "movement_task_transitioned",
                extra={
                    "action": action.value,
                    "from_status": plan.from_status.value,
                    "to_status": plan.to_status.value,
                    "assigned_user_id": str(task.assigned_user_id) if task.assigned_user_id else None,
                },
            )
            return task.to_dto(self._clock.now())

    def assign_task(self, task_id: UUID, assignee_id: UUID, *, actor_id: UUID) -> MovementTaskInfo:
        return self.transition_task(
            task_id, TaskAction.ASSIGN, actor_id=actor_id, assignee_id=assignee_id,
        )

    def start_task(self, task_id: UUID, *, actor_id: UUID) -> MovementTaskInfo:
        return self.transition_task(task_id, TaskAction.START, actor_id=actor_id)

    def complete_task(self, task_id: UUID, *, actor_id: UUID) -> MovementTaskInfo:
        return self.transition_task(task_id, TaskAction.COMPLETE, actor_id=actor_id)

    def cancel_task(self, task_id: UUID, reason: str, *, actor_id: UUID) -> MovementTaskInfo:
        return self.transition_task(task_id, TaskAction.CANCEL, actor_id=actor_id, reason=reason)

    def get_task(self, task_id: UUID) -> MovementTaskInfo:
        return self._load_task(task_id).to_dto(self._clock.now())

    def _apply(self, task: MovementTask, plan: TaskTransitionPlan) -> None:
        now = self._clock.now()
        if plan.action == TaskAction.ASSIGN:
            task.assigned_user_id = plan.assignee_id
        elif plan.action == TaskAction.START:
            task.actual_start_time = now
        elif plan.action == TaskAction.COMPLETE:
            task.actual_completion_time = now
        elif plan.action == TaskAction.CANCEL:
            task.cancellation_reason = plan.reason
        task.status = plan.to_status.value

    def _log_rejected(self, task: MovementTask, action: TaskAction, current_state: str) -> None:
        logger.warning(
            "movement_task_transition_rejected",
            extra={
                "action": action.value,
                "current_state": current_state,
                "task_status": task.status,
            },
        )
