"""
Movement workflows (``movement_kernel.domain.workflow``).

Responsibility
--------------
Pure state machine definitions for movements, movement lines and movement
tasks, plus the planning functions that decide whether an action is legal
from a given state.  This is the single source of truth for "which actions
are allowed from which status"; services and UI callers query it instead of
re-deriving the rules.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``models/``, ``services/`` or ``selectors/``.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_states`` and ``terminal_states`` are members of ``states``.
* Terminal states have no outgoing transitions.
* ``complete`` on a movement is legal only from IN_PROGRESS, so inventory is
  applied at most once per movement.
* hold/cancel (movement) and cancel (task) require a non-empty reason;
  task assign requires a user.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from movement_kernel.domain.types import (
    LineAction,
    LineStatus,
    MovementAction,
    MovementStatus,
    TaskAction,
    TaskStatus,
)
from movement_kernel.exceptions import (
    IllegalTransitionError,
    MissingAssigneeError,
    MissingReasonError,
)
from movement_kernel.logging_config import get_logger

logger = get_logger("domain.workflow")


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only -- the planning functions below evaluate it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``to_state=None`` removes the record (hard delete).
    ``applies_inventory=True`` marks the transition that emits the
    inventory-apply intent.  ``restores_previous=True`` means the target is
    the state recorded before the record was parked (release after hold);
    ``to_state`` is then the fallback.
    """
    from_state: str
    to_state: str | None
    action: str
    guard: Guard | None = None
    applies_inventory: bool = False
    restores_previous: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle."""
    name: str
    description: str
    initial_states: tuple[str, ...]
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        for state in self.initial_states + self.terminal_states:
            if state not in known:
                raise ValueError(f"{self.name}: unknown state {state!r}")
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in known:
                raise ValueError(f"{self.name}: unknown from_state {t.from_state!r}")
            if t.to_state is not None and t.to_state not in known:
                raise ValueError(f"{self.name}: unknown to_state {t.to_state!r}")
            if t.from_state in self.terminal_states and t.to_state is not None:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state!r} cannot move to {t.to_state!r}"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(f"{self.name}: ambiguous transition {key}")
            seen.add(key)

    def find(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` from ``from_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Legal actions from ``state`` in declaration order."""
        actions: list[str] = []
        for t in self.transitions:
            if t.from_state == state and t.action not in actions:
                actions.append(t.action)
        return tuple(actions)

    def sources_of(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` is legal."""
        return tuple(t.from_state for t in self.transitions if t.action == action)


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

REASON_PROVIDED = Guard(
    name="reason_provided",
    description="A non-empty reason is recorded for the audit trail",
)

ASSIGNEE_PROVIDED = Guard(
    name="assignee_provided",
    description="A user reference is supplied for the assignment",
)


# -----------------------------------------------------------------------------
# Movement Workflow
# -----------------------------------------------------------------------------

_M = MovementStatus
_MA = MovementAction

MOVEMENT_WORKFLOW = Workflow(
    name="movement",
    description="Inventory movement lifecycle",
    initial_states=(_M.DRAFT.value, _M.PENDING.value),
    states=tuple(s.value for s in MovementStatus),
    transitions=(
        Transition(_M.DRAFT.value, _M.IN_PROGRESS.value, action=_MA.START.value),
        Transition(_M.PENDING.value, _M.IN_PROGRESS.value, action=_MA.START.value),
        Transition(
            _M.IN_PROGRESS.value, _M.COMPLETED.value,
            action=_MA.COMPLETE.value, applies_inventory=True,
        ),
        Transition(_M.IN_PROGRESS.value, _M.ON_HOLD.value, action=_MA.HOLD.value, guard=REASON_PROVIDED),
        Transition(_M.PENDING.value, _M.ON_HOLD.value, action=_MA.HOLD.value, guard=REASON_PROVIDED),
        Transition(
            _M.ON_HOLD.value, _M.IN_PROGRESS.value,
            action=_MA.RELEASE.value, restores_previous=True,
        ),
        Transition(_M.PENDING.value, _M.CANCELLED.value, action=_MA.CANCEL.value, guard=REASON_PROVIDED),
        Transition(_M.IN_PROGRESS.value, _M.CANCELLED.value, action=_MA.CANCEL.value, guard=REASON_PROVIDED),
        Transition(_M.ON_HOLD.value, _M.CANCELLED.value, action=_MA.CANCEL.value, guard=REASON_PROVIDED),
        Transition(_M.DRAFT.value, None, action=_MA.DELETE.value),
        Transition(_M.CANCELLED.value, None, action=_MA.DELETE.value),
        Transition(_M.DRAFT.value, _M.DRAFT.value, action=_MA.EDIT.value),
        Transition(_M.PENDING.value, _M.PENDING.value, action=_MA.EDIT.value),
    ),
    terminal_states=(_M.COMPLETED.value, _M.CANCELLED.value),
)

# States a hold may be released back into.
_RESUMABLE_STATES = frozenset({_M.PENDING, _M.IN_PROGRESS})

logger.info(
    "movement_workflow_registered",
    extra={
        "workflow_name": MOVEMENT_WORKFLOW.name,
        "state_count": len(MOVEMENT_WORKFLOW.states),
        "transition_count": len(MOVEMENT_WORKFLOW.transitions),
    },
)


# -----------------------------------------------------------------------------
# Line Workflow
# -----------------------------------------------------------------------------

_L = LineStatus
_LA = LineAction

LINE_WORKFLOW = Workflow(
    name="movement_line",
    description="Movement line execution",
    initial_states=(_L.PENDING.value,),
    states=tuple(s.value for s in LineStatus),
    transitions=(
        Transition(_L.PENDING.value, _L.PICKED.value, action=_LA.PICK.value),
        Transition(_L.PICKED.value, _L.IN_TRANSIT.value, action=_LA.DISPATCH.value),
        Transition(_L.PENDING.value, _L.COMPLETED.value, action=_LA.COMPLETE.value),
        Transition(_L.PICKED.value, _L.COMPLETED.value, action=_LA.COMPLETE.value),
        Transition(_L.IN_TRANSIT.value, _L.COMPLETED.value, action=_LA.COMPLETE.value),
        Transition(_L.PENDING.value, _L.CANCELLED.value, action=_LA.CANCEL.value),
        Transition(_L.PICKED.value, _L.CANCELLED.value, action=_LA.CANCEL.value),
        Transition(_L.IN_TRANSIT.value, _L.CANCELLED.value, action=_LA.CANCEL.value),
    ),
    terminal_states=(_L.COMPLETED.value, _L.CANCELLED.value),
)


# -----------------------------------------------------------------------------
# Task Workflow
# -----------------------------------------------------------------------------

_T = TaskStatus
_TA = TaskAction

TASK_WORKFLOW = Workflow(
    name="movement_task",
    description="Movement task execution",
    initial_states=(_T.PENDING.value,),
    states=tuple(s.value for s in TaskStatus),
    transitions=(
        Transition(_T.PENDING.value, _T.ASSIGNED.value, action=_TA.ASSIGN.value, guard=ASSIGNEE_PROVIDED),
        Transition(_T.ASSIGNED.value, _T.IN_PROGRESS.value, action=_TA.START.value),
        Transition(_T.IN_PROGRESS.value, _T.COMPLETED.value, action=_TA.COMPLETE.value),
        Transition(_T.PENDING.value, _T.CANCELLED.value, action=_TA.CANCEL.value, guard=REASON_PROVIDED),
        Transition(_T.ASSIGNED.value, _T.CANCELLED.value, action=_TA.CANCEL.value, guard=REASON_PROVIDED),
        Transition(_T.IN_PROGRESS.value, _T.CANCELLED.value, action=_TA.CANCEL.value, guard=REASON_PROVIDED),
    ),
    terminal_states=(_T.COMPLETED.value, _T.CANCELLED.value),
)


# -----------------------------------------------------------------------------
# Plans
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class MovementTransitionPlan:
    """Outcome of a legal movement action, before it is persisted."""
    action: MovementAction
    from_status: MovementStatus
    to_status: MovementStatus | None
    applies_inventory: bool = False
    reason: str | None = None

    @property
    def removes_movement(self) -> bool:
        return self.to_status is None


@dataclass(frozen=True)
class TaskTransitionPlan:
    """Outcome of a legal task action, before it is persisted."""
    action: TaskAction
    from_status: TaskStatus
    to_status: TaskStatus
    assignee_id: UUID | None = None
    reason: str | None = None


def _normalize_reason(reason: str | None) -> str | None:
    if reason is None:
        return None
    reason = reason.strip()
    return reason or None


def _resolve(
    workflow: Workflow,
    current: str,
    action: str,
    entity_type: str,
    entity_id: UUID | None,
) -> Transition:
    transition = workflow.find(current, action)
    if transition is None:
        raise IllegalTransitionError(
            action=action,
            current_state=current,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id else None,
        )
    return transition


def plan_movement_transition(
    current: MovementStatus,
    action: MovementAction,
    *,
    reason: str | None = None,
    held_from: MovementStatus | None = None,
    movement_id: UUID | None = None,
) -> MovementTransitionPlan:
    """Decide the outcome of ``action`` on a movement in state ``current``.

    Raises:
        IllegalTransitionError: ``action`` is not legal from ``current``.
        MissingReasonError: hold/cancel without a non-empty reason.
    """
    transition = _resolve(MOVEMENT_WORKFLOW, current.value, action.value, "movement", movement_id)
    reason = _normalize_reason(reason)

    if transition.guard is REASON_PROVIDED and reason is None:
        raise MissingReasonError(
            action=action.value,
            entity_type="movement",
            entity_id=str(movement_id) if movement_id else None,
        )

    if transition.to_state is None:
        target = None
    elif transition.restores_previous and held_from in _RESUMABLE_STATES:
        target = held_from
    else:
        target = MovementStatus(transition.to_state)

    return MovementTransitionPlan(
        action=action,
        from_status=current,
        to_status=target,
        applies_inventory=transition.applies_inventory,
        reason=reason,
    )


def plan_task_transition(
    current: TaskStatus,
    action: TaskAction,
    *,
    assignee_id: UUID | None = None,
    reason: str | None = None,
    task_id: UUID | None = None,
) -> TaskTransitionPlan:
    """Decide the outcome of ``action`` on a task in state ``current``.

    Raises:
        IllegalTransitionError: ``action`` is not legal from ``current``.
        MissingAssigneeError: assign without a user.
        MissingReasonError: cancel without a non-empty reason.
    """
    transition = _resolve(TASK_WORKFLOW, current.value, action.value, "task", task_id)
    reason = _normalize_reason(reason)

    if transition.guard is ASSIGNEE_PROVIDED and assignee_id is None:
        raise MissingAssigneeError(str(task_id) if task_id else None)
    if transition.guard is REASON_PROVIDED and reason is None:
        raise MissingReasonError(
            action=action.value,
            entity_type="task",
            entity_id=str(task_id) if task_id else None,
        )

    return TaskTransitionPlan(
        action=action,
        from_status=current,
        to_status=TaskStatus(transition.to_state),
        assignee_id=assignee_id,
        reason=reason,
    )


def plan_line_transition(
    current: LineStatus,
    action: LineAction,
    *,
    line_id: UUID | None = None,
) -> LineStatus:
    """Return the target line status or raise IllegalTransitionError."""
    transition = _resolve(LINE_WORKFLOW, current.value, action.value, "line", line_id)
    return LineStatus(transition.to_state)


def allowed_movement_actions(status: MovementStatus) -> tuple[MovementAction, ...]:
    """Legal movement actions from ``status`` -- what a UI should offer."""
    return tuple(MovementAction(a) for a in MOVEMENT_WORKFLOW.actions_from(status.value))


def allowed_task_actions(status: TaskStatus) -> tuple[TaskAction, ...]:
    return tuple(TaskAction(a) for a in TASK_WORKFLOW.actions_from(status.value))


def allowed_line_actions(status: LineStatus) -> tuple[LineAction, ...]:
    return tuple(LineAction(a) for a in LINE_WORKFLOW.actions_from(status.value))


def is_editable(status: MovementStatus) -> bool:
    """Only DRAFT and PENDING movements accept header/line/task edits."""
    return MOVEMENT_WORKFLOW.find(status.value, MovementAction.EDIT.value) is not None
