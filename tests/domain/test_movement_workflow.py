"""
Tests for the movement, line and task state machines.

These tests verify:
- Every legal movement action lands in the documented state
- Illegal actions raise IllegalTransitionError with action and state
- hold / cancel require a reason; task assign requires a user
- release returns to the state the movement was held from
- allowed_*_actions expose exactly the legal action sets
- Workflow definitions reject malformed transition tables
"""

from uuid import uuid4

import pytest

from movement_kernel.domain.types import (
    LineAction,
    LineStatus,
    MovementAction,
    MovementStatus,
    TaskAction,
    TaskStatus,
)
from movement_kernel.domain.workflow import (
    LINE_WORKFLOW,
    MOVEMENT_WORKFLOW,
    TASK_WORKFLOW,
    Transition,
    Workflow,
    allowed_line_actions,
    allowed_movement_actions,
    allowed_task_actions,
    is_editable,
    plan_line_transition,
    plan_movement_transition,
    plan_task_transition,
)
from movement_kernel.exceptions import (
    IllegalTransitionError,
    MissingAssigneeError,
    MissingReasonError,
)

M = MovementStatus
A = MovementAction


class TestMovementTransitions:
    """Legal movement actions and their targets."""

    @pytest.mark.parametrize("start_state", [M.DRAFT, M.PENDING])
    def test_start_from_entry_states(self, start_state):
        plan = plan_movement_transition(start_state, A.START)
        assert plan.to_status == M.IN_PROGRESS
        assert plan.from_status == start_state
        assert not plan.applies_inventory

    def test_complete_only_from_in_progress_applies_inventory(self):
        plan = plan_movement_transition(M.IN_PROGRESS, A.COMPLETE)
        assert plan.to_status == M.COMPLETED
        assert plan.applies_inventory

    @pytest.mark.parametrize(
        "state", [M.DRAFT, M.PENDING, M.ON_HOLD, M.COMPLETED, M.CANCELLED]
    )
    def test_complete_rejected_outside_in_progress(self, state):
        with pytest.raises(IllegalTransitionError) as exc_info:
            plan_movement_transition(state, A.COMPLETE)
        assert exc_info.value.action == "complete"
        assert exc_info.value.current_state == state.value

    @pytest.mark.parametrize("state", [M.PENDING, M.IN_PROGRESS])
    def test_hold_requires_reason(self, state):
        with pytest.raises(MissingReasonError):
            plan_movement_transition(state, A.HOLD)
        with pytest.raises(MissingReasonError):
            plan_movement_transition(state, A.HOLD, reason="   ")

        plan = plan_movement_transition(state, A.HOLD, reason=" forklift down ")
        assert plan.to_status == M.ON_HOLD
        assert plan.reason == "forklift down"

    def test_hold_rejected_from_draft(self):
        with pytest.raises(IllegalTransitionError):
            plan_movement_transition(M.DRAFT, A.HOLD, reason="x")

    @pytest.mark.parametrize("held_from", [M.PENDING, M.IN_PROGRESS])
    def test_release_returns_to_held_from_state(self, held_from):
        plan = plan_movement_transition(M.ON_HOLD, A.RELEASE, held_from=held_from)
        assert plan.to_status == held_from

    def test_release_defaults_to_in_progress(self):
        plan = plan_movement_transition(M.ON_HOLD, A.RELEASE)
        assert plan.to_status == M.IN_PROGRESS

    def test_release_ignores_non_resumable_held_from(self):
        plan = plan_movement_transition(M.ON_HOLD, A.RELEASE, held_from=M.COMPLETED)
        assert plan.to_status == M.IN_PROGRESS

    @pytest.mark.parametrize("state", [M.PENDING, M.IN_PROGRESS, M.ON_HOLD])
    def test_cancel_with_reason(self, state):
        plan = plan_movement_transition(state, A.CANCEL, reason="customer withdrew")
        assert plan.to_status == M.CANCELLED
        assert plan.reason == "customer withdrew"

    @pytest.mark.parametrize("state", [M.PENDING, M.IN_PROGRESS, M.ON_HOLD])
    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_cancel_without_reason_rejected(self, state, reason):
        with pytest.raises(MissingReasonError) as exc_info:
            plan_movement_transition(state, A.CANCEL, reason=reason)
        assert exc_info.value.action == "cancel"

    @pytest.mark.parametrize("state", [M.DRAFT, M.COMPLETED, M.CANCELLED])
    def test_cancel_rejected_from_draft_and_terminal_states(self, state):
        with pytest.raises(IllegalTransitionError):
            plan_movement_transition(state, A.CANCEL, reason="x")

    @pytest.mark.parametrize("state", [M.DRAFT, M.CANCELLED])
    def test_delete_removes_movement(self, state):
        plan = plan_movement_transition(state, A.DELETE)
        assert plan.to_status is None
        assert plan.removes_movement

    @pytest.mark.parametrize("state", [M.PENDING, M.IN_PROGRESS, M.ON_HOLD, M.COMPLETED])
    def test_delete_rejected_elsewhere(self, state):
        with pytest.raises(IllegalTransitionError):
            plan_movement_transition(state, A.DELETE)

    @pytest.mark.parametrize("state", [M.DRAFT, M.PENDING])
    def test_edit_keeps_state(self, state):
        assert plan_movement_transition(state, A.EDIT).to_status == state
        assert is_editable(state)

    @pytest.mark.parametrize("state", [M.IN_PROGRESS, M.ON_HOLD, M.COMPLETED, M.CANCELLED])
    def test_edit_rejected_outside_draft_and_pending(self, state):
        assert not is_editable(state)
        with pytest.raises(IllegalTransitionError):
            plan_movement_transition(state, A.EDIT)

    def test_error_carries_movement_id(self):
        movement_id = uuid4()
        with pytest.raises(IllegalTransitionError) as exc_info:
            plan_movement_transition(M.COMPLETED, A.START, movement_id=movement_id)
        assert exc_info.value.entity_id == str(movement_id)
        assert exc_info.value.code == "ILLEGAL_TRANSITION"


class TestAllowedActions:
    """allowed_*_actions mirror the transition tables."""

    def test_movement_action_sets(self):
        assert set(allowed_movement_actions(M.DRAFT)) == {A.START, A.DELETE, A.EDIT}
        assert set(allowed_movement_actions(M.PENDING)) == {A.START, A.HOLD, A.CANCEL, A.EDIT}
        assert set(allowed_movement_actions(M.IN_PROGRESS)) == {A.COMPLETE, A.HOLD, A.CANCEL}
        assert set(allowed_movement_actions(M.ON_HOLD)) == {A.RELEASE, A.CANCEL}
        assert allowed_movement_actions(M.COMPLETED) == ()
        assert allowed_movement_actions(M.CANCELLED) == (A.DELETE,)

    def test_every_allowed_action_plans(self):
        for state in MovementStatus:
            for action in allowed_movement_actions(state):
                plan_movement_transition(state, action, reason="because")

    def test_task_action_sets(self):
        assert set(allowed_task_actions(TaskStatus.PENDING)) == {TaskAction.ASSIGN, TaskAction.CANCEL}
        assert set(allowed_task_actions(TaskStatus.ASSIGNED)) == {TaskAction.START, TaskAction.CANCEL}
        assert set(allowed_task_actions(TaskStatus.IN_PROGRESS)) == {
            TaskAction.COMPLETE, TaskAction.CANCEL,
        }
        assert allowed_task_actions(TaskStatus.COMPLETED) == ()
        assert allowed_task_actions(TaskStatus.CANCELLED) == ()

    def test_line_action_sets(self):
        assert set(allowed_line_actions(LineStatus.PENDING)) == {
            LineAction.PICK, LineAction.COMPLETE, LineAction.CANCEL,
        }
        assert allowed_line_actions(LineStatus.COMPLETED) == ()


class TestTaskTransitions:
    """Task sub-state machine."""

    def test_happy_path(self):
        user = uuid4()
        plan = plan_task_transition(TaskStatus.PENDING, TaskAction.ASSIGN, assignee_id=user)
        assert plan.to_status == TaskStatus.ASSIGNED
        assert plan.assignee_id == user
        assert plan_task_transition(TaskStatus.ASSIGNED, TaskAction.START).to_status == TaskStatus.IN_PROGRESS
        assert plan_task_transition(TaskStatus.IN_PROGRESS, TaskAction.COMPLETE).to_status == TaskStatus.COMPLETED

    def test_assign_requires_user(self):
        with pytest.raises(MissingAssigneeError):
            plan_task_transition(TaskStatus.PENDING, TaskAction.ASSIGN)

    def test_start_requires_assignment(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            plan_task_transition(TaskStatus.PENDING, TaskAction.START)
        assert exc_info.value.entity_type == "task"

    @pytest.mark.parametrize(
        "state", [TaskStatus.PENDING, TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS]
    )
    def test_cancel_from_any_open_state(self, state):
        plan = plan_task_transition(state, TaskAction.CANCEL, reason="no longer needed")
        assert plan.to_status == TaskStatus.CANCELLED

    def test_cancel_requires_reason(self):
        with pytest.raises(MissingReasonError):
            plan_task_transition(TaskStatus.ASSIGNED, TaskAction.CANCEL)

    @pytest.mark.parametrize("state", [TaskStatus.COMPLETED, TaskStatus.CANCELLED])
    def test_terminal_tasks_are_frozen(self, state):
        for action in TaskAction:
            with pytest.raises(IllegalTransitionError):
                plan_task_transition(state, action, assignee_id=uuid4(), reason="x")


class TestLineTransitions:
    """Line sub-state machine."""

    def test_pick_dispatch_complete(self):
        assert plan_line_transition(LineStatus.PENDING, LineAction.PICK) == LineStatus.PICKED
        assert plan_line_transition(LineStatus.PICKED, LineAction.DISPATCH) == LineStatus.IN_TRANSIT
        assert plan_line_transition(LineStatus.IN_TRANSIT, LineAction.COMPLETE) == LineStatus.COMPLETED

    def test_dispatch_requires_pick(self):
        with pytest.raises(IllegalTransitionError):
            plan_line_transition(LineStatus.PENDING, LineAction.DISPATCH)

    def test_cancelled_line_cannot_complete(self):
        with pytest.raises(IllegalTransitionError):
            plan_line_transition(LineStatus.CANCELLED, LineAction.COMPLETE)


class TestWorkflowDefinitions:
    """Structural checks on Workflow values."""

    @pytest.mark.parametrize("workflow", [MOVEMENT_WORKFLOW, LINE_WORKFLOW, TASK_WORKFLOW])
    def test_terminal_states_have_no_outgoing_moves(self, workflow):
        for transition in workflow.transitions:
            if transition.from_state in workflow.terminal_states:
                assert transition.to_state is None

    def test_sources_of_complete(self):
        assert MOVEMENT_WORKFLOW.sources_of("complete") == ("in_progress",)

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown to_state"):
            Workflow(
                name="broken",
                description="",
                initial_states=("a",),
                states=("a", "b"),
                transitions=(Transition("a", "c", action="go"),),
            )

    def test_ambiguous_transition_rejected(self):
        with pytest.raises(ValueError, match="ambiguous"):
            Workflow(
                name="broken",
                description="",
                initial_states=("a",),
                states=("a", "b"),
                transitions=(
                    Transition("a", "b", action="go"),
                    Transition("a", "a", action="go"),
                ),
            )

    def test_terminal_state_cannot_move(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                name="broken",
                description="",
                initial_states=("a",),
                states=("a", "b"),
                transitions=(Transition("b", "a", action="reopen"),),
                terminal_states=("b",),
            )
