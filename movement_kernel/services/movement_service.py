"""
MovementService -- movement lifecycle, header edits and line CRUD.

Responsibility:
    Creates movements, drives them through the movement state machine,
    edits headers and lines while the movement is editable, and hands the
    inventory-apply intent to the InventorySink exactly once on completion.

Architecture position:
    Kernel > Services -- imperative shell.  Legality of every action is
    decided by ``domain.workflow.plan_movement_transition``; this service
    only applies the resulting plan.

Invariants enforced:
    - ``complete`` is planned only from IN_PROGRESS, and the sink is called
      after the conditional UPDATE of the movement row succeeded, so a
      movement applies inventory at most once.
    - hold / cancel carry a non-empty reason.
    - Header, line and task edits are accepted only in DRAFT or PENDING.
    - ``requested_quantity`` is set at line creation and never changed.
    - A failed operation raises before mutating, or raises from flush and
      leaves rollback to the caller.

Failure modes:
    - Validation errors (MissingLocationError, EmptyLineSetError,
      InvalidQuantityError, UnconfiguredMovementTypeError,
      MissingReferenceNumberError, InvalidTaskPriorityError).
    - InsufficientStockError (recoverable) when the pre-check finds a
      shortage and the policy rejects it.
    - IllegalTransitionError / MissingReasonError from the state machine.
    - NotFound errors for unknown movement / line / task / directory ids.
    - ConcurrentModificationError (retryable) on a lost optimistic-lock race.

Audit relevance:
    Every state change logs movement_id, action, from/to status and actor.
    Rejected transitions log at WARNING.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from movement_kernel.db.types import as_utc
from movement_kernel.domain.clock import Clock
from movement_kernel.domain.collaborators import (
    InventorySink,
    ItemDirectory,
    LocationDirectory,
)
from movement_kernel.domain.dtos import (
    DEFAULT_UNIT_OF_MEASURE,
    InventoryDelta,
    LineSpec,
    MovementCompletion,
    MovementInfo,
    MovementLineInfo,
    StockCheckResult,
    TaskSpec,
)
from movement_kernel.domain.type_config import (
    MovementPolicy,
    MovementTypeConfig,
    MovementTypeRegistry,
)
from movement_kernel.domain.types import (
    TERMINAL_LINE_STATUSES,
    TERMINAL_TASK_STATUSES,
    LineAction,
    LineStatus,
    MovementAction,
    MovementPriority,
    MovementStatus,
    MovementType,
    TaskStatus,
)
from movement_kernel.domain.validation import (
    suggest_tasks,
    validate_actual_quantity,
    validate_creation,
    validate_locations,
    validate_reference_number,
    validate_requested_quantity,
    validate_task_specs,
)
from movement_kernel.domain.workflow import (
    MOVEMENT_WORKFLOW,
    MovementTransitionPlan,
    allowed_movement_actions,
    plan_line_transition,
    plan_movement_transition,
)
from movement_kernel.exceptions import (
    EmptyLineSetError,
    IllegalTransitionError,
    ItemNotFoundError,
    LocationNotFoundError,
    MissingReasonError,
    MovementLineNotFoundError,
    WarehouseNotFoundError,
)
from movement_kernel.logging_config import LogContext, get_logger
from movement_kernel.models.movement import Movement, MovementLine, MovementTask
from movement_kernel.services.base import MovementWriteService
from movement_kernel.services.stock_check import StockAvailabilityChecker

logger = get_logger("services.movement_service")

# Marker for "argument not supplied" in partial updates.
_UNSET = object()


class MovementService(MovementWriteService):
    """Write side of the movement aggregate.

    Contract:
        Receives a Session and flushes; never commits.  Returns frozen
        MovementInfo / MovementLineInfo snapshots, never ORM rows.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT reserve stock; the pre-check is advisory.
        - Does NOT apply inventory itself; the InventorySink does.
    """

    def __init__(
        self,
        session: Session,
        registry: MovementTypeRegistry,
        *,
        clock: Clock | None = None,
        policy: MovementPolicy | None = None,
        stock_checker: StockAvailabilityChecker | None = None,
        inventory_sink: InventorySink | None = None,
        location_directory: LocationDirectory | None = None,
        item_directory: ItemDirectory | None = None,
    ):
        super().__init__(session, clock)
        self._registry = registry
        self._policy = policy or MovementPolicy()
        self._stock_checker = stock_checker
        self._sink = inventory_sink
        self._locations = location_directory
        self._items = item_directory

    # =========================================================================
    # Creation
    # =========================================================================

    def create_movement(
        self,
        movement_type: MovementType,
        warehouse_id: UUID,
        lines: Sequence[LineSpec],
        *,
        actor_id: UUID,
        priority: MovementPriority = MovementPriority.NORMAL,
        status: MovementStatus = MovementStatus.PENDING,
        source_location_id: UUID | None = None,
        destination_location_id: UUID | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
        movement_date: date | None = None,
        expected_date: date | None = None,
        scheduled_date: date | None = None,
        tasks: Sequence[TaskSpec] = (),
        include_suggested_tasks: bool = False,
        allow_insufficient_stock: bool = False,
    ) -> MovementInfo:
        """Validate and persist a new movement in DRAFT or PENDING.

        Preconditions:
            - ``status`` is an entry state (DRAFT or PENDING).
            - ``movement_type`` is configured.

        Postconditions:
            - One Movement row with its lines (numbered from 1) and tasks,
              flushed to the session.

        Args:
            include_suggested_tasks: Append one PENDING task per suggested
                task type of the movement type, after ``tasks``.
            allow_insufficient_stock: Proceed (with a WARNING log) when the
                pre-check finds a shortage even if the policy rejects it.

        Raises:
            IllegalTransitionError: ``status`` is not an entry state.
            UnconfiguredMovementTypeError, MissingLocationError,
            EmptyLineSetError, InvalidQuantityError,
            MissingReferenceNumberError, InvalidTaskPriorityError.
            WarehouseNotFoundError, LocationNotFoundError, ItemNotFoundError:
                only when the corresponding directory is configured.
            MovementLineNotFoundError: a task references a line id that is
                not part of this movement.
            InsufficientStockError: pre-check shortage under a rejecting policy.
        """
        if status.value not in MOVEMENT_WORKFLOW.initial_states:
            raise IllegalTransitionError(
                action="create", current_state=status.value, entity_type="movement",
            )

        config = self._registry[movement_type]
        validate_creation(config, source_location_id, destination_location_id, lines)
        validate_reference_number(config, reference_number, self._policy)
        task_specs = tuple(tasks)
        if include_suggested_tasks:
            task_specs += suggest_tasks(config)
        validate_task_specs(task_specs)

        self._check_warehouse(warehouse_id)
        self._check_location(source_location_id)
        self._check_location(destination_location_id)
        units = [self._resolve_unit(line, index) for index, line in enumerate(lines)]

        stock = self._check_stock(config, lines, source_location_id, allow_insufficient_stock)

        movement = Movement(
            id=uuid4(),
            movement_type=movement_type.value,
            priority=priority.value,
            status=status.value,
            warehouse_id=warehouse_id,
            source_location_id=source_location_id,
            destination_location_id=destination_location_id,
            reference_number=reference_number,
            notes=notes,
            movement_date=movement_date or self._clock.today(),
            expected_date=expected_date,
            scheduled_date=scheduled_date,
            last_line_number=0,
            last_task_number=0,
            created_by_id=actor_id,
        )
        for line, unit in zip(lines, units):
            movement.lines.append(self._new_line(movement, line, unit, actor_id))
        for spec in task_specs:
            movement.tasks.append(new_task_row(movement, spec, actor_id))

        self.session.add(movement)
        self._flush(movement)

        logger.info(
            "movement_created",
            extra={
                "movement_id": str(movement.id),
                "movement_type": movement_type.value,
                "status": status.value,
                "warehouse_id": str(warehouse_id),
                "line_count": len(lines),
                "task_count": len(task_specs),
                "stock_check": stock.outcome.value,
                "actor_id": str(actor_id),
            },
        )
        return movement.to_dto(self._clock.now())

    # =========================================================================
    # State machine
    # =========================================================================

    def transition(
        self,
        movement_id: UUID,
        action: MovementAction,
        *,
        actor_id: UUID,
        reason: str | None = None,
        allow_insufficient_stock: bool = False,
    ) -> MovementInfo | None:
        """Apply ``action`` to a movement.

        Returns the updated snapshot, or None when the action deleted the
        movement.  ``edit`` only checks that the movement is editable.
        """
        movement = self._load_movement(movement_id)
        with LogContext.bind(movement_id=str(movement.id), actor_id=str(actor_id)):
            plan = self._plan(movement, action, reason)

            if action == MovementAction.START:
                self._apply_start(movement, plan, actor_id, allow_insufficient_stock)
            elif action == MovementAction.COMPLETE:
                self._apply_complete(movement, plan, actor_id)
            elif action == MovementAction.HOLD:
                self._apply_hold(movement, plan, actor_id)
            elif action == MovementAction.RELEASE:
                self._apply_release(movement, plan, actor_id)
            elif action == MovementAction.CANCEL:
                self._apply_cancel(movement, plan, actor_id)
            elif action == MovementAction.DELETE:
                self._apply_delete(movement, plan, actor_id)
                return None

            return movement.to_dto(self._clock.now())

    def start(
        self,
        movement_id: UUID,
        *,
        actor_id: UUID,
        allow_insufficient_stock: bool = False,
    ) -> MovementInfo:
        return self.transition(
            movement_id,
            MovementAction.START,
            actor_id=actor_id,
            allow_insufficient_stock=allow_insufficient_stock,
        )

    def complete(self, movement_id: UUID, *, actor_id: UUID) -> MovementInfo:
        return self.transition(movement_id, MovementAction.COMPLETE, actor_id=actor_id)

    def hold(self, movement_id: UUID, reason: str, *, actor_id: UUID) -> MovementInfo:
        return self.transition(movement_id, MovementAction.HOLD, actor_id=actor_id, reason=reason)

    def release(self, movement_id: UUID, *, actor_id: UUID) -> MovementInfo:
        return self.transition(movement_id, MovementAction.RELEASE, actor_id=actor_id)

    def cancel(self, movement_id: UUID, reason: str, *, actor_id: UUID) -> MovementInfo:
        return self.transition(movement_id, MovementAction.CANCEL, actor_id=actor_id, reason=reason)

    def delete_movement(self, movement_id: UUID, *, actor_id: UUID) -> None:
        self.transition(movement_id, MovementAction.DELETE, actor_id=actor_id)

    def allowed_actions(self, movement_id: UUID) -> tuple[MovementAction, ...]:
        """Legal actions for the movement's current status."""
        return allowed_movement_actions(self._load_movement(movement_id).status_enum)

    def get_movement(self, movement_id: UUID) -> MovementInfo:
        return self._load_movement(movement_id).to_dto(self._clock.now())

    def _plan(
        self,
        movement: Movement,
        action: MovementAction,
        reason: str | None,
    ) -> MovementTransitionPlan:
        try:
            return plan_movement_transition(
                movement.status_enum,
                action,
                reason=reason,
                held_from=movement.held_from_enum,
                movement_id=movement.id,
            )
        except (IllegalTransitionError, MissingReasonError) as exc:
            logger.warning(
                "movement_transition_rejected",
                extra={
                    "action": action.value,
                    "current_state": movement.status,
                    "error_code": exc.code,
                },
            )
            raise

    def _apply_start(
        self,
        movement: Movement,
        plan: MovementTransitionPlan,
        actor_id: UUID,
        allow_insufficient_stock: bool,
    ) -> None:
        config = self._registry[movement.type_enum]
        # Every line is still PENDING before start.
        lines = [
            LineSpec(
                item_id=line.item_id,
                requested_quantity=Decimal(line.requested_quantity),
                from_location_id=line.from_location_id,
            )
            for line in movement.lines
        ]
        self._check_stock(config, lines, movement.source_location_id, allow_insufficient_stock)

        movement.status = plan.to_status.value
        movement.started_at = self._clock.now()
        self._touch(movement, actor_id)
        self._flush(movement)
        self._log_transition(movement, plan, actor_id)

    def _apply_complete(
        self,
        movement: Movement,
        plan: MovementTransitionPlan,
        actor_id: UUID,
    ) -> None:
        config = self._registry[movement.type_enum]
        now = self._clock.now()

        deltas = []
        for line in movement.lines:
            if line.status_enum == LineStatus.CANCELLED:
                continue
            line.status = LineStatus.COMPLETED.value
            line.updated_by_id = actor_id
            quantity = Decimal(line.actual_quantity)
            if quantity == 0:
                continue
            deltas.append(
                InventoryDelta(
                    line_id=line.id,
                    item_id=line.item_id,
                    quantity=quantity,
                    unit_of_measure=line.unit_of_measure,
                    from_location_id=line.effective_from_location_id,
                    to_location_id=line.effective_to_location_id,
                    lot_id=line.lot_id,
                    serial_id=line.serial_id,
                )
            )

        movement.status = plan.to_status.value
        movement.completed_at = now
        movement.completed_by_id = actor_id
        self._touch(movement, actor_id)
        # The conditional UPDATE must win before inventory is touched.
        self._flush(movement)

        completion = MovementCompletion(
            movement_id=movement.id,
            movement_type=movement.type_enum,
            warehouse_id=movement.warehouse_id,
            completed_at=now,
            completed_by_id=actor_id,
            allows_negative_stock=config.allows_negative_stock,
            deltas=tuple(deltas),
            reference_number=movement.reference_number,
        )
        if self._sink is not None:
            self._sink.apply_movement_deltas(completion)

        self._log_transition(movement, plan, actor_id, delta_count=len(deltas))

    def _apply_hold(self, movement: Movement, plan: MovementTransitionPlan, actor_id: UUID) -> None:
        movement.held_from_status = plan.from_status.value
        movement.held_at = self._clock.now()
        movement.hold_reason = plan.reason
        movement.status = plan.to_status.value
        self._touch(movement, actor_id)
        self._flush(movement)
        self._log_transition(movement, plan, actor_id)

    def _apply_release(self, movement: Movement, plan: MovementTransitionPlan, actor_id: UUID) -> None:
        movement.status = plan.to_status.value
        movement.held_from_status = None
        movement.held_at = None
        movement.hold_reason = None
        self._touch(movement, actor_id)
        self._flush(movement)
        self._log_transition(movement, plan, actor_id)

    def _apply_cancel(self, movement: Movement, plan: MovementTransitionPlan, actor_id: UUID) -> None:
        now = self._clock.now()
        for line in movement.lines:
            if line.status_enum not in TERMINAL_LINE_STATUSES:
                line.status = LineStatus.CANCELLED.value
                line.updated_by_id = actor_id
        for task in movement.tasks:
            if task.status_enum not in TERMINAL_TASK_STATUSES:
                task.status = TaskStatus.CANCELLED.value
                task.cancellation_reason = plan.reason
                task.updated_by_id = actor_id

        movement.status = plan.to_status.value
        movement.cancelled_at = now
        movement.cancellation_reason = plan.reason
        movement.held_from_status = None
        self._touch(movement, actor_id)
        self._flush(movement)
        self._log_transition(movement, plan, actor_id)

    def _apply_delete(self, movement: Movement, plan: MovementTransitionPlan, actor_id: UUID) -> None:
        line_count = len(movement.lines)
        task_count = len(movement.tasks)
        self.session.delete(movement)
        self._flush(movement)
        logger.info(
            "movement_deleted",
            extra={
                "movement_id": str(movement.id),
                "from_status": plan.from_status.value,
                "line_count": line_count,
                "task_count": task_count,
                "actor_id": str(actor_id),
            },
        )

    def _log_transition(
        self,
        movement: Movement,
        plan: MovementTransitionPlan,
        actor_id: UUID,
        **extra,
    ) -> None:
        logger.info(
            "movement_transitioned",
            extra={
                "movement_id": str(movement.id),
                "action": plan.action.value,
                "from_status": plan.from_status.value,
                "to_status": plan.to_status.value,
                "version": movement.version,
                "actor_id": str(actor_id),
                **extra,
            },
        )

    # =========================================================================
    # Header edits
    # =========================================================================

    def update_movement(
        self,
        movement_id: UUID,
        *,
        actor_id: UUID,
        priority: MovementPriority | object = _UNSET,
        source_location_id: UUID | None | object = _UNSET,
        destination_location_id: UUID | None | object = _UNSET,
        reference_number: str | None | object = _UNSET,
        notes: str | None | object = _UNSET,
        expected_date: date | None | object = _UNSET,
        scheduled_date: date | None | object = _UNSET,
    ) -> MovementInfo:
        """Change header fields of a DRAFT or PENDING movement.

        Only supplied arguments change; pass None to clear an optional field.
        The type policy is re-checked against the resulting locations.
        """
        movement = self._load_movement(movement_id)
        self._require_editable(movement)
        config = self._registry[movement.type_enum]

        source = movement.source_location_id if source_location_id is _UNSET else source_location_id
        destination = (
            movement.destination_location_id
            if destination_location_id is _UNSET
            else destination_location_id
        )
        reference = movement.reference_number if reference_number is _UNSET else reference_number
        validate_locations(config, source, destination)
        validate_reference_number(config, reference, self._policy)
        if source_location_id is not _UNSET:
            self._check_location(source)
        if destination_location_id is not _UNSET:
            self._check_location(destination)

        changed = []
        if priority is not _UNSET:
            movement.priority = MovementPriority(priority).value
            changed.append("priority")
        if source_location_id is not _UNSET:
            movement.source_location_id = source
            changed.append("source_location_id")
        if destination_location_id is not _UNSET:
            movement.destination_location_id = destination
            changed.append("destination_location_id")
        if reference_number is not _UNSET:
            movement.reference_number = reference
            changed.append("reference_number")
        if notes is not _UNSET:
            movement.notes = notes
            changed.append("notes")
        if expected_date is not _UNSET:
            movement.expected_date = expected_date
            changed.append("expected_date")
        if scheduled_date is not _UNSET:
            movement.scheduled_date = scheduled_date
            changed.append("scheduled_date")

        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_updated",
            extra={
                "movement_id": str(movement.id),
                "fields": changed,
                "version": movement.version,
                "actor_id": str(actor_id),
            },
        )
        return movement.to_dto(self._clock.now())

    # =========================================================================
    # Lines
    # =========================================================================

    def add_line(self, movement_id: UUID, spec: LineSpec, *, actor_id: UUID) -> MovementLineInfo:
        """Append a line to a DRAFT or PENDING movement."""
        movement = self._load_movement(movement_id)
        self._require_editable(movement)

        index = len(movement.lines)
        validate_requested_quantity(spec.requested_quantity, index)
        if spec.actual_quantity is not None:
            validate_actual_quantity(spec.actual_quantity, index)
        unit = self._resolve_unit(spec, index)

        line = self._new_line(movement, spec, unit, actor_id)
        movement.lines.append(line)
        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_line_added",
            extra={
                "movement_id": str(movement.id),
                "line_id": str(line.id),
                "line_number": line.line_number,
                "item_id": str(line.item_id),
                "actor_id": str(actor_id),
            },
        )
        return line.to_dto()

    def update_line(
        self,
        line_id: UUID,
        *,
        actor_id: UUID,
        actual_quantity: Decimal | object = _UNSET,
        unit_of_measure: str | object = _UNSET,
        from_location_id: UUID | None | object = _UNSET,
        to_location_id: UUID | None | object = _UNSET,
        lot_id: UUID | None | object = _UNSET,
        serial_id: UUID | None | object = _UNSET,
        notes: str | None | object = _UNSET,
    ) -> MovementLineInfo:
        """Edit a line of a DRAFT or PENDING movement.

        ``requested_quantity`` is not editable; remove and re-add the line
        to request a different quantity.
        """
        line = self._load_line(line_id)
        movement = line.movement
        self._require_editable(movement)

        index = self._line_index(movement, line)
        if actual_quantity is not _UNSET:
            validate_actual_quantity(actual_quantity, index)
        if from_location_id is not _UNSET:
            self._check_location(from_location_id)
        if to_location_id is not _UNSET:
            self._check_location(to_location_id)

        updates = {
            "actual_quantity": actual_quantity,
            "unit_of_measure": unit_of_measure,
            "from_location_id": from_location_id,
            "to_location_id": to_location_id,
            "lot_id": lot_id,
            "serial_id": serial_id,
            "notes": notes,
        }
        changed = [name for name, value in updates.items() if value is not _UNSET]
        for name in changed:
            setattr(line, name, updates[name])
        line.updated_by_id = actor_id

        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_line_updated",
            extra={
                "movement_id": str(movement.id),
                "line_id": str(line.id),
                "fields": changed,
                "actor_id": str(actor_id),
            },
        )
        return line.to_dto()

    def remove_line(self, line_id: UUID, *, actor_id: UUID) -> None:
        """Delete a line of a DRAFT or PENDING movement.

        Raises:
            EmptyLineSetError: the line is the movement's last one.
        """
        line = self._load_line(line_id)
        movement = line.movement
        self._require_editable(movement)
        if len(movement.lines) <= 1:
            raise EmptyLineSetError(str(movement.id))

        for task in movement.tasks:
            if task.movement_line_id == line.id:
                task.movement_line_id = None
        movement.lines.remove(line)
        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_line_removed",
            extra={
                "movement_id": str(movement.id),
                "line_id": str(line_id),
                "line_number": line.line_number,
                "actor_id": str(actor_id),
            },
        )

    def correct_actual_quantity(
        self,
        line_id: UUID,
        actual_quantity: Decimal,
        *,
        actor_id: UUID,
    ) -> MovementLineInfo:
        """Record the quantity actually handled for a line.

        Legal while the line is open and the movement is not terminal,
        including IN_PROGRESS and ON_HOLD.
        """
        line = self._load_line(line_id)
        movement = line.movement
        if movement.is_terminal:
            raise IllegalTransitionError(
                action="correct_quantity",
                current_state=movement.status,
                entity_type="movement",
                entity_id=str(movement.id),
            )
        if line.status_enum in TERMINAL_LINE_STATUSES:
            raise IllegalTransitionError(
                action="correct_quantity",
                current_state=line.status,
                entity_type="line",
                entity_id=str(line.id),
            )
        validate_actual_quantity(actual_quantity, self._line_index(movement, line))

        previous = Decimal(line.actual_quantity)
        line.actual_quantity = actual_quantity
        line.updated_by_id = actor_id
        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_line_quantity_corrected",
            extra={
                "movement_id": str(movement.id),
                "line_id": str(line.id),
                "previous_quantity": str(previous),
                "actual_quantity": str(actual_quantity),
                "actor_id": str(actor_id),
            },
        )
        return line.to_dto()

    def transition_line(self, line_id: UUID, action: LineAction, *, actor_id: UUID) -> MovementLineInfo:
        """Move a line through pick / dispatch / complete / cancel.

        Raises:
            IllegalTransitionError: the movement is not IN_PROGRESS, or the
                action is not legal from the line's status.
        """
        line = self._load_line(line_id)
        movement = line.movement
        if movement.status_enum != MovementStatus.IN_PROGRESS:
            logger.warning(
                "movement_line_transition_rejected",
                extra={
                    "movement_id": str(movement.id),
                    "line_id": str(line.id),
                    "action": action.value,
                    "current_state": movement.status,
                },
            )
            raise IllegalTransitionError(
                action=action.value,
                current_state=movement.status,
                entity_type="movement",
                entity_id=str(movement.id),
            )

        from_status = line.status_enum
        try:
            to_status = plan_line_transition(from_status, action, line_id=line.id)
        except IllegalTransitionError:
            logger.warning(
                "movement_line_transition_rejected",
                extra={
                    "movement_id": str(movement.id),
                    "line_id": str(line.id),
                    "action": action.value,
                    "current_state": line.status,
                },
            )
            raise

        line.status = to_status.value
        line.updated_by_id = actor_id
        self._touch(movement, actor_id)
        self._flush(movement)

        logger.info(
            "movement_line_transitioned",
            extra={
                "movement_id": str(movement.id),
                "line_id": str(line.id),
                "action": action.value,
                "from_status": from_status.value,
                "to_status": to_status.value,
                "actor_id": str(actor_id),
            },
        )
        return line.to_dto()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _new_line(
        self,
        movement: Movement,
        spec: LineSpec,
        unit_of_measure: str,
        actor_id: UUID,
    ) -> MovementLine:
        actual = spec.actual_quantity if spec.actual_quantity is not None else spec.requested_quantity
        return MovementLine(
            id=uuid4(),
            line_number=movement.next_line_number(),
            item_id=spec.item_id,
            requested_quantity=spec.requested_quantity,
            actual_quantity=actual,
            unit_of_measure=unit_of_measure,
            from_location_id=spec.from_location_id,
            to_location_id=spec.to_location_id,
            lot_id=spec.lot_id,
            serial_id=spec.serial_id,
            notes=spec.notes,
            status=LineStatus.PENDING.value,
            created_by_id=actor_id,
        )

    @staticmethod
    def _line_index(movement: Movement, line: MovementLine) -> int:
        return next(i for i, candidate in enumerate(movement.lines) if candidate.id == line.id)

    def _check_stock(
        self,
        config: MovementTypeConfig,
        lines: Sequence[LineSpec],
        source_location_id: UUID | None,
        allow_insufficient_stock: bool,
    ) -> StockCheckResult:
        if self._stock_checker is None:
            if config.requires_stock_validation:
                return StockCheckResult.skipped("no stock checker configured")
            return StockCheckResult.not_required()

        result = self._stock_checker.check(config, lines, source_location_id)
        if result.is_insufficient:
            if self._policy.reject_insufficient_stock and not allow_insufficient_stock:
                result.raise_for_shortage()
            logger.warning(
                "insufficient_stock_accepted",
                extra={
                    "movement_type": config.movement_type.value,
                    "item_id": str(result.shortage.item_id),
                    "line_index": result.shortage.line_index,
                },
            )
        return result

    def _check_warehouse(self, warehouse_id: UUID) -> None:
        if self._locations is None:
            return
        if self._locations.get_warehouse(warehouse_id) is None:
            raise WarehouseNotFoundError(str(warehouse_id))

    def _check_location(self, location_id: UUID | None) -> None:
        if self._locations is None or location_id is None:
            return
        if self._locations.get_location(location_id) is None:
            raise LocationNotFoundError(str(location_id))

    def _resolve_unit(self, line: LineSpec, index: int) -> str:
        """Validate the line's item and location refs; return its unit of measure."""
        self._check_location(line.from_location_id)
        self._check_location(line.to_location_id)
        if self._items is None:
            return line.unit_of_measure or DEFAULT_UNIT_OF_MEASURE
        item = self._items.get_item(line.item_id)
        if item is None:
            raise ItemNotFoundError(str(line.item_id), line_index=index)
        return line.unit_of_measure or item.unit_of_measure or DEFAULT_UNIT_OF_MEASURE


def new_task_row(movement: Movement, spec: TaskSpec, actor_id: UUID) -> MovementTask:
    """Build a PENDING task row for ``movement``.

    A user given in the TaskSpec is recorded as the intended assignee; the task
    still has to go through ``assign``.
    """
    if spec.movement_line_id is not None and not any(
        line.id == spec.movement_line_id for line in movement.lines
    ):
        raise MovementLineNotFoundError(str(spec.movement_line_id))
    return MovementTask(
        id=uuid4(),
        task_number=movement.next_task_number(),
        task_type=spec.task_type.value,
        priority=spec.priority,
        status=TaskStatus.PENDING.value,
        movement_line_id=spec.movement_line_id,
        assigned_user_id=spec.assigned_user_id,
        location_id=spec.location_id,
        scheduled_start_time=as_utc(spec.scheduled_start_time),
        expected_completion_time=as_utc(spec.expected_completion_time),
        instructions=spec.instructions,
        created_by_id=actor_id,
    )
