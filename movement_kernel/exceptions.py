"""
Typed Exception Hierarchy for the Movement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (a REST layer, a UI, a batch importer) must react to workflow
failures precisely. Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.complete(movement_id, actor_id=user_id)
    except IllegalTransitionError as e:
        api_response(code=e.code, action=e.action, state=e.current_state)
    except ConcurrentModificationError:
        retry_from_fresh_read()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MovementKernelError (base)
    |
    +-- MovementValidationError
    |   +-- UnconfiguredMovementTypeError
    |   +-- MissingLocationError
    |   +-- EmptyLineSetError
    |   +-- InvalidQuantityError
    |   +-- InvalidTaskPriorityError
    |   +-- MissingReferenceNumberError
    |   +-- UnknownSettingKeyError
    |
    +-- StockError
    |   +-- InsufficientStockError          (recoverable)
    |
    +-- TransitionError
    |   +-- IllegalTransitionError
    |   +-- MissingReasonError
    |   +-- MissingAssigneeError
    |
    +-- NotFoundError
    |   +-- MovementNotFoundError
    |   +-- MovementLineNotFoundError
    |   +-- MovementTaskNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- LocationNotFoundError
    |   +-- ItemNotFoundError
    |
    +-- ConcurrencyError
        +-- ConcurrentModificationError     (retryable)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                      | When Raised
------------|---------------------------|---------------------------------------
Validation  | UNCONFIGURED_MOVEMENT_TYPE| Legacy alias type used at creation
            | MISSING_LOCATION          | Type requires a source/destination
            | EMPTY_LINE_SET            | Movement without lines
            | INVALID_QUANTITY          | Requested <= 0 or actual < 0
            | INVALID_TASK_PRIORITY     | Task priority outside 1..10
            | MISSING_REFERENCE_NUMBER  | Type requires a reference number
            | UNKNOWN_SETTING_KEY       | Warehouse override of unknown key
------------|---------------------------|---------------------------------------
Stock       | INSUFFICIENT_STOCK        | Advisory pre-check found a shortage
------------|---------------------------|---------------------------------------
Transition  | ILLEGAL_TRANSITION        | Action not legal from current state
            | MISSING_REASON            | hold/cancel without a reason
            | MISSING_ASSIGNEE          | Task assign without a user
------------|---------------------------|---------------------------------------
Not found   | MOVEMENT_NOT_FOUND        | Unknown movement id
            | MOVEMENT_LINE_NOT_FOUND   | Unknown line id
            | MOVEMENT_TASK_NOT_FOUND   | Unknown task id
            | WAREHOUSE_NOT_FOUND       | Directory has no such warehouse
            | LOCATION_NOT_FOUND        | Directory has no such location
            | ITEM_NOT_FOUND            | Directory has no such item
------------|---------------------------|---------------------------------------
Concurrency | CONCURRENT_MODIFICATION   | Optimistic lock conflict

===============================================================================
RECOVERY FLAGS
===============================================================================

``retryable`` is True only for ConcurrentModificationError: re-read the
movement and re-validate.  ``recoverable`` is True only for
InsufficientStockError: the pre-check is advisory, so the caller may choose to
proceed anyway.  Every other error is fatal to the requested operation.
"""

from decimal import Decimal


class MovementKernelError(Exception):
    """
    Base exception for all movement kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "MOVEMENT_KERNEL_ERROR"
    retryable: bool = False
    recoverable: bool = False


# Validation-related exceptions


class MovementValidationError(MovementKernelError):
    """Base exception for request validation errors."""

    code: str = "MOVEMENT_VALIDATION_ERROR"


class UnconfiguredMovementTypeError(MovementValidationError):
    """Movement type has no policy configuration."""

    code: str = "UNCONFIGURED_MOVEMENT_TYPE"

    def __init__(self, movement_type: str):
        self.movement_type = movement_type
        super().__init__(
            f"Movement type {movement_type} is not configured and cannot be used"
        )


class MissingLocationError(MovementValidationError):
    """A location required by the movement type is absent."""

    code: str = "MISSING_LOCATION"

    def __init__(self, movement_type: str, location_role: str):
        self.movement_type = movement_type
        self.location_role = location_role
        super().__init__(
            f"Movement type {movement_type} requires a {location_role} location"
        )


class EmptyLineSetError(MovementValidationError):
    """Movement has no lines."""

    code: str = "EMPTY_LINE_SET"

    def __init__(self, movement_id: str | None = None):
        self.movement_id = movement_id
        if movement_id:
            msg = f"Movement {movement_id} must keep at least one line"
        else:
            msg = "Movement must contain at least one line"
        super().__init__(msg)


class InvalidQuantityError(MovementValidationError):
    """Line quantity is out of range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, line_index: int, quantity: Decimal, field: str = "requested_quantity"):
        self.line_index = line_index
        self.quantity = quantity
        self.field = field
        super().__init__(
            f"Line {line_index}: {field} {quantity} is not allowed"
        )


class InvalidTaskPriorityError(MovementValidationError):
    """Task priority is outside the 1..10 range."""

    code: str = "INVALID_TASK_PRIORITY"

    def __init__(self, priority: int):
        self.priority = priority
        super().__init__(f"Task priority {priority} must be between 1 and 10")


class MissingReferenceNumberError(MovementValidationError):
    """Movement type requires a reference number."""

    code: str = "MISSING_REFERENCE_NUMBER"

    def __init__(self, movement_type: str, placeholder: str | None = None):
        self.movement_type = movement_type
        self.placeholder = placeholder
        hint = f" ({placeholder})" if placeholder else ""
        super().__init__(
            f"Movement type {movement_type} requires a reference number{hint}"
        )


class UnknownSettingKeyError(MovementValidationError):
    """Warehouse settings may only override keys defined by the site template."""

    code: str = "UNKNOWN_SETTING_KEY"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Setting {key!r} is not defined by the site template")


# Stock-related exceptions


class StockError(MovementKernelError):
    """Base exception for stock availability errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    Advisory stock pre-check found a shortage.

    Recoverable: the pre-check is not a reservation, so the caller may
    proceed anyway and let the inventory system re-check at commit time.
    """

    code: str = "INSUFFICIENT_STOCK"
    recoverable: bool = True

    def __init__(
        self,
        item_id: str,
        location_id: str,
        line_index: int,
        requested_quantity: Decimal | None = None,
    ):
        self.item_id = item_id
        self.location_id = location_id
        self.line_index = line_index
        self.requested_quantity = requested_quantity
        super().__init__(
            f"Line {line_index}: insufficient stock for item {item_id} "
            f"at location {location_id}"
        )


# Transition-related exceptions


class TransitionError(MovementKernelError):
    """Base exception for state machine errors."""

    code: str = "TRANSITION_ERROR"


class IllegalTransitionError(TransitionError):
    """Action is not legal from the current state."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        action: str,
        current_state: str,
        entity_type: str = "movement",
        entity_id: str | None = None,
    ):
        self.action = action
        self.current_state = current_state
        self.entity_type = entity_type
        self.entity_id = entity_id
        target = f"{entity_type} {entity_id}" if entity_id else entity_type
        super().__init__(
            f"Cannot {action} {target} in state {current_state}"
        )


class MissingReasonError(TransitionError):
    """Action requires a non-empty reason."""

    code: str = "MISSING_REASON"

    def __init__(self, action: str, entity_type: str = "movement", entity_id: str | None = None):
        self.action = action
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"A reason is required to {action} a {entity_type}")


class MissingAssigneeError(TransitionError):
    """Task assignment requires a user reference."""

    code: str = "MISSING_ASSIGNEE"

    def __init__(self, task_id: str | None = None):
        self.task_id = task_id
        super().__init__("A user is required to assign a task")


# Lookup-related exceptions


class NotFoundError(MovementKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class MovementNotFoundError(NotFoundError):
    """Movement does not exist."""

    code: str = "MOVEMENT_NOT_FOUND"

    def __init__(self, movement_id: str):
        self.movement_id = movement_id
        super().__init__(f"Movement not found: {movement_id}")


class MovementLineNotFoundError(NotFoundError):
    """Movement line does not exist."""

    code: str = "MOVEMENT_LINE_NOT_FOUND"

    def __init__(self, line_id: str):
        self.line_id = line_id
        super().__init__(f"Movement line not found: {line_id}")


class MovementTaskNotFoundError(NotFoundError):
    """Movement task does not exist."""

    code: str = "MOVEMENT_TASK_NOT_FOUND"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Movement task not found: {task_id}")


class WarehouseNotFoundError(NotFoundError):
    """Warehouse is unknown to the location directory."""

    code: str = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = warehouse_id
        super().__init__(f"Warehouse not found: {warehouse_id}")


class LocationNotFoundError(NotFoundError):
    """Location is unknown to the location directory."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


class ItemNotFoundError(NotFoundError):
    """Item is unknown to the item directory."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str, line_index: int | None = None):
        self.item_id = item_id
        self.line_index = line_index
        super().__init__(f"Item not found: {item_id}")


# Concurrency-related exceptions


class ConcurrencyError(MovementKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Optimistic lock conflict: the row changed since it was read."""

    code: str = "CONCURRENT_MODIFICATION"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
