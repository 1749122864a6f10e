"""
Typed Exception Hierarchy for the Group-Buy Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (CLI, web handlers, operators) react differently to a rejected input,
an illegal lifecycle action and a half-finished write.  Each failure therefore
has its own class, a machine-readable ``code`` class attribute, and carries its
context as attributes instead of inside the message string.

    try:
        service.ship(order_id)
    except TransitionError as e:
        show(f"cannot ship from {e.current_status}")     # structured data
    except PartialWriteError as e:
        alert_operator(e.operation, e.failed_step)       # needs attention

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GroupBuyError (base)
    |
    +-- ValidationError              input rejected before any write
    +-- TransitionError              lifecycle action from an illegal status
    +-- RecordNotFoundError          referenced record does not resolve
    +-- ProductReferencedError       product still used by procurements
    |
    +-- PersistenceError
    |   +-- StoreError               backend failure inside the record store
    |   +-- StoreWriteError          clean failure, nothing left behind
    |   +-- PartialWriteError        later step failed after earlier ones
    |
    +-- ConcurrencyError
    |   +-- OrderBusyError           another action on the order is in flight
    |
    +-- OperationCancelledError      aborted before the first write
    +-- ConfigurationError           invalid policy / config value

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                   | When Raised
----------------|------------------------|------------------------------------
Input           | VALIDATION_ERROR       | Missing field, non-positive qty/rate,
                |                        | empty line-item list
Lifecycle       | INVALID_TRANSITION     | ship/settle from wrong status
Lookup          | RECORD_NOT_FOUND       | Unknown order/product/project id
Catalog         | PRODUCT_REFERENCED     | Deleting a product in use
Persistence     | STORE_ERROR            | Backend raised (wrapped)
                | STORE_WRITE_FAILED     | Write failed, rolled back cleanly
                | PARTIAL_WRITE          | Step N failed after steps 1..N-1
Concurrency     | ORDER_BUSY             | Second action on same order
Cancellation    | OPERATION_CANCELLED    | Cancelled before first write
Config          | CONFIGURATION_ERROR    | Bad policy file / value

Division by a zero total cost is NOT an error: ROI and completion rates are
defined as zero in that case.
"""

from __future__ import annotations

from typing import Any


class GroupBuyError(Exception):
    """
    Base exception for all group-buy engine errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "GROUPBUY_ERROR"


# Input and lifecycle errors


class ValidationError(GroupBuyError):
    """Input rejected before any write was issued."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class TransitionError(GroupBuyError):
    """A lifecycle action was invoked from a status that does not allow it."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        current_status: str,
        action: str,
        allowed_from: tuple[str, ...] = (),
    ):
        self.entity = entity
        self.entity_id = str(entity_id)
        self.current_status = current_status
        self.action = action
        self.allowed_from = allowed_from
        allowed = ", ".join(allowed_from) or "none"
        super().__init__(
            f"Cannot {action} {entity} {entity_id} in status '{current_status}' "
            f"(allowed from: {allowed})"
        )


class RecordNotFoundError(GroupBuyError):
    """A record id did not resolve in the store."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, entity: str, record_id: Any):
        self.entity = entity
        self.record_id = str(record_id)
        super().__init__(f"{entity} not found: {record_id}")


class ProductReferencedError(GroupBuyError):
    """Product cannot be deleted while procurements reference it."""

    code: str = "PRODUCT_REFERENCED"

    def __init__(self, product_id: Any, reference_count: int):
        self.product_id = str(product_id)
        self.reference_count = reference_count
        super().__init__(
            f"Product {product_id} is referenced by {reference_count} "
            f"procurement(s) and cannot be deleted"
        )


# Persistence errors


class PersistenceError(GroupBuyError):
    """Base exception for record-store write failures."""

    code: str = "PERSISTENCE_ERROR"


class StoreError(PersistenceError):
    """The record store backend failed a single call."""

    code: str = "STORE_ERROR"

    def __init__(self, operation: str, entity: str, detail: str):
        self.operation = operation
        self.entity = entity
        self.detail = detail
        super().__init__(f"Store {operation} on {entity} failed: {detail}")


class StoreWriteError(PersistenceError):
    """
    A write sequence failed and left nothing behind.

    Either the failing step was the first one, or the whole sequence ran in a
    single store transaction that was rolled back.
    """

    code: str = "STORE_WRITE_FAILED"

    def __init__(self, operation: str, step: str, detail: str = ""):
        self.operation = operation
        self.step = step
        self.detail = detail
        super().__init__(
            f"{operation} failed at step '{step}'; no changes were kept"
            + (f": {detail}" if detail else "")
        )


class PartialWriteError(PersistenceError):
    """
    A later step of a write sequence failed after earlier steps succeeded.

    ``rolled_back`` tells the caller whether the compensations for the
    completed steps all succeeded.  When it is False the store is in an
    inconsistent state and an operator must look at ``completed_steps``.
    """

    code: str = "PARTIAL_WRITE"

    def __init__(
        self,
        operation: str,
        failed_step: str,
        completed_steps: tuple[str, ...],
        rolled_back: bool,
        detail: str = "",
    ):
        self.operation = operation
        self.failed_step = failed_step
        self.completed_steps = completed_steps
        self.rolled_back = rolled_back
        self.detail = detail
        state = "rolled back" if rolled_back else "NOT rolled back"
        super().__init__(
            f"{operation} failed at step '{failed_step}' after "
            f"{', '.join(completed_steps)} completed ({state})"
            + (f": {detail}" if detail else "")
        )


# Concurrency errors


class ConcurrencyError(GroupBuyError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OrderBusyError(ConcurrencyError):
    """Another lifecycle action on the same order is still in flight."""

    code: str = "ORDER_BUSY"

    def __init__(self, order_id: Any):
        self.order_id = str(order_id)
        super().__init__(
            f"Order {order_id} is busy: another action is in progress"
        )


class OperationCancelledError(GroupBuyError):
    """The caller cancelled the action before its first write."""

    code: str = "OPERATION_CANCELLED"

    def __init__(self, operation: str, reason: str | None = None):
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"{operation} cancelled before any write"
            + (f": {reason}" if reason else "")
        )


class ConfigurationError(GroupBuyError):
    """A policy or configuration value is invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")
