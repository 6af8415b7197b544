"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the movement engine need to react differently to a malformed
request, a shortage of stock, and a lock that could not be acquired in time.
Matching on message text for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)
  4. Every exception declares whether it is RETRYABLE

Example:
    try:
        applicator.apply(movement, actor_id=actor)
    except InsufficientStockError as e:
        show(f"Only {e.available} available, {e.requested} requested")
    except LockTimeoutError:
        schedule_retry()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- MovementError
    |   +-- MovementValidationError
    |   +-- InactiveResourceError
    |   +-- InsufficientStockError
    |   +-- IdempotencyConflictError
    |   +-- MovementCancelledError
    |
    +-- ConcurrencyError
    |   +-- TransientStorageError
    |   |   +-- OptimisticLockError
    |   +-- LockTimeoutError
    |
    +-- StorageFaultError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | Retryable | When Raised
-------------|---------------------------|-----------|---------------------------------
Movement     | VALIDATION_ERROR          | no        | Request shape is invalid
             | INACTIVE_RESOURCE         | no        | Product/variant/warehouse retired
             | INSUFFICIENT_STOCK        | no        | Decrement would go negative or
             |                           |           | below the reserved quantity
             | IDEMPOTENCY_CONFLICT      | no        | Token reused with other payload
             | MOVEMENT_CANCELLED        | no        | Caller cancelled before persist
-------------|---------------------------|-----------|---------------------------------
Concurrency  | TRANSIENT_STORAGE_FAILURE | yes       | Deadlock / serialization failure
             | OPTIMISTIC_LOCK_CONFLICT  | yes       | Balance row version moved on
             | LOCK_TIMEOUT              | yes       | Row lock wait exceeded
-------------|---------------------------|-----------|---------------------------------
Storage      | STORAGE_FAULT             | no        | Non-transient persistence error
-------------|---------------------------|-----------|---------------------------------
Immutability | IMMUTABILITY_VIOLATION    | no        | UPDATE/DELETE of a movement row
"""

from typing import Any
from uuid import UUID


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"
    retryable: bool = False


# Movement exceptions


class MovementError(InventoryKernelError):
    """Base exception for caller-fixable movement errors."""

    code: str = "MOVEMENT_ERROR"


class MovementValidationError(MovementError):
    """
    The movement request is structurally invalid.

    Carries every violated rule, not just the first one, so that a form can
    display all problems at once.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, violations: list[dict[str, str]]):
        self.violations = violations
        fields = ", ".join(sorted({v["field"] for v in violations}))
        super().__init__(
            f"Movement validation failed with {len(violations)} error(s): {fields}"
        )


class InactiveResourceError(MovementError):
    """A referenced product, variant, or warehouse is inactive or unknown."""

    code: str = "INACTIVE_RESOURCE"

    def __init__(self, resources: list[dict[str, str]]):
        self.resources = resources
        names = ", ".join(f"{r['kind']} {r['id']}" for r in resources)
        super().__init__(f"Inactive resource(s): {names}")


class InsufficientStockError(MovementError):
    """Applying the movement would drive on-hand stock negative or below reserved."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        variant_id: UUID | None,
        on_hand: int,
        reserved: int,
        requested: int,
    ):
        self.warehouse_id = warehouse_id
        self.product_id = product_id
        self.variant_id = variant_id
        self.on_hand = on_hand
        self.reserved = reserved
        self.requested = requested
        self.available = max(0, on_hand - reserved)
        super().__init__(
            f"Insufficient stock in warehouse {warehouse_id} for product "
            f"{product_id}: available={self.available}, requested={requested}"
        )


class IdempotencyConflictError(MovementError):
    """The idempotency token is already bound to a different movement payload."""

    code: str = "IDEMPOTENCY_CONFLICT"

    def __init__(self, idempotency_token: str, movement_id: UUID):
        self.idempotency_token = idempotency_token
        self.movement_id = movement_id
        super().__init__(
            f"Idempotency token '{idempotency_token}' already used by movement "
            f"{movement_id} with a different payload"
        )


class MovementCancelledError(MovementError):
    """The caller cancelled the movement before it started persisting."""

    code: str = "MOVEMENT_CANCELLED"

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Movement cancelled before commit (stage: {stage})")


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for contention failures. Safe to retry."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class TransientStorageError(ConcurrencyError):
    """Deadlock, serialization failure, or similar contention in the store."""

    code: str = "TRANSIENT_STORAGE_FAILURE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Transient storage failure during {operation}: {reason}")


class OptimisticLockError(TransientStorageError):
    """A balance row changed underneath the unit of work (version mismatch)."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, operation: str, entity_id: Any = None):
        self.entity_id = entity_id
        super().__init__(operation, f"stale version for {entity_id or 'balance row'}")


class LockTimeoutError(ConcurrencyError):
    """A row lock could not be acquired within the configured wait."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, operation: str, timeout_ms: int, attempts: int = 1):
        self.operation = operation
        self.timeout_ms = timeout_ms
        self.attempts = attempts
        super().__init__(
            f"Lock wait exceeded {timeout_ms}ms during {operation} "
            f"after {attempts} attempt(s)"
        )


# Storage exceptions


class StorageFaultError(InventoryKernelError):
    """Non-transient persistence failure. Fatal for the request."""

    code: str = "STORAGE_FAULT"

    def __init__(self, operation: str, reason: str, attempts: int = 1):
        self.operation = operation
        self.reason = reason
        self.attempts = attempts
        super().__init__(
            f"Storage fault during {operation} after {attempts} attempt(s): {reason}"
        )


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Movement rows are immutable from creation. Corrections are recorded as
    new ADJUSTMENT movements.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
