"""
ORM-Level Immutability Enforcement.

===============================================================================
WHAT THIS MODULE DOES
===============================================================================

Movement records are the audit trail of the stock ledger.  Once inserted they
must never change: corrections are new ADJUSTMENT movements, not edits.  This
module registers SQLAlchemy mapper events that abort the flush before any SQL
reaches the database:

    session.flush()
         |
         v
    [before_update / before_delete event] --> _check_*() --> raise
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity         | When Immutable       | Why
---------------|----------------------|-------------------------------------
StockMovement  | ALWAYS (on creation) | Ledger history is append-only
StockBalance   | DELETE only          | Zero is a valid terminal balance;
               |                      | rows are updated, never removed

Bulk ``session.execute(update(...))`` statements bypass mapper events.
The kernel never issues them against these tables.
"""

from sqlalchemy import event

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_movement_update(mapper, connection, target):
    """Prevent any updates to StockMovement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "immutability",
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Movements are immutable; record a new ADJUSTMENT instead",
    )


def _check_movement_delete(mapper, connection, target):
    """Prevent deletion of StockMovement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "immutability",
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Movements cannot be deleted",
    )


def _check_balance_delete(mapper, connection, target):
    """Prevent deletion of StockBalance rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "non_negative_stock",
            "entity_type": "StockBalance",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockBalance",
        entity_id=str(target.id),
        reason="Balances are never deleted; a zero balance is a valid state",
    )


_LISTENERS = (
    ("StockMovement", "before_update", _check_movement_update),
    ("StockMovement", "before_delete", _check_movement_delete),
    ("StockBalance", "before_delete", _check_balance_delete),
)


def _targets():
    from inventory_kernel.models import StockBalance, StockMovement

    return {"StockMovement": StockMovement, "StockBalance": StockBalance}


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this during application initialization, after models are imported
    and before any database operations begin.
    """
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if not event.contains(targets[name], event_name, fn):
            event.listen(targets[name], event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally tamper with history
    to verify detection.
    """
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if event.contains(targets[name], event_name, fn):
            event.remove(targets[name], event_name, fn)
