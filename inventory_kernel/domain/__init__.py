"""
Pure domain layer.

This module contains movement variants, validation, and data transfer
objects with NO dependencies on:
- Database sessions
- Time (clocks are injected)
- I/O

All domain objects are immutable and deterministic.
"""

from inventory_kernel.domain.cancellation import CancellationToken
from inventory_kernel.domain.catalog import CatalogLookup, StaticCatalog
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    BalanceDiscrepancy,
    BalanceView,
    CommittedMovement,
    MovementFilters,
    MovementOutcome,
    MovementPage,
    MovementStats,
    OutcomeStatus,
    ReconciliationReport,
    WarehouseSummary,
)
from inventory_kernel.domain.movements import (
    Adjustment,
    BalanceDelta,
    BalanceKey,
    MovementIntent,
    MovementType,
    Receipt,
    Shipment,
    Transfer,
    ValidatedMovement,
    deltas_for,
    payload_hash,
    touched_keys,
)
from inventory_kernel.domain.validation import (
    FieldViolation,
    ValidatedSubmission,
    validate_movement,
    validate_submission,
)

__all__ = [
    "Adjustment",
    "BalanceDelta",
    "BalanceDiscrepancy",
    "BalanceKey",
    "BalanceView",
    "CancellationToken",
    "CatalogLookup",
    "Clock",
    "CommittedMovement",
    "DeterministicClock",
    "FieldViolation",
    "MovementFilters",
    "MovementIntent",
    "MovementOutcome",
    "MovementPage",
    "MovementStats",
    "MovementType",
    "OutcomeStatus",
    "Receipt",
    "ReconciliationReport",
    "Shipment",
    "StaticCatalog",
    "SystemClock",
    "Transfer",
    "ValidatedMovement",
    "ValidatedSubmission",
    "WarehouseSummary",
    "deltas_for",
    "payload_hash",
    "touched_keys",
    "validate_movement",
    "validate_submission",
]
