"""
Kernel Invariants Contract.

These invariants are structural law. They are hardcoded in the movement
applicator, the ledger store, and the database constraints. No configuration
value may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across StockLedgerStore, MovementApplicator,
MovementRecordStore, the immutability listeners, and the table constraints.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """quantity >= 0 and 0 <= reserved_qty <= quantity on every balance row.
    Enforced by StockLedgerStore before flush and by DB check constraints."""

    CONSERVATION = "conservation"
    """A transfer decrements the source and increments the destination by
    the same quantity inside one atomic unit. Enforced by
    domain.movements.deltas_for and MovementApplicator."""

    ATOMICITY = "atomicity"
    """Balance updates and the movement record commit together or not at
    all. Enforced by TransactionRunner."""

    IMMUTABILITY = "immutability"
    """Movement rows are append-only. Enforced by ORM listeners
    (inventory_kernel.db.immutability)."""

    IDEMPOTENCY = "idempotency"
    """A movement submitted twice with the same idempotency token is
    applied once. Enforced by MovementApplicator and a unique constraint."""

    CANONICAL_LOCK_ORDER = "canonical_lock_order"
    """Balance rows are locked sorted by (warehouse, product, variant), so
    concurrent transfers cannot deadlock on each other."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_config",
    "scripts",
)
