"""
Movements -- tagged movement variants and the balance deltas they imply.

Responsibility:
    Defines the unvalidated ``MovementIntent`` as it arrives at the boundary,
    one frozen variant per movement type carrying only the fields that type
    requires, and the pure translation from a validated movement to the
    balance keys it touches and the quantity delta for each.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    CONSERVATION -- ``deltas_for(Transfer)`` yields a -q/+q pair for the
        same item, so the two deltas always sum to zero.
    CANONICAL_LOCK_ORDER -- ``touched_keys`` returns keys sorted by
        (warehouse_id, product_id, variant_key), the one global order in
        which balance rows are locked.

Data flow:
    MovementIntent -> validate_movement() -> ValidatedMovement
        -> deltas_for() -> [BalanceDelta] -> StockLedgerStore
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union
from uuid import UUID

from inventory_kernel.db.types import variant_key_for
from inventory_kernel.utils.hashing import hash_payload


class MovementType(str, Enum):
    """Kind of stock-changing event.

    The type determines which warehouse fields are present and the sign
    rule for quantity (see domain.validation).
    """

    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"


@dataclass(frozen=True)
class MovementIntent:
    """
    A movement request exactly as the caller submitted it.

    Nothing here is trusted: ids may be strings or UUIDs, quantity may be
    any object, and fields that do not belong to the type may be present.
    ``validate_movement`` turns it into a ValidatedMovement or rejects it.
    """

    type: Any
    product_id: Any
    quantity: Any
    actor_id: Any
    variant_id: Any = None
    from_warehouse_id: Any = None
    to_warehouse_id: Any = None
    reference: Any = None
    notes: Any = None
    idempotency_token: Any = None


@dataclass(frozen=True, order=True)
class BalanceKey:
    """
    Identity of one balance row: (warehouse, product, variant).

    Ordering is the canonical lock order.  ``variant_key`` sorts the base
    product ("-") before any variant UUID string.
    """

    warehouse_id: UUID
    product_id: UUID
    variant_key: str

    @classmethod
    def of(
        cls, warehouse_id: UUID, product_id: UUID, variant_id: UUID | None = None
    ) -> BalanceKey:
        """Build a key from a nullable variant id."""
        return cls(
            warehouse_id=warehouse_id,
            product_id=product_id,
            variant_key=variant_key_for(variant_id),
        )

    @property
    def variant_id(self) -> UUID | None:
        if self.variant_key == variant_key_for(None):
            return None
        return UUID(self.variant_key)

    def sort_key(self) -> tuple[str, str, str]:
        """String form of the canonical order (identical across processes)."""
        return (str(self.warehouse_id), str(self.product_id), self.variant_key)

    def __str__(self) -> str:
        return f"{self.warehouse_id}/{self.product_id}/{self.variant_key}"


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change to the on-hand quantity of one balance key."""

    key: BalanceKey
    quantity_delta: int

    @property
    def is_decrement(self) -> bool:
        return self.quantity_delta < 0


# Validated variants.  Each carries only the fields its type requires.


@dataclass(frozen=True)
class Receipt:
    """IN: goods arrive at ``to_warehouse_id``."""

    product_id: UUID
    variant_id: UUID | None
    quantity: int
    to_warehouse_id: UUID
    reference: str | None = None
    notes: str | None = None

    movement_type = MovementType.IN


@dataclass(frozen=True)
class Shipment:
    """OUT: goods leave ``from_warehouse_id``."""

    product_id: UUID
    variant_id: UUID | None
    quantity: int
    from_warehouse_id: UUID
    reference: str | None = None
    notes: str | None = None

    movement_type = MovementType.OUT


@dataclass(frozen=True)
class Transfer:
    """TRANSFER: goods move between two distinct warehouses."""

    product_id: UUID
    variant_id: UUID | None
    quantity: int
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    reference: str | None = None
    notes: str | None = None

    movement_type = MovementType.TRANSFER


@dataclass(frozen=True)
class Adjustment:
    """ADJUSTMENT: signed correction at ``to_warehouse_id``; notes required."""

    product_id: UUID
    variant_id: UUID | None
    quantity: int
    to_warehouse_id: UUID
    notes: str
    reference: str | None = None

    movement_type = MovementType.ADJUSTMENT


ValidatedMovement = Union[Receipt, Shipment, Transfer, Adjustment]


def warehouse_fields(movement: ValidatedMovement) -> tuple[UUID | None, UUID | None]:
    """Return (from_warehouse_id, to_warehouse_id) for any variant."""
    return (
        getattr(movement, "from_warehouse_id", None),
        getattr(movement, "to_warehouse_id", None),
    )


def deltas_for(movement: ValidatedMovement) -> list[BalanceDelta]:
    """
    Compute the balance deltas a validated movement implies.

    IN         -> +q on to
    OUT        -> -q on from
    TRANSFER   -> -q on from, +q on to
    ADJUSTMENT -> +q (signed) on to

    Returns:
        Deltas in canonical key order.
    """
    product_id = movement.product_id
    variant_id = movement.variant_id
    q = movement.quantity

    if isinstance(movement, Receipt):
        deltas = [BalanceDelta(BalanceKey.of(movement.to_warehouse_id, product_id, variant_id), q)]
    elif isinstance(movement, Shipment):
        deltas = [BalanceDelta(BalanceKey.of(movement.from_warehouse_id, product_id, variant_id), -q)]
    elif isinstance(movement, Transfer):
        deltas = [
            BalanceDelta(BalanceKey.of(movement.from_warehouse_id, product_id, variant_id), -q),
            BalanceDelta(BalanceKey.of(movement.to_warehouse_id, product_id, variant_id), q),
        ]
    elif isinstance(movement, Adjustment):
        deltas = [BalanceDelta(BalanceKey.of(movement.to_warehouse_id, product_id, variant_id), q)]
    else:
        raise TypeError(f"Not a validated movement: {type(movement).__name__}")

    return sorted(deltas, key=lambda d: d.key.sort_key())


def touched_keys(movement: ValidatedMovement) -> list[BalanceKey]:
    """Balance keys a movement touches, in canonical lock order."""
    return [d.key for d in deltas_for(movement)]


def payload_hash(movement: ValidatedMovement) -> str:
    """
    Deterministic hash of a movement's business fields.

    Two submissions sharing an idempotency token are the same request only
    if their hashes match.  The actor is not part of the payload.
    """
    from_wh, to_wh = warehouse_fields(movement)
    return hash_payload(
        {
            "type": movement.movement_type.value,
            "product_id": movement.product_id,
            "variant_id": movement.variant_id,
            "quantity": movement.quantity,
            "from_warehouse_id": from_wh,
            "to_warehouse_id": to_wh,
            "reference": movement.reference,
            "notes": movement.notes,
        }
    )
