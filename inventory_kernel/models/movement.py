"""
Module: inventory_kernel.models.movement
Responsibility: ORM persistence for stock movements -- the append-only audit
    trail of every quantity change.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    IMMUTABILITY -- ORM listeners in db/immutability.py block UPDATE and
        DELETE from the moment a row is inserted.
    IDEMPOTENCY -- UNIQUE constraint on idempotency_token (NULL tokens are
        not constrained).

Failure modes:
    - IntegrityError on duplicate idempotency_token (handled by
      MovementApplicator, which returns the existing record).
    - ImmutabilityViolationError on UPDATE/DELETE.

Audit relevance:
    Balances are in principle derivable from these rows:
        IN          +quantity on to_warehouse
        OUT         -quantity on from_warehouse
        TRANSFER    -quantity on from_warehouse, +quantity on to_warehouse
        ADJUSTMENT  +quantity (signed) on to_warehouse
    ReconciliationService replays them to verify stored balances.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.domain.movements import MovementType


class StockMovement(Base):
    """
    Immutable record of a single stock-changing event.

    Contract:
        Written exactly once by MovementRecordStore.append() inside the same
        unit of work as the balance updates it implies.  Never references
        another movement.

    Guarantees:
        - quantity > 0 for IN, OUT, TRANSFER; quantity != 0 for ADJUSTMENT.
        - created_at and id are server-assigned.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("idempotency_token", name="uq_stock_movement_idempotency"),
        CheckConstraint("quantity <> 0", name="ck_stock_movement_quantity_non_zero"),
        Index("idx_movement_item_history", "product_id", "variant_key", "created_at"),
        Index("idx_movement_from_warehouse", "from_warehouse_id", "created_at"),
        Index("idx_movement_to_warehouse", "to_warehouse_id", "created_at"),
        Index("idx_movement_created_by", "created_by"),
        Index("idx_movement_created_at", "created_at"),
    )

    movement_type: Mapped[MovementType] = mapped_column(
        String(10),
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    variant_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    variant_key: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
    )

    # Signed only for ADJUSTMENT
    quantity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    from_warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    to_warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    created_by: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    idempotency_token: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    payload_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    @property
    def type_enum(self) -> MovementType:
        """movement_type as the enum (the column round-trips as str)."""
        return MovementType(self.movement_type)

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.id} {self.movement_type} qty={self.quantity} "
            f"product={self.product_id} variant={self.variant_key}>"
        )
