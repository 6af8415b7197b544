"""
Module: inventory_kernel.models.stock_balance
Responsibility: ORM persistence for current stock balances, one row per
    (warehouse, product, variant).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    NON_NEGATIVE_STOCK -- CHECK constraints: quantity >= 0, reserved_qty >= 0,
        reserved_qty <= quantity.  StockLedgerStore checks the same rules
        before flush so callers get InsufficientStockError instead of an
        IntegrityError.
    Key uniqueness -- UNIQUE (warehouse_id, product_id, variant_key).
    Lost-update protection -- version_id_col: every UPDATE is issued as
        ``... WHERE id = :id AND version = :expected`` and a mismatch raises
        StaleDataError, classified as OptimisticLockError.

Failure modes:
    - IntegrityError on a concurrent insert of the same key (handled by
      StockLedgerStore with a savepoint and re-read).
    - ImmutabilityViolationError on DELETE (balances are never deleted;
      zero is a valid terminal state).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class StockBalance(Base):
    """
    Current on-hand and reserved quantity for one balance key.

    Contract:
        Created lazily by StockLedgerStore on the first movement touching the
        key and mutated only inside a TransactionRunner unit of work.

    Non-goals:
        - This model does NOT derive itself from movements; the movement
          ledger is the audit trail and ReconciliationService compares the two.
    """

    __tablename__ = "stock_balances"

    __table_args__ = (
        UniqueConstraint(
            "warehouse_id", "product_id", "variant_key",
            name="uq_stock_balance_key",
        ),
        CheckConstraint("quantity >= 0", name="ck_stock_balance_quantity_non_negative"),
        CheckConstraint("reserved_qty >= 0", name="ck_stock_balance_reserved_non_negative"),
        CheckConstraint(
            "reserved_qty <= quantity", name="ck_stock_balance_reserved_within_quantity"
        ),
        Index("idx_stock_balance_item", "product_id", "variant_key"),
        Index("idx_stock_balance_warehouse", "warehouse_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # NULL means the base product
    variant_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # Non-null mirror of variant_id for the unique constraint
    variant_key: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    reserved_qty: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def available(self) -> int:
        """On hand minus reserved, never below zero."""
        return max(0, self.quantity - self.reserved_qty)

    def __repr__(self) -> str:
        return (
            f"<StockBalance wh={self.warehouse_id} product={self.product_id} "
            f"variant={self.variant_key} qty={self.quantity} "
            f"reserved={self.reserved_qty} v{self.version}>"
        )
