"""
StockLedgerStore -- keyed balance storage with row locking.

Responsibility:
    Reads, locks, lazily creates, and mutates ``StockBalance`` rows for
    (warehouse, product, variant) keys.  The only code path that writes
    ``quantity`` or ``reserved_qty``.

Architecture position:
    Kernel > Services -- imperative shell.  Used inside a TransactionRunner
    unit of work by MovementApplicator and ReservationService.

Invariants enforced:
    NON_NEGATIVE_STOCK -- ``upsert_delta`` refuses any decrement that would
        leave quantity < 0 or quantity < reserved_qty; ``adjust_reserved``
        refuses to reserve more than is available.  The table's CHECK
        constraints back this up.
    CANONICAL_LOCK_ORDER -- ``lock_balances`` acquires rows sorted by
        (warehouse_id, product_id, variant_key).

Failure modes:
    - InsufficientStockError from upsert_delta / adjust_reserved.
    - MovementValidationError (balance_overflow) when an increment would
      exceed the BigInteger column range.
    - IntegrityError on concurrent creation of the same key: handled with a
      savepoint and a locked re-read.
    - StaleDataError on flush if the row version moved (classified as
      OptimisticLockError by TransactionRunner).

Non-goals:
    - Does NOT call ``session.commit()``; the runner owns the transaction.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.db.types import MAX_QUANTITY
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import BalanceView
from inventory_kernel.domain.movements import BalanceKey
from inventory_kernel.exceptions import InsufficientStockError, MovementValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock_balance import StockBalance

logger = get_logger("services.ledger_store")


def _key_clause(key: BalanceKey):
    return (
        StockBalance.warehouse_id == key.warehouse_id,
        StockBalance.product_id == key.product_id,
        StockBalance.variant_key == key.variant_key,
    )


class StockLedgerStore:
    """
    Balance row access for one unit of work.

    Contract:
        Bound to a session that is inside an open transaction.  Rows locked
        through this store stay locked until that transaction ends.

    Guarantees:
        - At most one row per key (unique constraint plus race handling).
        - A row, once created, is never deleted.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._locked: dict[BalanceKey, StockBalance] = {}

    def get_balance(self, key: BalanceKey) -> BalanceView:
        """Current balance for a key, or a zero view if no row exists yet."""
        row = self._session.execute(
            select(StockBalance).where(*_key_clause(key))
        ).scalar_one_or_none()
        if row is None:
            return BalanceView.zero(key)
        return BalanceView.from_model(row)

    def available(self, key: BalanceKey) -> int:
        """On hand minus reserved, never below zero."""
        return self.get_balance(key).available

    def lock_balances(self, keys: Iterable[BalanceKey]) -> dict[BalanceKey, StockBalance]:
        """
        Lock (creating if absent) the rows for ``keys`` in canonical order.

        Postconditions:
            Every returned row is held with ``SELECT ... FOR UPDATE`` on
            PostgreSQL.  On SQLite the transaction already holds the
            database write lock.
        """
        ordered = sorted(set(keys), key=BalanceKey.sort_key)
        for key in ordered:
            if key not in self._locked:
                self._locked[key] = self._lock_or_create(key)
        return {key: self._locked[key] for key in ordered}

    def upsert_delta(self, key: BalanceKey, delta: int) -> BalanceView:
        """
        Apply a signed quantity delta to a balance row.

        Raises:
            InsufficientStockError: The decrement would leave the quantity
                negative or below the reserved quantity.
            MovementValidationError: The increment would push the quantity
                past MAX_QUANTITY.
        """
        row = self.lock_balances([key])[key]
        new_quantity = row.quantity + delta

        # INVARIANT: NON_NEGATIVE_STOCK
        if delta < 0 and (new_quantity < 0 or new_quantity < row.reserved_qty):
            logger.info(
                "insufficient_stock",
                extra={
                    "balance_key": str(key),
                    "on_hand": row.quantity,
                    "reserved": row.reserved_qty,
                    "requested": -delta,
                },
            )
            raise InsufficientStockError(
                warehouse_id=key.warehouse_id,
                product_id=key.product_id,
                variant_id=key.variant_id,
                on_hand=row.quantity,
                reserved=row.reserved_qty,
                requested=-delta,
            )

        if new_quantity > MAX_QUANTITY:
            logger.info(
                "balance_overflow",
                extra={"balance_key": str(key), "on_hand": row.quantity, "delta": delta},
            )
            raise MovementValidationError(
                [
                    {
                        "field": "quantity",
                        "code": "balance_overflow",
                        "message": (
                            f"balance {key} would exceed {MAX_QUANTITY} "
                            f"(on hand {row.quantity}, delta {delta})"
                        ),
                    }
                ]
            )

        row.quantity = new_quantity
        row.updated_at = self._clock.now()
        self._session.flush()
        logger.debug(
            "balance_updated",
            extra={"balance_key": str(key), "delta": delta, "quantity": new_quantity},
        )
        return BalanceView.from_model(row)

    def adjust_reserved(self, key: BalanceKey, delta: int) -> BalanceView:
        """
        Change the reserved quantity of a balance row.

        A positive delta reserves stock and fails if fewer than ``delta``
        units are available.  A negative delta releases stock; releasing more
        than is reserved clamps the reservation at zero.

        Raises:
            InsufficientStockError: Reservation exceeds available stock.
        """
        row = self.lock_balances([key])[key]
        available = row.quantity - row.reserved_qty

        if delta > available:
            raise InsufficientStockError(
                warehouse_id=key.warehouse_id,
                product_id=key.product_id,
                variant_id=key.variant_id,
                on_hand=row.quantity,
                reserved=row.reserved_qty,
                requested=delta,
            )

        row.reserved_qty = max(0, row.reserved_qty + delta)
        row.updated_at = self._clock.now()
        self._session.flush()
        return BalanceView.from_model(row)

    def _select_locked(self, key: BalanceKey):
        return (
            select(StockBalance)
            .where(*_key_clause(key))
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def _lock_or_create(self, key: BalanceKey) -> StockBalance:
        row = self._session.execute(self._select_locked(key)).scalar_one_or_none()
        if row is not None:
            return row

        # First movement for this key.  Another writer may be creating the
        # same row; the savepoint keeps the outer transaction usable.
        now = self._clock.now()
        savepoint = self._session.begin_nested()
        try:
            row = StockBalance(
                warehouse_id=key.warehouse_id,
                product_id=key.product_id,
                variant_id=key.variant_id,
                variant_key=key.variant_key,
                quantity=0,
                reserved_qty=0,
                created_at=now,
                updated_at=now,
            )
            self._session.add(row)
            self._session.flush()
            savepoint.commit()
            logger.info("balance_row_created", extra={"balance_key": str(key)})
            return row
        except IntegrityError:
            logger.debug("balance_row_race_retry", extra={"balance_key": str(key)})
            savepoint.rollback()
            return self._session.execute(self._select_locked(key)).scalar_one()
