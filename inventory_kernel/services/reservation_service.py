"""
ReservationService -- earmark and release on-hand stock.

Responsibility:
    Writes ``reserved_qty`` on balance rows for order-fulfilment flows.
    Reservations do not move goods, so no movement record is written; they
    only shrink what OUT and TRANSFER movements may take.

Architecture position:
    Kernel > Services -- imperative shell.  Shares TransactionRunner and
    StockLedgerStore with MovementApplicator, so every balance mutation
    still happens inside an atomic unit under row lock.

Invariants enforced:
    NON_NEGATIVE_STOCK -- 0 <= reserved_qty <= quantity after every call.

Failure modes:
    - InsufficientStockError: reserve() asked for more than is available.
    - MovementValidationError: quantity is not a positive integer within
      MAX_QUANTITY.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.db.transaction import RetryPolicy, TransactionRunner
from inventory_kernel.db.types import MAX_QUANTITY
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import BalanceView
from inventory_kernel.domain.movements import BalanceKey
from inventory_kernel.exceptions import MovementValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.ledger_store import StockLedgerStore

logger = get_logger("services.reservation")


class ReservationService:
    """Reserve and release stock on one balance key."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self._clock = clock or SystemClock()
        self._runner = TransactionRunner(session_factory, retry_policy)

    def reserve(self, key: BalanceKey, quantity: int, actor_id: UUID) -> BalanceView:
        """
        Reserve ``quantity`` units.

        Raises:
            InsufficientStockError: Fewer than ``quantity`` units available.
        """
        _require_positive(quantity)
        view = self._runner.run(
            lambda session: StockLedgerStore(session, self._clock).adjust_reserved(key, quantity),
            operation="reserve_stock",
        )
        logger.info(
            "stock_reserved",
            extra={
                "balance_key": str(key),
                "quantity": quantity,
                "reserved_qty": view.reserved_qty,
                "actor_id": str(actor_id),
            },
        )
        return view

    def release(self, key: BalanceKey, quantity: int, actor_id: UUID) -> BalanceView:
        """Release up to ``quantity`` reserved units (clamped at zero)."""
        _require_positive(quantity)
        view = self._runner.run(
            lambda session: StockLedgerStore(session, self._clock).adjust_reserved(key, -quantity),
            operation="release_stock",
        )
        logger.info(
            "stock_released",
            extra={
                "balance_key": str(key),
                "quantity": quantity,
                "reserved_qty": view.reserved_qty,
                "actor_id": str(actor_id),
            },
        )
        return view


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        violation = ("not_integer", "quantity must be an integer")
    elif quantity <= 0:
        violation = ("not_positive", "quantity must be greater than zero")
    elif quantity > MAX_QUANTITY:
        violation = ("too_large", f"quantity must be at most {MAX_QUANTITY}")
    else:
        return
    code, message = violation
    raise MovementValidationError([{"field": "quantity", "code": code, "message": message}])
