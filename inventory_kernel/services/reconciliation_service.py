"""
ReconciliationService -- verify stored balances against the movement ledger.

Responsibility:
    Replays every committed movement into per-key quantity sums and compares
    them with the stored ``StockBalance.quantity``.  Any difference means a
    balance was written outside the applicator.

Architecture position:
    Kernel > Services.  Read-only: it reports, it never repairs.  A
    correction is an ADJUSTMENT movement submitted by an operator.

Invariants checked:
    CONSERVATION and ATOMICITY, indirectly: if every movement and its
    balance deltas committed together, replayed sums equal stored balances.

Consistency:
    Movements and balances are read in one transaction.  On PostgreSQL that
    transaction runs at REPEATABLE READ so both reads see the same snapshot
    while writers keep committing.  SQLite transactions already hold the
    database write lock.  Pass a session with no transaction in progress.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import BalanceDiscrepancy, ReconciliationReport
from inventory_kernel.domain.movements import BalanceKey, MovementType
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.models.stock_balance import StockBalance

logger = get_logger("services.reconciliation")


def replay_movement(movement: StockMovement) -> list[tuple[BalanceKey, int]]:
    """Balance deltas implied by a stored movement row."""
    q = movement.quantity
    movement_type = MovementType(movement.movement_type)

    def key(warehouse_id: UUID) -> BalanceKey:
        return BalanceKey(warehouse_id, movement.product_id, movement.variant_key)

    if movement_type is MovementType.OUT:
        return [(key(movement.from_warehouse_id), -q)]
    if movement_type is MovementType.TRANSFER:
        return [(key(movement.from_warehouse_id), -q), (key(movement.to_warehouse_id), q)]
    # IN and ADJUSTMENT (signed)
    return [(key(movement.to_warehouse_id), q)]


class ReconciliationService:
    """Compare the movement ledger with the balance table."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def reconcile(self, product_id: UUID | None = None) -> ReconciliationReport:
        """
        Replay movements and report every mismatching balance key.

        Args:
            product_id: Restrict the check to one product.
        """
        self._begin_snapshot()
        movements_stmt = select(StockMovement)
        balances_stmt = select(StockBalance)
        if product_id is not None:
            movements_stmt = movements_stmt.where(StockMovement.product_id == product_id)
            balances_stmt = balances_stmt.where(StockBalance.product_id == product_id)

        replayed: dict[BalanceKey, int] = defaultdict(int)
        movement_count = 0
        for movement in self._session.execute(movements_stmt).scalars():
            movement_count += 1
            for key, delta in replay_movement(movement):
                replayed[key] += delta

        stored: dict[BalanceKey, int] = {
            BalanceKey(row.warehouse_id, row.product_id, row.variant_key): row.quantity
            for row in self._session.execute(balances_stmt).scalars()
        }

        discrepancies = []
        for key in sorted(set(stored) | set(replayed), key=BalanceKey.sort_key):
            stored_qty = stored.get(key, 0)
            replayed_qty = replayed.get(key, 0)
            if stored_qty != replayed_qty:
                discrepancies.append(
                    BalanceDiscrepancy(
                        key=key,
                        stored_quantity=stored_qty,
                        replayed_quantity=replayed_qty,
                    )
                )

        report = ReconciliationReport(
            checked_at=self._clock.now(),
            balances_checked=len(stored),
            movements_replayed=movement_count,
            discrepancies=tuple(discrepancies),
        )

        if report.is_consistent:
            logger.info(
                "reconciliation_passed",
                extra={
                    "balances_checked": report.balances_checked,
                    "movements_replayed": report.movements_replayed,
                },
            )
        else:
            logger.error(
                "reconciliation_discrepancies_found",
                extra={
                    "discrepancy_count": len(discrepancies),
                    "invariant": "conservation",
                    "first_key": str(discrepancies[0].key),
                },
            )
        return report

    def _begin_snapshot(self) -> None:
        if self._session.get_bind().dialect.name != "postgresql":
            return
        if self._session.in_transaction():
            logger.warning("reconciliation_without_snapshot")
            return
        self._session.connection(execution_options={"isolation_level": "REPEATABLE READ"})
