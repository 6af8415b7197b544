"""
MovementApplicator -- the transactional core of the movement engine.

Responsibility:
    Applies a validated movement to the stock ledger: locks the balance rows
    it touches, applies the deltas, and appends the movement record, all as
    one atomic unit of work.

Architecture position:
    Kernel > Services -- imperative shell, owns the unit of work through
    TransactionRunner.  Called by MovementService.

Invariants enforced:
    ATOMICITY -- balance updates and the movement record share one
        transaction.  Any failure rolls everything back.
    NON_NEGATIVE_STOCK -- via StockLedgerStore.upsert_delta, re-checked
        under lock for every decrement (OUT, TRANSFER source, negative
        ADJUSTMENT).
    CONSERVATION -- a TRANSFER's -q/+q pair is applied in the same unit.
    CANONICAL_LOCK_ORDER -- all touched rows are locked up front, sorted.
    IDEMPOTENCY -- the token is looked up after the locks are held, so a
        concurrent duplicate on the same item sees the first commit.  A
        duplicate on a different item loses on the unique constraint and
        the winner's record is returned.

Failure modes:
    - InsufficientStockError: not enough unreserved stock.
    - IdempotencyConflictError: token already bound to another payload.
    - MovementCancelledError: cancelled before the persist phase.
    - LockTimeoutError / StorageFaultError: from TransactionRunner.

Audit relevance:
    movement_committed / movement_replayed are logged with the movement id,
    type, actor, and every balance delta applied.
"""

from __future__ import annotations

import time
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.db.transaction import RetryPolicy, TransactionRunner
from inventory_kernel.domain.cancellation import CancellationToken
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import CommittedMovement
from inventory_kernel.domain.movements import (
    ValidatedMovement,
    deltas_for,
    payload_hash,
)
from inventory_kernel.exceptions import (
    IdempotencyConflictError,
    StorageFaultError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.services.ledger_store import StockLedgerStore
from inventory_kernel.services.movement_store import MovementRecordStore

logger = get_logger("services.movement_applicator")


class _IdempotencyRace(Exception):
    """Another transaction committed the same token first; abort this unit."""


class MovementApplicator:
    """
    Applies validated movements as atomic units of work.

    Contract:
        ``apply`` returns a CommittedMovement whose id and timestamp were
        assigned by the kernel, or raises a kernel exception with nothing
        persisted.

    Guarantees:
        - A movement with an idempotency token is applied at most once.
        - Balance rows are only locked in canonical order.
        - The cancellation token is honoured up to the persist phase and
          ignored afterwards.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self._clock = clock or SystemClock()
        self._runner = TransactionRunner(session_factory, retry_policy)

    def apply(
        self,
        movement: ValidatedMovement,
        *,
        actor_id: UUID,
        idempotency_token: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> CommittedMovement:
        """
        Apply one validated movement.

        Preconditions:
            ``movement`` came out of ``validate_movement``.

        Raises:
            InsufficientStockError, IdempotencyConflictError,
            MovementCancelledError, LockTimeoutError, StorageFaultError.
        """
        t0 = time.monotonic()
        digest = payload_hash(movement)

        def work(session: Session) -> CommittedMovement:
            return self._apply_in_unit(
                session, movement, actor_id, idempotency_token, digest, cancellation
            )

        with LogContext.bind(actor_id=actor_id, idempotency_token=idempotency_token):
            try:
                committed = self._runner.run(
                    work, operation="apply_movement", cancellation=cancellation
                )
            except _IdempotencyRace:
                committed = self._runner.run(
                    lambda session: self._resolve_race(session, idempotency_token, digest),
                    operation="resolve_idempotency_race",
                )

            logger.info(
                "movement_replayed" if committed.replayed else "movement_committed",
                extra={
                    "movement_id": str(committed.id),
                    "movement_type": committed.movement_type.value,
                    "quantity": committed.quantity,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
        return committed

    def _apply_in_unit(
        self,
        session: Session,
        movement: ValidatedMovement,
        actor_id: UUID,
        idempotency_token: str | None,
        digest: str,
        cancellation: CancellationToken | None,
    ) -> CommittedMovement:
        ledger = StockLedgerStore(session, self._clock)
        records = MovementRecordStore(session)
        deltas = deltas_for(movement)

        # INVARIANT: CANONICAL_LOCK_ORDER
        ledger.lock_balances(d.key for d in deltas)
        self._checkpoint(cancellation, "locks_acquired")

        # INVARIANT: IDEMPOTENCY -- looked up under lock
        if idempotency_token is not None:
            existing = records.find_by_idempotency_token(idempotency_token)
            if existing is not None:
                return self._replay(existing, idempotency_token, digest)

        self._checkpoint(cancellation, "before_persist")

        # Persist phase.  The cancellation token is not consulted past here.
        for delta in deltas:
            ledger.upsert_delta(delta.key, delta.quantity_delta)

        created_at = self._clock.now()
        if idempotency_token is None:
            record = records.append(
                movement, actor_id=actor_id, created_at=created_at, payload_hash=digest
            )
        else:
            savepoint = session.begin_nested()
            try:
                record = records.append(
                    movement,
                    actor_id=actor_id,
                    created_at=created_at,
                    payload_hash=digest,
                    idempotency_token=idempotency_token,
                )
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                logger.warning(
                    "concurrent_insert_conflict",
                    extra={"idempotency_token": idempotency_token},
                )
                raise _IdempotencyRace() from None

        return CommittedMovement.from_model(record)

    def _resolve_race(
        self, session: Session, idempotency_token: str | None, digest: str
    ) -> CommittedMovement:
        existing = MovementRecordStore(session).find_by_idempotency_token(idempotency_token)
        if existing is None:
            raise StorageFaultError(
                "resolve_idempotency_race",
                f"no movement found for token '{idempotency_token}' after conflict",
            )
        return self._replay(existing, idempotency_token, digest)

    @staticmethod
    def _replay(existing: StockMovement, idempotency_token: str, digest: str) -> CommittedMovement:
        if existing.payload_hash != digest:
            logger.warning(
                "idempotency_conflict",
                extra={"existing_movement_id": str(existing.id)},
            )
            raise IdempotencyConflictError(idempotency_token, existing.id)
        return CommittedMovement.from_model(existing, replayed=True)

    @staticmethod
    def _checkpoint(cancellation: CancellationToken | None, stage: str) -> None:
        if cancellation is not None:
            cancellation.raise_if_cancelled(stage)
