"""
MovementService -- public operations of the inventory movement engine.

Responsibility:
    The boundary the API layer, CLI, or UI calls.  Validates movement
    requests, hands them to the MovementApplicator, and converts the kernel's
    exception taxonomy into a MovementOutcome.  Also answers availability,
    balance, and history queries.

Architecture position:
    Kernel > Services -- imperative shell.  Receives its collaborators
    (session factory, catalog, clock, settings) by injection; it never
    reaches for the module-level engine.

Preconditions trusted, not checked:
    The caller has authenticated the actor and confirmed it may move stock
    in the affected warehouses.

Outcome mapping:

    Exception                  | OutcomeStatus
    ---------------------------|----------------------
    (none, new commit)         | COMMITTED
    (none, token replay)       | REPLAYED
    MovementValidationError    | VALIDATION_ERROR
    InactiveResourceError      | INACTIVE_RESOURCE
    InsufficientStockError     | INSUFFICIENT_STOCK
    IdempotencyConflictError   | IDEMPOTENCY_CONFLICT
    MovementCancelledError     | CANCELLED
    LockTimeoutError           | LOCK_TIMEOUT
    StorageFaultError          | STORAGE_FAULT
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.db.transaction import RetryPolicy
from inventory_kernel.domain.cancellation import CancellationToken
from inventory_kernel.domain.catalog import CatalogLookup
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    BalanceView,
    MovementOutcome,
    MovementPage,
    OutcomeStatus,
)
from inventory_kernel.domain.movements import BalanceKey, MovementIntent
from inventory_kernel.domain.validation import validate_submission
from inventory_kernel.exceptions import (
    IdempotencyConflictError,
    InactiveResourceError,
    InsufficientStockError,
    LockTimeoutError,
    MovementCancelledError,
    MovementValidationError,
    StorageFaultError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.services.ledger_store import StockLedgerStore
from inventory_kernel.services.movement_applicator import MovementApplicator
from inventory_kernel.services.movement_store import MovementRecordStore

logger = get_logger("services.movement_service")


@dataclass(frozen=True)
class MovementServiceConfig:
    """Tunables for MovementService (built from EngineConfig by the bridges)."""

    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    default_page_size: int = 50
    max_page_size: int = 500

    def __post_init__(self) -> None:
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError("require 1 <= default_page_size <= max_page_size")


def _as_uuid(value: Any) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class MovementService:
    """
    Submit movements and query stock.

    Contract:
        ``submit_movement`` never raises for the movement failure taxonomy;
        it returns a MovementOutcome.  Programming errors (wrong argument
        types for query methods, closed engine) still raise.

    Guarantees:
        - A rejected movement leaves no balance change and no record.
        - Availability reads are advisory; the applicator re-checks under
          lock at commit time.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        catalog: CatalogLookup,
        clock: Clock | None = None,
        config: MovementServiceConfig | None = None,
    ):
        self._session_factory = session_factory
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._config = config or MovementServiceConfig()
        self._applicator = MovementApplicator(
            session_factory, self._clock, self._config.retry_policy
        )

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def submit_movement(
        self,
        type: Any,
        product_id: Any,
        quantity: Any,
        *,
        actor_id: Any,
        variant_id: Any = None,
        from_warehouse_id: Any = None,
        to_warehouse_id: Any = None,
        reference: Any = None,
        notes: Any = None,
        idempotency_token: Any = None,
        cancellation: CancellationToken | None = None,
    ) -> MovementOutcome:
        """
        Validate and apply one movement.

        Returns:
            MovementOutcome with status COMMITTED or REPLAYED and the
            committed movement, or a failure status with the error code and
            a detail payload the caller can act on.
        """
        intent = MovementIntent(
            type=type,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
            reference=reference,
            notes=notes,
            actor_id=actor_id,
            idempotency_token=idempotency_token,
        )
        with LogContext.bind(actor_id=actor_id, idempotency_token=idempotency_token):
            outcome = self._submit(intent, cancellation)
            if not outcome.is_success:
                logger.info(
                    "movement_rejected",
                    extra={
                        "status": outcome.status.value,
                        "error_code": outcome.error_code,
                        "movement_type": str(getattr(type, "value", type)),
                    },
                )
        return outcome

    def _submit(
        self, intent: MovementIntent, cancellation: CancellationToken | None
    ) -> MovementOutcome:
        try:
            submission = validate_submission(intent, self._catalog)
            committed = self._applicator.apply(
                submission.movement,
                actor_id=submission.actor_id,
                idempotency_token=submission.idempotency_token,
                cancellation=cancellation,
            )
            return MovementOutcome.committed(committed)
        except MovementValidationError as e:
            return MovementOutcome.rejected(
                OutcomeStatus.VALIDATION_ERROR, e, {"violations": e.violations}
            )
        except InactiveResourceError as e:
            return MovementOutcome.rejected(
                OutcomeStatus.INACTIVE_RESOURCE, e, {"resources": e.resources}
            )
        except InsufficientStockError as e:
            return MovementOutcome.rejected(
                OutcomeStatus.INSUFFICIENT_STOCK,
                e,
                {
                    "warehouse_id": str(e.warehouse_id),
                    "product_id": str(e.product_id),
                    "variant_id": str(e.variant_id) if e.variant_id else None,
                    "on_hand": e.on_hand,
                    "reserved": e.reserved,
                    "available": e.available,
                    "requested": e.requested,
                },
            )
        except IdempotencyConflictError as e:
            return MovementOutcome.rejected(
                OutcomeStatus.IDEMPOTENCY_CONFLICT,
                e,
                {"existing_movement_id": str(e.movement_id)},
            )
        except MovementCancelledError as e:
            return MovementOutcome.rejected(OutcomeStatus.CANCELLED, e, {"stage": e.stage})
        except LockTimeoutError as e:
            return MovementOutcome.rejected(
                OutcomeStatus.LOCK_TIMEOUT,
                e,
                {"timeout_ms": e.timeout_ms, "attempts": e.attempts},
            )
        except StorageFaultError as e:
            return MovementOutcome.rejected(
                OutcomeStatus.STORAGE_FAULT,
                e,
                {"operation": e.operation, "attempts": e.attempts},
            )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def query_availability(
        self, warehouse_id: Any, product_id: Any, variant_id: Any = None
    ) -> int:
        """Advisory available quantity (on hand minus reserved, >= 0)."""
        with self._session_factory() as session:
            return StockSelector(session).available_stock(
                _as_uuid(warehouse_id),
                _as_uuid(product_id),
                _as_uuid(variant_id) if variant_id is not None else None,
            )

    def get_balance(
        self, warehouse_id: Any, product_id: Any, variant_id: Any = None
    ) -> BalanceView:
        """Current balance for a key; a zero view if no movement touched it yet."""
        key = BalanceKey.of(
            _as_uuid(warehouse_id),
            _as_uuid(product_id),
            _as_uuid(variant_id) if variant_id is not None else None,
        )
        with self._session_factory() as session:
            return StockLedgerStore(session, self._clock).get_balance(key)

    def list_movements(
        self,
        product_id: Any,
        variant_id: Any = None,
        warehouse_id: Any = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> MovementPage:
        """
        One page of an item's movement history, newest first.

        ``limit`` defaults to the configured page size and is capped at the
        configured maximum.

        Raises:
            MovementValidationError: The cursor is malformed.
        """
        page_size = self._config.default_page_size if limit is None else limit
        page_size = max(1, min(page_size, self._config.max_page_size))
        with self._session_factory() as session:
            return MovementRecordStore(session).list_for_item(
                _as_uuid(product_id),
                variant_id=_as_uuid(variant_id) if variant_id is not None else None,
                warehouse_id=_as_uuid(warehouse_id) if warehouse_id is not None else None,
                cursor=cursor,
                limit=page_size,
            )
