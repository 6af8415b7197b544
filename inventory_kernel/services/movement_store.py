"""
MovementRecordStore -- append-only persistence for stock movements.

Responsibility:
    Appends movement records, looks them up by idempotency token, and pages
    through an item's history newest first.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    IMMUTABILITY -- the store exposes no update or delete.  The ORM
        listeners in db/immutability.py reject any attempt made elsewhere.
    IDEMPOTENCY -- at most one record per token (unique constraint).

Pagination:
    Keyset pagination, see selectors/pagination.py.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from inventory_kernel.db.types import variant_key_for
from inventory_kernel.domain.dtos import MovementPage
from inventory_kernel.domain.movements import ValidatedMovement, warehouse_fields
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.selectors.pagination import paginate

logger = get_logger("services.movement_store")


class MovementRecordStore:
    """
    Append-only store of movement records.

    Contract:
        ``append`` only flushes; the surrounding unit of work commits.

    Non-goals:
        - No update or delete.  Corrections are new ADJUSTMENT movements.
    """

    def __init__(self, session: Session):
        self._session = session

    def append(
        self,
        movement: ValidatedMovement,
        *,
        actor_id: UUID,
        created_at: datetime,
        payload_hash: str,
        idempotency_token: str | None = None,
    ) -> StockMovement:
        """
        Insert one movement record.

        Postconditions:
            The returned row has a generated id and is flushed.

        Raises:
            IntegrityError: The idempotency token is already taken.
        """
        from_wh, to_wh = warehouse_fields(movement)
        record = StockMovement(
            movement_type=movement.movement_type.value,
            product_id=movement.product_id,
            variant_id=movement.variant_id,
            variant_key=variant_key_for(movement.variant_id),
            quantity=movement.quantity,
            from_warehouse_id=from_wh,
            to_warehouse_id=to_wh,
            reference=movement.reference,
            notes=movement.notes,
            created_by=actor_id,
            created_at=created_at,
            idempotency_token=idempotency_token,
            payload_hash=payload_hash,
        )
        self._session.add(record)
        self._session.flush()
        logger.debug(
            "movement_appended",
            extra={"movement_id": str(record.id), "movement_type": record.movement_type},
        )
        return record

    def get(self, movement_id: UUID) -> StockMovement | None:
        return self._session.get(StockMovement, movement_id)

    def find_by_idempotency_token(self, token: str) -> StockMovement | None:
        return self._session.execute(
            select(StockMovement)
            .where(StockMovement.idempotency_token == token)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_for_item(
        self,
        product_id: UUID,
        variant_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> MovementPage:
        """
        History of one item, newest first.

        ``variant_id=None`` selects the base product's movements only.  With
        ``warehouse_id`` only movements into or out of that warehouse are
        returned.
        """
        stmt = select(StockMovement).where(
            StockMovement.product_id == product_id,
            StockMovement.variant_key == variant_key_for(variant_id),
        )
        if warehouse_id is not None:
            stmt = stmt.where(
                or_(
                    StockMovement.from_warehouse_id == warehouse_id,
                    StockMovement.to_warehouse_id == warehouse_id,
                )
            )
        return paginate(self._session, stmt, cursor, limit)
