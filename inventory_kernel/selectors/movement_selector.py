"""
MovementSelector -- filtered movement search and per-warehouse statistics.

Responsibility:
    Read-only queries over the movement ledger beyond a single item's
    history: multi-criteria search with keyset pagination, and activity
    totals for a warehouse over a period.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select

from inventory_kernel.db.types import variant_key_for
from inventory_kernel.domain.dtos import MovementFilters, MovementPage, MovementStats
from inventory_kernel.domain.movements import MovementType
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.pagination import paginate


class MovementSelector(BaseSelector[StockMovement]):
    """Read-side queries over StockMovement."""

    def find_by_filters(
        self,
        filters: MovementFilters,
        cursor: str | None = None,
        limit: int = 50,
    ) -> MovementPage:
        """
        Movements matching every given filter, newest first.

        ``variant_id`` narrows to one variant only when ``product_id`` is
        also given; without it all variants of the product match.
        Both ``date_from`` and ``date_to`` are inclusive.
        """
        stmt = select(StockMovement)
        if filters.movement_type is not None:
            stmt = stmt.where(StockMovement.movement_type == MovementType(filters.movement_type).value)
        if filters.product_id is not None:
            stmt = stmt.where(StockMovement.product_id == filters.product_id)
            if filters.variant_id is not None:
                stmt = stmt.where(
                    StockMovement.variant_key == variant_key_for(filters.variant_id)
                )
        if filters.from_warehouse_id is not None:
            stmt = stmt.where(StockMovement.from_warehouse_id == filters.from_warehouse_id)
        if filters.to_warehouse_id is not None:
            stmt = stmt.where(StockMovement.to_warehouse_id == filters.to_warehouse_id)
        if filters.warehouse_id is not None:
            stmt = stmt.where(
                or_(
                    StockMovement.from_warehouse_id == filters.warehouse_id,
                    StockMovement.to_warehouse_id == filters.warehouse_id,
                )
            )
        if filters.created_by is not None:
            stmt = stmt.where(StockMovement.created_by == filters.created_by)
        if filters.date_from is not None:
            stmt = stmt.where(StockMovement.created_at >= filters.date_from)
        if filters.date_to is not None:
            stmt = stmt.where(StockMovement.created_at <= filters.date_to)
        return paginate(self.session, stmt, cursor, limit)

    def warehouse_stats(
        self,
        warehouse_id: UUID,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> MovementStats:
        """
        Movement counts and unit totals for one warehouse.

        A transfer counts as outbound at its source and inbound at its
        destination.  An adjustment counts by its sign.  Both date bounds are
        inclusive, and ``count_by_type`` lists every movement type, zero or
        not.
        """
        stmt = select(StockMovement).where(
            or_(
                StockMovement.from_warehouse_id == warehouse_id,
                StockMovement.to_warehouse_id == warehouse_id,
            )
        )
        if date_from is not None:
            stmt = stmt.where(StockMovement.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(StockMovement.created_at <= date_to)

        counts: Counter[str] = Counter({t.value: 0 for t in MovementType})
        total_in = total_out = 0
        for m in self.session.execute(stmt).scalars():
            counts[m.movement_type] += 1
            movement_type = MovementType(m.movement_type)
            if movement_type is MovementType.IN:
                total_in += m.quantity
            elif movement_type is MovementType.OUT:
                total_out += m.quantity
            elif movement_type is MovementType.TRANSFER:
                if m.to_warehouse_id == warehouse_id:
                    total_in += m.quantity
                else:
                    total_out += m.quantity
            elif m.quantity > 0:
                total_in += m.quantity
            else:
                total_out += -m.quantity

        return MovementStats(
            warehouse_id=warehouse_id,
            movement_count=sum(counts.values()),
            count_by_type=dict(counts),
            total_in=total_in,
            total_out=total_out,
        )
