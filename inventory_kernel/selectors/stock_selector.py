"""
StockSelector -- read-only availability and stock position queries.

Answers "how much of X is available in warehouse W" before a caller attempts
an OUT or TRANSFER, aggregates balances per warehouse and per item, and lists
balances that fell below their product's minimum stock.
Every figure is advisory.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.db.types import variant_key_for
from inventory_kernel.domain.catalog import StockThresholdLookup
from inventory_kernel.domain.dtos import BalanceView, WarehouseSummary
from inventory_kernel.domain.movements import BalanceKey
from inventory_kernel.models.stock_balance import StockBalance
from inventory_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[StockBalance]):
    """Read-side queries over StockBalance."""

    def balance(
        self, warehouse_id: UUID, product_id: UUID, variant_id: UUID | None = None
    ) -> BalanceView:
        """Balance for one key (zero view when no row exists)."""
        key = BalanceKey.of(warehouse_id, product_id, variant_id)
        row = self.session.execute(
            select(StockBalance).where(
                StockBalance.warehouse_id == warehouse_id,
                StockBalance.product_id == product_id,
                StockBalance.variant_key == key.variant_key,
            )
        ).scalar_one_or_none()
        return BalanceView.zero(key) if row is None else BalanceView.from_model(row)

    def available_stock(
        self, warehouse_id: UUID, product_id: UUID, variant_id: UUID | None = None
    ) -> int:
        """On hand minus reserved for one key, never negative."""
        return self.balance(warehouse_id, product_id, variant_id).available

    def balances_for_warehouse(self, warehouse_id: UUID) -> list[BalanceView]:
        """All balance rows of a warehouse, including zero balances."""
        rows = self.session.execute(
            select(StockBalance)
            .where(StockBalance.warehouse_id == warehouse_id)
            .order_by(StockBalance.product_id, StockBalance.variant_key)
        ).scalars()
        return [BalanceView.from_model(r) for r in rows]

    def total_stock(self, product_id: UUID, variant_id: UUID | None = None) -> int:
        """On-hand quantity of one item summed across all warehouses."""
        total = self.session.execute(
            select(func.coalesce(func.sum(StockBalance.quantity), 0)).where(
                StockBalance.product_id == product_id,
                StockBalance.variant_key == variant_key_for(variant_id),
            )
        ).scalar_one()
        return int(total)

    def low_stock_items(
        self, thresholds: StockThresholdLookup, warehouse_id: UUID | None = None
    ) -> list[BalanceView]:
        """
        Balances whose on-hand quantity is below the product's minimum stock.

        Products with a minimum of 0 are never low.  Reservations do not
        count: the comparison uses on-hand quantity.
        """
        stmt = select(StockBalance).order_by(
            StockBalance.warehouse_id, StockBalance.product_id, StockBalance.variant_key
        )
        if warehouse_id is not None:
            stmt = stmt.where(StockBalance.warehouse_id == warehouse_id)

        minimums: dict[UUID, int] = {}
        low = []
        for row in self.session.execute(stmt).scalars():
            if row.product_id not in minimums:
                minimums[row.product_id] = thresholds.min_stock(row.product_id)
            if row.quantity < minimums[row.product_id]:
                low.append(BalanceView.from_model(row))
        return low

    def warehouse_summary(
        self, warehouse_id: UUID, thresholds: StockThresholdLookup | None = None
    ) -> WarehouseSummary:
        """Item count, quantity totals, and low-stock count for one warehouse."""
        item_count, total_quantity, total_reserved = self.session.execute(
            select(
                func.count(StockBalance.id),
                func.coalesce(func.sum(StockBalance.quantity), 0),
                func.coalesce(func.sum(StockBalance.reserved_qty), 0),
            ).where(StockBalance.warehouse_id == warehouse_id)
        ).one()
        return WarehouseSummary(
            warehouse_id=warehouse_id,
            item_count=int(item_count),
            total_quantity=int(total_quantity),
            total_reserved=int(total_reserved),
            low_stock_count=(
                len(self.low_stock_items(thresholds, warehouse_id))
                if thresholds is not None
                else 0
            ),
        )
