"""
Catalog lookup boundary.

Products, variants, and warehouses are owned by collaborators outside the
kernel.  The kernel sees them as opaque UUIDs plus an "active" flag, asked
through the ``CatalogLookup`` protocol before any balance is touched.
Reports that flag low stock ask ``StockThresholdLookup`` for a product's
minimum stock level.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class CatalogLookup(Protocol):
    """Active-flag checks consumed from the catalog and warehouse owners."""

    def is_product_active(self, product_id: UUID) -> bool: ...

    def is_variant_active(self, variant_id: UUID) -> bool: ...

    def is_warehouse_active(self, warehouse_id: UUID) -> bool: ...


@runtime_checkable
class StockThresholdLookup(Protocol):
    """Minimum stock levels per product.  0 means no minimum."""

    def min_stock(self, product_id: UUID) -> int: ...


class StaticCatalog:
    """
    In-process CatalogLookup and StockThresholdLookup backed by fixed id sets.

    Every id is active unless it is listed as inactive.  When a ``known_*``
    set is given, ids outside it are treated as inactive too (an unknown
    warehouse cannot receive stock).
    Products missing from ``min_stock`` have no minimum.
    """

    def __init__(
        self,
        inactive_products: Iterable[UUID] = (),
        inactive_variants: Iterable[UUID] = (),
        inactive_warehouses: Iterable[UUID] = (),
        known_products: Iterable[UUID] | None = None,
        known_variants: Iterable[UUID] | None = None,
        known_warehouses: Iterable[UUID] | None = None,
        min_stock: Mapping[UUID, int] | None = None,
    ):
        self._inactive_products = frozenset(inactive_products)
        self._inactive_variants = frozenset(inactive_variants)
        self._inactive_warehouses = frozenset(inactive_warehouses)
        self._known_products = frozenset(known_products) if known_products is not None else None
        self._known_variants = frozenset(known_variants) if known_variants is not None else None
        self._known_warehouses = (
            frozenset(known_warehouses) if known_warehouses is not None else None
        )
        self._min_stock = dict(min_stock or {})

    @staticmethod
    def _active(item: UUID, inactive: frozenset, known: frozenset | None) -> bool:
        if item in inactive:
            return False
        return known is None or item in known

    def is_product_active(self, product_id: UUID) -> bool:
        return self._active(product_id, self._inactive_products, self._known_products)

    def is_variant_active(self, variant_id: UUID) -> bool:
        return self._active(variant_id, self._inactive_variants, self._known_variants)

    def is_warehouse_active(self, warehouse_id: UUID) -> bool:
        return self._active(warehouse_id, self._inactive_warehouses, self._known_warehouses)

    def min_stock(self, product_id: UUID) -> int:
        return self._min_stock.get(product_id, 0)

    def deactivate_warehouse(self, warehouse_id: UUID) -> StaticCatalog:
        """Return a copy with one more inactive warehouse."""
        return StaticCatalog(
            inactive_products=self._inactive_products,
            inactive_variants=self._inactive_variants,
            inactive_warehouses=self._inactive_warehouses | {warehouse_id},
            known_products=self._known_products,
            known_variants=self._known_variants,
            known_warehouses=self._known_warehouses,
            min_stock=self._min_stock,
        )
