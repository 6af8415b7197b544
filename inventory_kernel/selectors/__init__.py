"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "MovementSelector",
    "StockSelector",
]
