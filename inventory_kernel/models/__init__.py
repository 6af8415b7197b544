"""ORM models for the inventory kernel."""

from inventory_kernel.models.movement import MovementType, StockMovement
from inventory_kernel.models.stock_balance import StockBalance

__all__ = [
    "MovementType",
    "StockBalance",
    "StockMovement",
]
