"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.ledger_store import StockLedgerStore
from inventory_kernel.services.movement_applicator import MovementApplicator
from inventory_kernel.services.movement_service import MovementService, MovementServiceConfig
from inventory_kernel.services.movement_store import MovementRecordStore
from inventory_kernel.services.reconciliation_service import ReconciliationService
from inventory_kernel.services.reservation_service import ReservationService

__all__ = [
    "MovementApplicator",
    "MovementRecordStore",
    "MovementService",
    "MovementServiceConfig",
    "ReconciliationService",
    "ReservationService",
    "StockLedgerStore",
]
