"""
DTOs -- immutable data returned across the service boundary.

Responsibility:
    Services and selectors return these frozen dataclasses, never ORM
    instances, so callers cannot mutate a balance or movement row by
    accident and results stay valid after the session closes.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from services and selectors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from inventory_kernel.domain.movements import BalanceKey, MovementType

if TYPE_CHECKING:
    from inventory_kernel.models.movement import StockMovement
    from inventory_kernel.models.stock_balance import StockBalance


@dataclass(frozen=True)
class BalanceView:
    """Read-only snapshot of one balance row (zero view if the row is absent)."""

    warehouse_id: UUID
    product_id: UUID
    variant_id: UUID | None
    quantity: int
    reserved_qty: int
    version: int = 0
    updated_at: datetime | None = None

    @property
    def available(self) -> int:
        return max(0, self.quantity - self.reserved_qty)

    @property
    def key(self) -> BalanceKey:
        return BalanceKey.of(self.warehouse_id, self.product_id, self.variant_id)

    @classmethod
    def zero(cls, key: BalanceKey) -> BalanceView:
        return cls(
            warehouse_id=key.warehouse_id,
            product_id=key.product_id,
            variant_id=key.variant_id,
            quantity=0,
            reserved_qty=0,
        )

    @classmethod
    def from_model(cls, row: StockBalance) -> BalanceView:
        return cls(
            warehouse_id=row.warehouse_id,
            product_id=row.product_id,
            variant_id=row.variant_id,
            quantity=row.quantity,
            reserved_qty=row.reserved_qty,
            version=row.version,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "warehouse_id": str(self.warehouse_id),
            "product_id": str(self.product_id),
            "variant_id": str(self.variant_id) if self.variant_id else None,
            "quantity": self.quantity,
            "reserved_qty": self.reserved_qty,
            "available": self.available,
        }


@dataclass(frozen=True)
class CommittedMovement:
    """
    A persisted movement.

    ``replayed`` is True when an idempotent resubmission returned the
    existing record instead of applying the movement again.
    """

    id: UUID
    movement_type: MovementType
    product_id: UUID
    variant_id: UUID | None
    quantity: int
    from_warehouse_id: UUID | None
    to_warehouse_id: UUID | None
    reference: str | None
    notes: str | None
    created_by: UUID
    created_at: datetime
    idempotency_token: str | None = None
    replayed: bool = False

    @classmethod
    def from_model(cls, row: StockMovement, replayed: bool = False) -> CommittedMovement:
        return cls(
            id=row.id,
            movement_type=MovementType(row.movement_type),
            product_id=row.product_id,
            variant_id=row.variant_id,
            quantity=row.quantity,
            from_warehouse_id=row.from_warehouse_id,
            to_warehouse_id=row.to_warehouse_id,
            reference=row.reference,
            notes=row.notes,
            created_by=row.created_by,
            created_at=row.created_at,
            idempotency_token=row.idempotency_token,
            replayed=replayed,
        )

    def to_dict(self) -> dict[str, Any]:
        def _s(value: UUID | None) -> str | None:
            return str(value) if value is not None else None

        return {
            "id": str(self.id),
            "type": self.movement_type.value,
            "product_id": str(self.product_id),
            "variant_id": _s(self.variant_id),
            "quantity": self.quantity,
            "from_warehouse_id": _s(self.from_warehouse_id),
            "to_warehouse_id": _s(self.to_warehouse_id),
            "reference": self.reference,
            "notes": self.notes,
            "created_by": str(self.created_by),
            "created_at": self.created_at.isoformat(),
            "idempotency_token": self.idempotency_token,
            "replayed": self.replayed,
        }


@dataclass(frozen=True)
class MovementPage:
    """One page of movements, newest first.

    ``next_cursor`` is None on the last page.  Passing it back resumes
    exactly after the last item of this page.
    """

    items: tuple[CommittedMovement, ...]
    next_cursor: str | None = None

    def __len__(self) -> int:
        return len(self.items)


class OutcomeStatus(str, Enum):
    """Result status of submit_movement."""

    COMMITTED = "COMMITTED"
    REPLAYED = "REPLAYED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INACTIVE_RESOURCE = "INACTIVE_RESOURCE"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    IDEMPOTENCY_CONFLICT = "IDEMPOTENCY_CONFLICT"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    STORAGE_FAULT = "STORAGE_FAULT"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class MovementOutcome:
    """
    Result of MovementService.submit_movement().

    Contains the committed movement on success, or the failure kind, the
    exception's code, and a structured detail payload.
    """

    status: OutcomeStatus
    movement: CommittedMovement | None = None
    error_code: str | None = None
    message: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)
    retryable: bool = False

    @classmethod
    def committed(cls, movement: CommittedMovement) -> MovementOutcome:
        status = OutcomeStatus.REPLAYED if movement.replayed else OutcomeStatus.COMMITTED
        return cls(status=status, movement=movement)

    @classmethod
    def rejected(
        cls,
        status: OutcomeStatus,
        error: Exception,
        detail: dict[str, Any] | None = None,
    ) -> MovementOutcome:
        """Create a failure outcome from a kernel exception."""
        return cls(
            status=status,
            error_code=getattr(error, "code", None),
            message=str(error),
            detail=detail or {},
            retryable=getattr(error, "retryable", False),
        )

    @property
    def is_success(self) -> bool:
        """True for a new commit and for an idempotent replay."""
        return self.status in (OutcomeStatus.COMMITTED, OutcomeStatus.REPLAYED)

    @property
    def error_kind(self) -> str | None:
        return None if self.is_success else self.status.value

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status.value}
        if self.movement is not None:
            result["movement"] = self.movement.to_dict()
        if not self.is_success:
            result["error_code"] = self.error_code
            result["message"] = self.message
            result["detail"] = self.detail
            result["retryable"] = self.retryable
        return result


@dataclass(frozen=True)
class MovementFilters:
    """Optional filters for MovementSelector.find_by_filters()."""

    movement_type: MovementType | None = None
    product_id: UUID | None = None
    variant_id: UUID | None = None
    from_warehouse_id: UUID | None = None
    to_warehouse_id: UUID | None = None
    warehouse_id: UUID | None = None  # either endpoint
    created_by: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


@dataclass(frozen=True)
class WarehouseSummary:
    """Aggregate stock position of one warehouse.

    ``low_stock_count`` counts balances below their product's minimum
    stock; it stays 0 when no thresholds were supplied.
    """

    warehouse_id: UUID
    item_count: int
    total_quantity: int
    total_reserved: int
    low_stock_count: int = 0

    @property
    def total_available(self) -> int:
        return max(0, self.total_quantity - self.total_reserved)

    def to_dict(self) -> dict[str, Any]:
        return {
            "warehouse_id": str(self.warehouse_id),
            "item_count": self.item_count,
            "total_quantity": self.total_quantity,
            "total_reserved": self.total_reserved,
            "total_available": self.total_available,
            "low_stock_count": self.low_stock_count,
        }


@dataclass(frozen=True)
class MovementStats:
    """Movement activity of one warehouse over a period.

    ``total_in`` counts units that arrived (IN, inbound TRANSFER, positive
    ADJUSTMENT) and ``total_out`` units that left (OUT, outbound TRANSFER,
    negative ADJUSTMENT, by magnitude).
    """

    warehouse_id: UUID
    movement_count: int
    count_by_type: dict[str, int]
    total_in: int
    total_out: int

    @property
    def net_change(self) -> int:
        return self.total_in - self.total_out


@dataclass(frozen=True)
class BalanceDiscrepancy:
    """A balance whose stored quantity differs from its movement history."""

    key: BalanceKey
    stored_quantity: int
    replayed_quantity: int

    @property
    def difference(self) -> int:
        return self.stored_quantity - self.replayed_quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "warehouse_id": str(self.key.warehouse_id),
            "product_id": str(self.key.product_id),
            "variant_key": self.key.variant_key,
            "stored_quantity": self.stored_quantity,
            "replayed_quantity": self.replayed_quantity,
            "difference": self.difference,
        }


@dataclass(frozen=True)
class ReconciliationReport:
    """Outcome of replaying the movement ledger against stored balances."""

    checked_at: datetime
    balances_checked: int
    movements_replayed: int
    discrepancies: tuple[BalanceDiscrepancy, ...] = ()

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked_at": self.checked_at.isoformat(),
            "balances_checked": self.balances_checked,
            "movements_replayed": self.movements_replayed,
            "consistent": self.is_consistent,
            "discrepancies": [d.to_dict() for d in self.discrepancies],
        }
