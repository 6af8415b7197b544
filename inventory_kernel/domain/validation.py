"""
Movement Validator -- structural and referential checks for movement intents.

Responsibility:
    Turns an untrusted ``MovementIntent`` into a typed ``ValidatedMovement``
    (Receipt, Shipment, Transfer, Adjustment) or rejects it with every
    problem found.

Architecture position:
    Kernel > Domain -- pure.  The only outside call is to the injected
    CatalogLookup.  Never reads balances: stock levels can change between
    validation and commit, so the applicator re-checks them under lock.

Rules by type:

    Type        | Required                          | Quantity   | Warehouses
    ------------|-----------------------------------|------------|------------
    IN          | to_warehouse_id                   | int > 0    |
    OUT         | from_warehouse_id                 | int > 0    |
    TRANSFER    | from_warehouse_id, to_warehouse_id| int > 0    | must differ
    ADJUSTMENT  | to_warehouse_id, non-empty notes  | int != 0   |

    Quantities are bounded by MAX_QUANTITY in absolute value.

    All types: product_id and actor_id are required UUIDs, variant_id is an
    optional UUID, reference <= 100 chars, notes <= 1000 chars, idempotency
    token <= 200 chars, and warehouse fields that do not belong to the type
    are rejected.

Failure modes:
    - MovementValidationError carrying every structural violation.
    - InactiveResourceError listing every inactive product, variant, or
      warehouse.  Only evaluated once the structure is valid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from inventory_kernel.db.types import (
    IDEMPOTENCY_TOKEN_MAX_LENGTH,
    MAX_QUANTITY,
    NOTES_MAX_LENGTH,
    REFERENCE_MAX_LENGTH,
)
from inventory_kernel.domain.catalog import CatalogLookup
from inventory_kernel.domain.movements import (
    Adjustment,
    MovementIntent,
    MovementType,
    Receipt,
    Shipment,
    Transfer,
    ValidatedMovement,
)
from inventory_kernel.exceptions import InactiveResourceError, MovementValidationError


@dataclass(frozen=True)
class FieldViolation:
    """One violated rule."""

    field: str
    code: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class ValidatedSubmission:
    """A validated movement plus the request metadata that travels with it."""

    movement: ValidatedMovement
    actor_id: UUID
    idempotency_token: str | None


# Which warehouse fields each type requires; the rest are not allowed.
_WAREHOUSE_FIELDS: dict[MovementType, tuple[bool, bool]] = {
    MovementType.IN: (False, True),
    MovementType.OUT: (True, False),
    MovementType.TRANSFER: (True, True),
    MovementType.ADJUSTMENT: (False, True),
}


class _Collector:
    def __init__(self) -> None:
        self.violations: list[FieldViolation] = []

    def add(self, field: str, code: str, message: str) -> None:
        self.violations.append(FieldViolation(field, code, message))

    def uuid(self, field: str, value: Any, required: bool) -> UUID | None:
        if value is None or value == "":
            if required:
                self.add(field, "required", f"{field} is required")
            return None
        if isinstance(value, UUID):
            return value
        if isinstance(value, str):
            try:
                return UUID(value)
            except ValueError:
                pass
        self.add(field, "invalid_uuid", f"{field} must be a valid UUID")
        return None

    def text(self, field: str, value: Any, max_length: int) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            self.add(field, "invalid_type", f"{field} must be a string")
            return None
        if len(value) > max_length:
            self.add(
                field, "too_long", f"{field} must be at most {max_length} characters"
            )
            return None
        return value


def _parse_type(raw: Any, c: _Collector) -> MovementType | None:
    if raw is None or raw == "":
        c.add("type", "required", "type is required")
        return None
    try:
        return MovementType(raw)
    except ValueError:
        allowed = ", ".join(t.value for t in MovementType)
        c.add("type", "invalid_choice", f"type must be one of {allowed}")
        return None


def _parse_quantity(raw: Any, movement_type: MovementType | None, c: _Collector) -> int | None:
    if raw is None:
        c.add("quantity", "required", "quantity is required")
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        c.add("quantity", "not_integer", "quantity must be an integer")
        return None
    if movement_type is MovementType.ADJUSTMENT:
        if raw == 0:
            c.add("quantity", "zero_quantity", "adjustment quantity must be non-zero")
            return None
    elif movement_type is not None and raw <= 0:
        c.add("quantity", "not_positive", "quantity must be greater than zero")
        return None
    if abs(raw) > MAX_QUANTITY:
        c.add("quantity", "too_large", f"quantity must be at most {MAX_QUANTITY} in magnitude")
        return None
    return raw


def _check_structure(intent: MovementIntent) -> tuple[list[FieldViolation], dict[str, Any]]:
    c = _Collector()

    movement_type = _parse_type(intent.type, c)
    product_id = c.uuid("product_id", intent.product_id, required=True)
    variant_id = c.uuid("variant_id", intent.variant_id, required=False)
    actor_id = c.uuid("actor_id", intent.actor_id, required=True)
    quantity = _parse_quantity(intent.quantity, movement_type, c)
    reference = c.text("reference", intent.reference, REFERENCE_MAX_LENGTH)
    notes = c.text("notes", intent.notes, NOTES_MAX_LENGTH)

    token = intent.idempotency_token
    if token is not None:
        if not isinstance(token, str) or not token.strip():
            c.add("idempotency_token", "blank", "idempotency_token must be a non-empty string")
            token = None
        elif len(token) > IDEMPOTENCY_TOKEN_MAX_LENGTH:
            c.add(
                "idempotency_token",
                "too_long",
                f"idempotency_token must be at most {IDEMPOTENCY_TOKEN_MAX_LENGTH} characters",
            )
            token = None

    from_wh = to_wh = None
    if movement_type is not None:
        needs_from, needs_to = _WAREHOUSE_FIELDS[movement_type]
        for field, needed, raw in (
            ("from_warehouse_id", needs_from, intent.from_warehouse_id),
            ("to_warehouse_id", needs_to, intent.to_warehouse_id),
        ):
            if needed:
                parsed = c.uuid(field, raw, required=True)
                if field == "from_warehouse_id":
                    from_wh = parsed
                else:
                    to_wh = parsed
            elif raw is not None:
                c.add(
                    field,
                    "not_allowed",
                    f"{field} is not allowed for {movement_type.value} movements",
                )

        if (
            movement_type is MovementType.TRANSFER
            and from_wh is not None
            and from_wh == to_wh
        ):
            c.add(
                "to_warehouse_id",
                "same_warehouse",
                "source and destination warehouses must differ",
            )

        if movement_type is MovementType.ADJUSTMENT and (notes is None or not notes.strip()):
            # A too-long note has already been reported.
            if not any(v.field == "notes" for v in c.violations):
                c.add("notes", "required", "notes are required for adjustments")

    fields = {
        "movement_type": movement_type,
        "product_id": product_id,
        "variant_id": variant_id,
        "actor_id": actor_id,
        "quantity": quantity,
        "from_warehouse_id": from_wh,
        "to_warehouse_id": to_wh,
        "reference": reference if reference else None,
        "notes": notes if notes and notes.strip() else None,
        "idempotency_token": token,
    }
    return c.violations, fields


def _check_references(fields: dict[str, Any], catalog: CatalogLookup) -> list[dict[str, str]]:
    inactive: list[dict[str, str]] = []
    if not catalog.is_product_active(fields["product_id"]):
        inactive.append({"kind": "product", "id": str(fields["product_id"])})
    if fields["variant_id"] is not None and not catalog.is_variant_active(fields["variant_id"]):
        inactive.append({"kind": "variant", "id": str(fields["variant_id"])})
    for name in ("from_warehouse_id", "to_warehouse_id"):
        warehouse_id = fields[name]
        if warehouse_id is not None and not catalog.is_warehouse_active(warehouse_id):
            inactive.append({"kind": "warehouse", "id": str(warehouse_id)})
    return inactive


def _build(fields: dict[str, Any]) -> ValidatedMovement:
    common = {
        "product_id": fields["product_id"],
        "variant_id": fields["variant_id"],
        "quantity": fields["quantity"],
        "reference": fields["reference"],
    }
    movement_type = fields["movement_type"]
    if movement_type is MovementType.IN:
        return Receipt(to_warehouse_id=fields["to_warehouse_id"], notes=fields["notes"], **common)
    if movement_type is MovementType.OUT:
        return Shipment(
            from_warehouse_id=fields["from_warehouse_id"], notes=fields["notes"], **common
        )
    if movement_type is MovementType.TRANSFER:
        return Transfer(
            from_warehouse_id=fields["from_warehouse_id"],
            to_warehouse_id=fields["to_warehouse_id"],
            notes=fields["notes"],
            **common,
        )
    return Adjustment(to_warehouse_id=fields["to_warehouse_id"], notes=fields["notes"], **common)


def validate_submission(intent: MovementIntent, catalog: CatalogLookup) -> ValidatedSubmission:
    """
    Validate an intent and keep its actor and idempotency token.

    Raises:
        MovementValidationError: One or more structural rules are violated.
        InactiveResourceError: A referenced resource is inactive.
    """
    violations, fields = _check_structure(intent)
    if violations:
        raise MovementValidationError([v.as_dict() for v in violations])

    inactive = _check_references(fields, catalog)
    if inactive:
        raise InactiveResourceError(inactive)

    return ValidatedSubmission(
        movement=_build(fields),
        actor_id=fields["actor_id"],
        idempotency_token=fields["idempotency_token"],
    )


def validate_movement(intent: MovementIntent, catalog: CatalogLookup) -> ValidatedMovement:
    """Validate an intent; see validate_submission for the failure modes."""
    return validate_submission(intent, catalog).movement
