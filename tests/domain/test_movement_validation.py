"""
Movement validation tests.

Structural rules per movement type, violation collection, normalization of
optional text, and referential checks against the catalog.
"""

from uuid import UUID, uuid4

import pytest

from inventory_kernel.domain.catalog import StaticCatalog
from inventory_kernel.domain.movements import (
    Adjustment,
    MovementIntent,
    Receipt,
    Shipment,
    Transfer,
)
from inventory_kernel.domain.validation import validate_movement, validate_submission
from inventory_kernel.exceptions import InactiveResourceError, MovementValidationError

PRODUCT = uuid4()
WH_A = uuid4()
WH_B = uuid4()
ACTOR = uuid4()


def _intent(**overrides) -> MovementIntent:
    fields = dict(
        type="IN",
        product_id=PRODUCT,
        quantity=10,
        actor_id=ACTOR,
        to_warehouse_id=WH_A,
    )
    fields.update(overrides)
    return MovementIntent(**fields)


def _codes(exc_info) -> set[tuple[str, str]]:
    return {(v["field"], v["code"]) for v in exc_info.value.violations}


class TestValidMovements:
    """Each type produces its own validated variant."""

    def test_receipt(self):
        m = validate_movement(_intent(reference="PO-1"), StaticCatalog())
        assert isinstance(m, Receipt)
        assert m.to_warehouse_id == WH_A
        assert m.quantity == 10
        assert m.reference == "PO-1"

    def test_shipment(self):
        m = validate_movement(
            _intent(type="OUT", to_warehouse_id=None, from_warehouse_id=WH_A),
            StaticCatalog(),
        )
        assert isinstance(m, Shipment)
        assert m.from_warehouse_id == WH_A

    def test_transfer(self):
        m = validate_movement(
            _intent(type="TRANSFER", from_warehouse_id=WH_A, to_warehouse_id=WH_B),
            StaticCatalog(),
        )
        assert isinstance(m, Transfer)
        assert (m.from_warehouse_id, m.to_warehouse_id) == (WH_A, WH_B)

    def test_negative_adjustment_with_notes(self):
        m = validate_movement(
            _intent(type="ADJUSTMENT", quantity=-3, notes="cycle count"),
            StaticCatalog(),
        )
        assert isinstance(m, Adjustment)
        assert m.quantity == -3
        assert m.notes == "cycle count"

    def test_string_uuids_are_parsed(self):
        m = validate_movement(
            _intent(product_id=str(PRODUCT), to_warehouse_id=str(WH_A)),
            StaticCatalog(),
        )
        assert isinstance(m.product_id, UUID)
        assert m.product_id == PRODUCT

    def test_blank_reference_and_notes_normalize_to_none(self):
        m = validate_movement(_intent(reference="", notes="   "), StaticCatalog())
        assert m.reference is None
        assert m.notes is None

    def test_submission_keeps_actor_and_token(self):
        sub = validate_submission(_intent(idempotency_token="req-1"), StaticCatalog())
        assert sub.actor_id == ACTOR
        assert sub.idempotency_token == "req-1"


class TestStructuralViolations:
    """Each broken rule is reported with its field and code."""

    def test_unknown_type(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(type="MOVE"), StaticCatalog())
        assert ("type", "invalid_choice") in _codes(exc_info)

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_non_positive_quantity_for_receipt(self, quantity):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(quantity=quantity), StaticCatalog())
        assert ("quantity", "not_positive") in _codes(exc_info)

    @pytest.mark.parametrize("quantity", [1.5, "10", True])
    def test_quantity_must_be_integer(self, quantity):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(quantity=quantity), StaticCatalog())
        assert ("quantity", "not_integer") in _codes(exc_info)

    @pytest.mark.parametrize(
        "type_, quantity", [("IN", 2**63), ("ADJUSTMENT", -(2**63)), ("ADJUSTMENT", 10**30)]
    )
    def test_quantity_beyond_column_range(self, type_, quantity):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(type=type_, quantity=quantity, notes="x"), StaticCatalog())
        assert ("quantity", "too_large") in _codes(exc_info)

    def test_largest_quantity_is_accepted(self):
        m = validate_movement(_intent(quantity=2**63 - 1), StaticCatalog())
        assert m.quantity == 2**63 - 1

    def test_zero_adjustment(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(
                _intent(type="ADJUSTMENT", quantity=0, notes="x"), StaticCatalog()
            )
        assert ("quantity", "zero_quantity") in _codes(exc_info)

    def test_adjustment_without_notes(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(type="ADJUSTMENT", quantity=-3), StaticCatalog())
        assert ("notes", "required") in _codes(exc_info)

    def test_out_missing_source(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(type="OUT", to_warehouse_id=None), StaticCatalog())
        assert ("from_warehouse_id", "required") in _codes(exc_info)

    def test_out_rejects_destination(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(
                _intent(type="OUT", from_warehouse_id=WH_A, to_warehouse_id=WH_B),
                StaticCatalog(),
            )
        assert ("to_warehouse_id", "not_allowed") in _codes(exc_info)

    def test_transfer_same_warehouse(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(
                _intent(type="TRANSFER", from_warehouse_id=WH_A, to_warehouse_id=WH_A),
                StaticCatalog(),
            )
        assert ("to_warehouse_id", "same_warehouse") in _codes(exc_info)

    def test_reference_too_long(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(reference="R" * 101), StaticCatalog())
        assert ("reference", "too_long") in _codes(exc_info)

    def test_reference_at_limit_is_accepted(self):
        m = validate_movement(_intent(reference="R" * 100), StaticCatalog())
        assert len(m.reference) == 100

    def test_notes_too_long(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(
                _intent(type="ADJUSTMENT", quantity=1, notes="n" * 1001), StaticCatalog()
            )
        assert _codes(exc_info) == {("notes", "too_long")}

    def test_invalid_uuid(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(product_id="not-a-uuid"), StaticCatalog())
        assert ("product_id", "invalid_uuid") in _codes(exc_info)

    def test_missing_actor(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(actor_id=None), StaticCatalog())
        assert ("actor_id", "required") in _codes(exc_info)

    def test_blank_idempotency_token(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(_intent(idempotency_token="  "), StaticCatalog())
        assert ("idempotency_token", "blank") in _codes(exc_info)

    def test_every_violation_is_collected(self):
        with pytest.raises(MovementValidationError) as exc_info:
            validate_movement(
                _intent(product_id=None, quantity=0, reference="R" * 200),
                StaticCatalog(),
            )
        assert _codes(exc_info) >= {
            ("product_id", "required"),
            ("quantity", "not_positive"),
            ("reference", "too_long"),
        }
        assert exc_info.value.code == "VALIDATION_ERROR"


class TestReferentialChecks:
    """Inactive resources are rejected after the structure is valid."""

    def test_inactive_product(self):
        catalog = StaticCatalog(inactive_products=[PRODUCT])
        with pytest.raises(InactiveResourceError) as exc_info:
            validate_movement(_intent(), catalog)
        assert exc_info.value.resources == [{"kind": "product", "id": str(PRODUCT)}]

    def test_all_inactive_resources_listed(self):
        variant = uuid4()
        catalog = StaticCatalog(
            inactive_variants=[variant],
            inactive_warehouses=[WH_A, WH_B],
        )
        with pytest.raises(InactiveResourceError) as exc_info:
            validate_movement(
                _intent(
                    type="TRANSFER",
                    variant_id=variant,
                    from_warehouse_id=WH_A,
                    to_warehouse_id=WH_B,
                ),
                catalog,
            )
        kinds = [r["kind"] for r in exc_info.value.resources]
        assert kinds == ["variant", "warehouse", "warehouse"]

    def test_unknown_warehouse_when_known_set_given(self):
        catalog = StaticCatalog(known_warehouses=[WH_B])
        with pytest.raises(InactiveResourceError):
            validate_movement(_intent(), catalog)

    def test_deactivated_copy_leaves_original_untouched(self):
        catalog = StaticCatalog()
        retired = catalog.deactivate_warehouse(WH_A)
        assert catalog.is_warehouse_active(WH_A)
        assert not retired.is_warehouse_active(WH_A)
        with pytest.raises(InactiveResourceError):
            validate_movement(_intent(), retired)

    def test_structure_checked_before_catalog(self):
        catalog = StaticCatalog(inactive_products=[PRODUCT])
        with pytest.raises(MovementValidationError):
            validate_movement(_intent(quantity=0), catalog)
