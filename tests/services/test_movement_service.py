"""
MovementService end-to-end tests.

Submits movements through the public service against a real database and
checks balances, outcomes, and the structured detail returned on rejection.
"""

from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import OutcomeStatus
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.models.stock_balance import StockBalance


class TestStockScenarios:
    """Worked examples of the stock rules."""

    def test_ship_everything_then_one_more(
        self, movement_service, receive, actor_id, warehouse_a, product_id
    ):
        receive(warehouse_a, product_id, 10)

        first = movement_service.submit_movement(
            "OUT", product_id, 10, actor_id=actor_id, from_warehouse_id=warehouse_a
        )
        assert first.status == OutcomeStatus.COMMITTED
        assert movement_service.get_balance(warehouse_a, product_id).quantity == 0

        second = movement_service.submit_movement(
            "OUT", product_id, 1, actor_id=actor_id, from_warehouse_id=warehouse_a
        )
        assert second.status == OutcomeStatus.INSUFFICIENT_STOCK
        assert second.error_code == "INSUFFICIENT_STOCK"
        assert second.detail["available"] == 0
        assert second.detail["requested"] == 1
        assert not second.retryable

    def test_transfer_moves_stock_between_warehouses(
        self, movement_service, receive, actor_id, warehouse_a, warehouse_b, product_id
    ):
        receive(warehouse_a, product_id, 10)

        outcome = movement_service.submit_movement(
            "TRANSFER",
            product_id,
            5,
            actor_id=actor_id,
            from_warehouse_id=warehouse_a,
            to_warehouse_id=warehouse_b,
        )

        assert outcome.status == OutcomeStatus.COMMITTED
        assert movement_service.get_balance(warehouse_a, product_id).quantity == 5
        assert movement_service.get_balance(warehouse_b, product_id).quantity == 5

    def test_adjustment_requires_notes(
        self, movement_service, receive, actor_id, warehouse_a, product_id
    ):
        receive(warehouse_a, product_id, 5)

        rejected = movement_service.submit_movement(
            "ADJUSTMENT", product_id, -3, actor_id=actor_id, to_warehouse_id=warehouse_a, notes=""
        )
        assert rejected.status == OutcomeStatus.VALIDATION_ERROR
        assert {"field": "notes", "code": "required"}.items() <= rejected.detail["violations"][0].items()
        assert movement_service.get_balance(warehouse_a, product_id).quantity == 5

        accepted = movement_service.submit_movement(
            "ADJUSTMENT",
            product_id,
            -3,
            actor_id=actor_id,
            to_warehouse_id=warehouse_a,
            notes="recount",
        )
        assert accepted.status == OutcomeStatus.COMMITTED
        assert movement_service.get_balance(warehouse_a, product_id).quantity == 2


class TestCommittedMovement:

    def test_kernel_assigns_id_timestamp_and_actor(
        self, movement_service, actor_id, warehouse_a, product_id, deterministic_clock
    ):
        outcome = movement_service.submit_movement(
            "IN",
            product_id,
            3,
            actor_id=str(actor_id),
            to_warehouse_id=str(warehouse_a),
            reference="PO-100",
        )

        m = outcome.movement
        assert m.id is not None
        assert m.created_by == actor_id
        assert m.created_at.tzinfo is not None
        assert m.reference == "PO-100"
        assert m.from_warehouse_id is None
        assert not m.replayed

    def test_movement_and_balance_rows_written(
        self, movement_service, session_factory, actor_id, warehouse_a, product_id, variant_id
    ):
        movement_service.submit_movement(
            "IN", product_id, 4, actor_id=actor_id, variant_id=variant_id, to_warehouse_id=warehouse_a
        )

        with session_factory() as s:
            movements = s.query(StockMovement).all()
            balances = s.query(StockBalance).all()
        assert len(movements) == 1
        assert movements[0].variant_key == str(variant_id)
        assert len(balances) == 1
        assert balances[0].variant_id == variant_id
        assert balances[0].quantity == 4

    def test_variants_are_separate_balances(
        self, movement_service, receive, warehouse_a, product_id, variant_id
    ):
        receive(warehouse_a, product_id, 2)
        receive(warehouse_a, product_id, 9, variant_id=variant_id)

        assert movement_service.get_balance(warehouse_a, product_id).quantity == 2
        assert movement_service.get_balance(warehouse_a, product_id, variant_id).quantity == 9

    def test_outcome_to_dict(self, receive, warehouse_a, product_id):
        data = receive(warehouse_a, product_id, 1).to_dict()
        assert data["status"] == "COMMITTED"
        assert data["movement"]["type"] == "IN"
        assert "error_code" not in data


class TestRejections:
    """Every rejection leaves the ledger untouched."""

    def test_validation_error_lists_violations(self, movement_service, actor_id, product_id):
        outcome = movement_service.submit_movement("OUT", product_id, 0, actor_id=actor_id)

        assert outcome.status == OutcomeStatus.VALIDATION_ERROR
        fields = {v["field"] for v in outcome.detail["violations"]}
        assert fields == {"quantity", "from_warehouse_id"}

    def test_inactive_warehouse(
        self, session_factory, deterministic_clock, service_config, actor_id, warehouse_a, product_id
    ):
        from inventory_kernel.domain.catalog import StaticCatalog
        from inventory_kernel.services.movement_service import MovementService

        service = MovementService(
            session_factory,
            StaticCatalog(inactive_warehouses=[warehouse_a]),
            clock=deterministic_clock,
            config=service_config,
        )
        outcome = service.submit_movement(
            "IN", product_id, 1, actor_id=actor_id, to_warehouse_id=warehouse_a
        )

        assert outcome.status == OutcomeStatus.INACTIVE_RESOURCE
        assert outcome.detail["resources"] == [{"kind": "warehouse", "id": str(warehouse_a)}]
        with session_factory() as s:
            assert s.query(StockMovement).count() == 0
            assert s.query(StockBalance).count() == 0

    def test_failed_transfer_changes_neither_side(
        self, movement_service, receive, actor_id, warehouse_a, warehouse_b, product_id
    ):
        receive(warehouse_a, product_id, 3)

        outcome = movement_service.submit_movement(
            "TRANSFER",
            product_id,
            4,
            actor_id=actor_id,
            from_warehouse_id=warehouse_a,
            to_warehouse_id=warehouse_b,
        )

        assert outcome.status == OutcomeStatus.INSUFFICIENT_STOCK
        assert movement_service.get_balance(warehouse_a, product_id).quantity == 3
        assert movement_service.get_balance(warehouse_b, product_id).quantity == 0

    def test_negative_adjustment_below_zero(
        self, movement_service, receive, actor_id, warehouse_a, product_id
    ):
        receive(warehouse_a, product_id, 2)

        outcome = movement_service.submit_movement(
            "ADJUSTMENT", product_id, -5, actor_id=actor_id, to_warehouse_id=warehouse_a, notes="shrinkage"
        )

        assert outcome.status == OutcomeStatus.INSUFFICIENT_STOCK
        assert outcome.detail["on_hand"] == 2

    def test_oversized_quantity_is_rejected(self, movement_service, actor_id, warehouse_a, product_id):
        outcome = movement_service.submit_movement(
            "IN", product_id, 2**63, actor_id=actor_id, to_warehouse_id=warehouse_a
        )

        assert outcome.status == OutcomeStatus.VALIDATION_ERROR
        assert outcome.detail["violations"][0]["code"] == "too_large"
        assert movement_service.query_availability(warehouse_a, product_id) == 0

    def test_balance_overflow_is_rejected(
        self, movement_service, receive, session_factory, actor_id, warehouse_a, product_id
    ):
        receive(warehouse_a, product_id, 2**62)

        outcome = movement_service.submit_movement(
            "IN", product_id, 2**62, actor_id=actor_id, to_warehouse_id=warehouse_a
        )

        assert outcome.status == OutcomeStatus.VALIDATION_ERROR
        assert outcome.detail["violations"][0]["code"] == "balance_overflow"
        assert movement_service.get_balance(warehouse_a, product_id).quantity == 2**62
        with session_factory() as s:
            assert s.query(StockMovement).count() == 1

    def test_transfer_into_full_balance_changes_neither_side(
        self, movement_service, receive, actor_id, warehouse_a, warehouse_b, product_id
    ):
        receive(warehouse_a, product_id, 5)
        receive(warehouse_b, product_id, 2**63 - 3)

        outcome = movement_service.submit_movement(
            "TRANSFER",
            product_id,
            5,
            actor_id=actor_id,
            from_warehouse_id=warehouse_a,
            to_warehouse_id=warehouse_b,
        )

        assert outcome.status == OutcomeStatus.VALIDATION_ERROR
        assert movement_service.get_balance(warehouse_a, product_id).quantity == 5
        assert movement_service.get_balance(warehouse_b, product_id).quantity == 2**63 - 3

    def test_rejection_is_logged(self, movement_service, captured_logs, actor_id, product_id):
        movement_service.submit_movement("IN", product_id, -1, actor_id=actor_id)

        rejected = [r for r in captured_logs() if r["message"] == "movement_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["status"] == "VALIDATION_ERROR"
        assert rejected[0]["actor_id"] == str(actor_id)


class TestQueries:

    def test_availability_of_unknown_key_is_zero(self, movement_service):
        assert movement_service.query_availability(uuid4(), uuid4()) == 0

    def test_get_balance_of_unknown_key_is_zero_view(self, movement_service, warehouse_a, product_id):
        view = movement_service.get_balance(warehouse_a, product_id)
        assert (view.quantity, view.reserved_qty, view.version) == (0, 0, 0)

    def test_availability_after_movements(
        self, movement_service, receive, actor_id, warehouse_a, product_id
    ):
        receive(warehouse_a, product_id, 8)
        movement_service.submit_movement(
            "OUT", product_id, 3, actor_id=actor_id, from_warehouse_id=warehouse_a
        )
        assert movement_service.query_availability(warehouse_a, product_id) == 5

    def test_commit_is_logged_with_duration(self, receive, captured_logs, warehouse_a, product_id):
        receive(warehouse_a, product_id, 1)

        committed = [r for r in captured_logs() if r["message"] == "movement_committed"]
        assert len(committed) == 1
        assert committed[0]["movement_type"] == "IN"
        assert "duration_ms" in committed[0]


@pytest.mark.parametrize("movement_type", ["IN", "OUT", "TRANSFER", "ADJUSTMENT"])
def test_every_type_round_trips_through_history(
    movement_service, receive, actor_id, warehouse_a, warehouse_b, product_id, movement_type
):
    receive(warehouse_a, product_id, 10)
    kwargs = {
        "IN": dict(to_warehouse_id=warehouse_a),
        "OUT": dict(from_warehouse_id=warehouse_a),
        "TRANSFER": dict(from_warehouse_id=warehouse_a, to_warehouse_id=warehouse_b),
        "ADJUSTMENT": dict(to_warehouse_id=warehouse_a, notes="count"),
    }[movement_type]

    outcome = movement_service.submit_movement(
        movement_type, product_id, 2, actor_id=actor_id, **kwargs
    )

    page = movement_service.list_movements(product_id)
    assert page.items[0].id == outcome.movement.id
    assert page.items[0].movement_type.value == movement_type
