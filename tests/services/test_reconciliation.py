"""
Reconciliation tests.

Replaying the movement ledger must reproduce every stored balance; a
balance written outside the engine is reported, never repaired.
"""

import pytest
from sqlalchemy import text

from inventory_kernel.services.reconciliation_service import ReconciliationService


def _reconcile(session_factory, clock, product_id=None):
    with session_factory() as s:
        return ReconciliationService(s, clock).reconcile(product_id)


class TestReconciliation:

    def test_empty_ledger_is_consistent(self, session_factory, deterministic_clock):
        report = _reconcile(session_factory, deterministic_clock)
        assert report.is_consistent
        assert report.balances_checked == 0
        assert report.movements_replayed == 0

    def test_mixed_movements_reconcile(
        self, movement_service, receive, session_factory, deterministic_clock,
        actor_id, warehouse_a, warehouse_b, product_id, variant_id,
    ):
        receive(warehouse_a, product_id, 10)
        receive(warehouse_a, product_id, 4, variant_id=variant_id)
        movement_service.submit_movement(
            "TRANSFER", product_id, 6, actor_id=actor_id,
            from_warehouse_id=warehouse_a, to_warehouse_id=warehouse_b,
        )
        movement_service.submit_movement(
            "OUT", product_id, 1, actor_id=actor_id, from_warehouse_id=warehouse_b
        )
        movement_service.submit_movement(
            "ADJUSTMENT", product_id, -2, actor_id=actor_id,
            to_warehouse_id=warehouse_a, variant_id=variant_id, notes="recount",
        )
        # Rejected movements leave nothing to replay.
        movement_service.submit_movement(
            "OUT", product_id, 100, actor_id=actor_id, from_warehouse_id=warehouse_a
        )

        report = _reconcile(session_factory, deterministic_clock)

        assert report.is_consistent, report.to_dict()
        assert report.movements_replayed == 5
        assert report.balances_checked == 3

    def test_tampered_balance_is_reported(
        self, receive, session_factory, deterministic_clock, captured_logs, warehouse_a, product_id
    ):
        receive(warehouse_a, product_id, 10)
        with session_factory() as s:
            s.execute(text("UPDATE stock_balances SET quantity = quantity + 5"))
            s.commit()

        report = _reconcile(session_factory, deterministic_clock)

        assert not report.is_consistent
        (d,) = report.discrepancies
        assert (d.stored_quantity, d.replayed_quantity, d.difference) == (15, 10, 5)
        assert d.key.warehouse_id == warehouse_a
        assert report.to_dict()["consistent"] is False
        assert any(r["message"] == "reconciliation_discrepancies_found" for r in captured_logs())

    def test_scoped_to_one_product(
        self, receive, session_factory, deterministic_clock, warehouse_a, product_id
    ):
        from uuid import uuid4

        other = uuid4()
        receive(warehouse_a, product_id, 1)
        receive(warehouse_a, other, 2)
        with session_factory() as s:
            s.execute(
                text("UPDATE stock_balances SET quantity = 99 WHERE product_id = :p"),
                {"p": str(other)},
            )
            s.commit()

        assert _reconcile(session_factory, deterministic_clock, product_id).is_consistent
        assert not _reconcile(session_factory, deterministic_clock, other).is_consistent


@pytest.mark.postgres
class TestReconciliationSnapshot:

    def test_movement_committed_between_reads_is_not_a_discrepancy(
        self, is_postgres, receive, session_factory, deterministic_clock, monkeypatch,
        warehouse_a, product_id,
    ):
        if not is_postgres:
            pytest.skip("SQLite transactions hold the write lock for the whole read")
        receive(warehouse_a, product_id, 10)

        with session_factory() as s:
            execute = s.execute
            reads = []

            def execute_then_write(stmt, *args, **kwargs):
                result = execute(stmt, *args, **kwargs)
                reads.append(stmt)
                if len(reads) == 1:
                    receive(warehouse_a, product_id, 3)
                return result

            monkeypatch.setattr(s, "execute", execute_then_write)
            report = ReconciliationService(s, deterministic_clock).reconcile()

        assert len(reads) == 2
        assert report.is_consistent, report.to_dict()
        assert report.movements_replayed == 1
        assert _reconcile(session_factory, deterministic_clock).movements_replayed == 2
