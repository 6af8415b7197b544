#!/usr/bin/env python3
"""
Operator CLI for the inventory movement engine.

Every command prints one JSON document on stdout.  Exit codes: 0 success,
1 rejected movement or failed reconciliation, 2 usage error.

Usage:
  python3 scripts/inventory_cli.py init-db
  python3 scripts/inventory_cli.py submit --type IN --product <uuid> \\
      --to-warehouse <uuid> --quantity 10 --actor <uuid>
  python3 scripts/inventory_cli.py availability --warehouse <uuid> --product <uuid>
  python3 scripts/inventory_cli.py history --product <uuid> [--cursor ...]
  python3 scripts/inventory_cli.py summary --warehouse <uuid>
  python3 scripts/inventory_cli.py reconcile [--product <uuid>]

Configuration comes from inventory_config.get_active_config(); --config and
--database-url override the file and the database URL.
"""

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_USAGE = 2


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Inventory movement engine CLI")
    p.add_argument("--config", help="Configuration YAML (default: INVENTORY_CONFIG or bundled default)")
    p.add_argument("--database-url", help="Override database.url from the configuration")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the ledger tables")

    s = sub.add_parser("submit", help="Submit one movement")
    s.add_argument("--type", required=True, choices=["IN", "OUT", "TRANSFER", "ADJUSTMENT"])
    s.add_argument("--product", required=True)
    s.add_argument("--variant")
    s.add_argument("--quantity", required=True, type=int)
    s.add_argument("--from-warehouse")
    s.add_argument("--to-warehouse")
    s.add_argument("--reference")
    s.add_argument("--notes")
    s.add_argument("--token", help="Idempotency token")
    s.add_argument("--actor", required=True, help="Pre-authorized actor id")

    a = sub.add_parser("availability", help="Available quantity for one balance key")
    a.add_argument("--warehouse", required=True, type=UUID)
    a.add_argument("--product", required=True, type=UUID)
    a.add_argument("--variant", type=UUID)

    h = sub.add_parser("history", help="Movement history of one item, newest first")
    h.add_argument("--product", required=True, type=UUID)
    h.add_argument("--variant", type=UUID)
    h.add_argument("--warehouse", type=UUID)
    h.add_argument("--cursor")
    h.add_argument("--limit", type=int)

    w = sub.add_parser("summary", help="Stock summary of one warehouse")
    w.add_argument("--warehouse", required=True, type=UUID)

    r = sub.add_parser("reconcile", help="Replay movements against stored balances")
    r.add_argument("--product", type=UUID)

    return p


def _emit(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    from sqlalchemy.orm import sessionmaker

    from inventory_config import get_active_config
    from inventory_config.bridges import (
        apply_logging_config,
        build_catalog,
        build_engine_from_config,
        build_movement_service,
    )
    from inventory_kernel.db.engine import create_tables
    from inventory_kernel.db.immutability import register_immutability_listeners
    from inventory_kernel.exceptions import MovementValidationError
    from inventory_kernel.selectors.stock_selector import StockSelector
    from inventory_kernel.services.reconciliation_service import ReconciliationService

    try:
        config = get_active_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_USAGE

    if args.database_url:
        config = dataclasses.replace(
            config, database=dataclasses.replace(config.database, url=args.database_url)
        )

    apply_logging_config(config)
    engine = build_engine_from_config(config)
    register_immutability_listeners()
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    try:
        if args.command == "init-db":
            create_tables(engine)
            _emit({"status": "ok", "config_id": config.config_id})
            return EXIT_OK

        if args.command == "submit":
            service = build_movement_service(config, session_factory)
            outcome = service.submit_movement(
                args.type,
                args.product,
                args.quantity,
                actor_id=args.actor,
                variant_id=args.variant,
                from_warehouse_id=args.from_warehouse,
                to_warehouse_id=args.to_warehouse,
                reference=args.reference,
                notes=args.notes,
                idempotency_token=args.token,
            )
            _emit(outcome.to_dict())
            return EXIT_OK if outcome.is_success else EXIT_REJECTED

        if args.command == "availability":
            service = build_movement_service(config, session_factory)
            balance = service.get_balance(args.warehouse, args.product, args.variant)
            _emit(balance.to_dict())
            return EXIT_OK

        if args.command == "history":
            service = build_movement_service(config, session_factory)
            try:
                page = service.list_movements(
                    args.product,
                    variant_id=args.variant,
                    warehouse_id=args.warehouse,
                    cursor=args.cursor,
                    limit=args.limit,
                )
            except MovementValidationError as exc:
                print(f"ERROR: {exc}", file=sys.stderr)
                return EXIT_USAGE
            _emit(
                {
                    "items": [m.to_dict() for m in page.items],
                    "next_cursor": page.next_cursor,
                }
            )
            return EXIT_OK

        if args.command == "summary":
            with session_factory() as session:
                summary = StockSelector(session).warehouse_summary(
                    args.warehouse, build_catalog(config)
                )
            _emit(summary.to_dict())
            return EXIT_OK

        if args.command == "reconcile":
            with session_factory() as session:
                report = ReconciliationService(session).reconcile(args.product)
            _emit(report.to_dict())
            return EXIT_OK if report.is_consistent else EXIT_REJECTED

        return EXIT_USAGE
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
