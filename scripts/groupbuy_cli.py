#!/usr/bin/env python3
"""
Command-line front end for the group-purchase ledger.

Reads configuration through get_active_config(), opens the database and
calls the catalog, order lifecycle and reporting services.  Results are
printed as JSON on stdout; ledger errors are printed as ``CODE: message`` on
stderr with exit status 1.

Usage:
    python3 scripts/groupbuy_cli.py [--config PATH] [--db-url URL] <command> ...

Examples:
    export GROUPBUY_DATABASE_URL=sqlite:///groupbuy.db
    python3 scripts/groupbuy_cli.py init-db
    python3 scripts/groupbuy_cli.py create-project --name "Spring box" --members rico dorothy
    python3 scripts/groupbuy_cli.py add-product --project-id <id> --name Keychain --price-jpy 500
    python3 scripts/groupbuy_cli.py create-order --file order.json
    python3 scripts/groupbuy_cli.py ship <order-id>
    python3 scripts/groupbuy_cli.py settle <order-id> --correction-payer Dorothy
    python3 scripts/groupbuy_cli.py report --project-id <id>

order.json:
    {"order": {"project_id": "...", "amount_total": "1000", "exchange_rate": "0.05"},
     "lines": [{"product_id": "...", "quantity": 2}]}
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Group-purchase ledger: orders, shipping, settlement and reports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="Policy YAML file.")
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (default: $GROUPBUY_DATABASE_URL or the policy's database_url).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the four ledger tables.")

    p = sub.add_parser("create-project", help="Create a project.")
    p.add_argument("--name", required=True)
    p.add_argument("--members", nargs="+", required=True)
    p.add_argument("--notes", default=None)

    p = sub.add_parser("add-product", help="Add a product to a project.")
    p.add_argument("--project-id", type=UUID, required=True)
    p.add_argument("--name", required=True)
    p.add_argument("--price-jpy", required=True)
    p.add_argument("--url", default=None)

    p = sub.add_parser("create-order", help="Create an order from a JSON file.")
    p.add_argument("--file", type=Path, required=True)

    p = sub.add_parser("ship", help="Ship an order and its procurement lines.")
    p.add_argument("order_id", type=UUID)

    p = sub.add_parser("settle", help="Settle an order between the two stakeholders.")
    p.add_argument("order_id", type=UUID)
    p.add_argument("--correction-payer", default=None)
    p.add_argument("--preview", action="store_true", help="Compute only; write nothing.")

    p = sub.add_parser("auto-fill", help="Mark a procurement line fully ordered and paid.")
    p.add_argument("procurement_id", type=UUID)

    p = sub.add_parser("report", help="Project or portfolio figures.")
    p.add_argument("--project-id", type=UUID, default=None)
    p.add_argument("--orders", action="store_true", help="Include per-order rows.")

    return parser.parse_args(argv)


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {k: _jsonable(v) for k, v in dataclasses.asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "value") and not isinstance(value, (int, float, str)):
        return value.value
    return value


def _emit(value: Any) -> None:
    print(json.dumps(_jsonable(value), default=str, indent=2))


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so argument errors fail fast
    from groupbuy_config import get_active_config
    from groupbuy_kernel.db.engine import get_session_factory, init_engine_from_url
    from groupbuy_kernel.exceptions import GroupBuyError
    from groupbuy_kernel.logging_config import configure_logging
    from groupbuy_kernel.store.sql_store import SqlRecordStore
    from groupbuy_modules._orm_registry import create_all_tables, entity_models
    from groupbuy_modules.catalog.service import CatalogService
    from groupbuy_modules.orders.reporting import ReportingService
    from groupbuy_modules.orders.service import OrderLifecycleService

    try:
        active = get_active_config(args.config)
    except (OSError, GroupBuyError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    configure_logging(level=active.log_level)
    init_engine_from_url(args.db_url or active.database_url)
    store = SqlRecordStore(get_session_factory(), entity_models())
    catalog = CatalogService(store)
    orders = OrderLifecycleService(store, config=active.orders)
    reporting = ReportingService(store, config=active.orders)

    try:
        if args.command == "init-db":
            create_all_tables()
            _emit({"status": "ok"})
        elif args.command == "create-project":
            _emit(catalog.create_project(args.name, args.members, notes=args.notes))
        elif args.command == "add-product":
            _emit(catalog.create_product(
                args.project_id, args.name, args.price_jpy, product_url=args.url,
            ))
        elif args.command == "create-order":
            payload = json.loads(args.file.read_text())
            order_fields = dict(payload.get("order") or {})
            if "project_id" in order_fields:
                order_fields["project_id"] = UUID(str(order_fields["project_id"]))
            lines = [
                {"product_id": UUID(str(line["product_id"])), "quantity": line.get("quantity", 0)}
                for line in payload.get("lines") or []
            ]
            _emit(orders.create_order(order_fields, lines))
        elif args.command == "ship":
            _emit(orders.ship(args.order_id))
        elif args.command == "settle":
            if args.preview:
                _emit(orders.preview_settlement(args.order_id, args.correction_payer))
            else:
                _emit(orders.settle(args.order_id, args.correction_payer))
        elif args.command == "auto-fill":
            _emit(orders.auto_fill_procurement(args.procurement_id))
        elif args.command == "report":
            figures = (
                reporting.project_figures(args.project_id)
                if args.project_id is not None
                else reporting.portfolio_figures()
            )
            out: dict[str, Any] = {"figures": figures}
            if args.orders:
                out["orders"] = reporting.order_rows(args.project_id)
            _emit(out)
    except GroupBuyError as e:
        print(f"{e.code}: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError, KeyError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
