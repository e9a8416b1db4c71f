#!/usr/bin/env python3
"""
Export the leads of a fulfilled order to a CSV file.

Usage:
    python scripts/export_order.py 42
    python scripts/export_order.py 42 --output order_42.csv
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories import lead_repository, order_repository
from repositories.client import create_db_engine, create_session_factory, load_settings
from repositories.unit_of_work import UnitOfWork
from services.csv_export_service import export_filename, generate_order_export_csv


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Export a fulfilled order's leads to CSV")
    parser.add_argument("order_id", type=int, help="Order id (lead_orders.id)")
    parser.add_argument(
        "--output",
        "-o",
        help="Path to output CSV file (default: order_<number>_export.csv)"
    )
    args = parser.parse_args()

    engine = create_db_engine(load_settings().database_url)
    try:
        with UnitOfWork(create_session_factory(engine)) as uow:
            order = order_repository.get_order(uow.session, args.order_id)
            if order is None:
                print(f"Order not found: {args.order_id}", file=sys.stderr)
                return 1
            if not order.is_fulfilled:
                print(
                    f"Order {order.order_number} is {order.status.value} "
                    f"({order.fulfilled_count}/{order.quantity}); export requires a fulfilled order",
                    file=sys.stderr,
                )
                return 1
            records = lead_repository.list_export_records(uow.session, order.order_number)
    finally:
        engine.dispose()

    output = Path(args.output or export_filename(order.order_number))
    output.write_text(generate_order_export_csv(records), encoding="utf-8", newline="")

    print(f"✓ Exported {len(records)} leads for order {order.order_number} to {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
