#!/usr/bin/env python3
"""
Create the order store tables.

Creates lead_details, lead_orders, lead_order_states and the order_info tables
if they do not exist. Existing tables and data are left untouched.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --database-url sqlite:///./lead_orders.db
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.client import create_db_engine, load_settings
from repositories.schema import Base


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Create the order store tables")
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy URL (defaults to DATABASE_URL from the environment / .env)"
    )
    args = parser.parse_args()

    try:
        database_url = args.database_url or load_settings().database_url
        engine = create_db_engine(database_url)
        Base.metadata.create_all(engine)
        engine.dispose()
    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1

    print("Tables ready:")
    for table in Base.metadata.sorted_tables:
        print(f"  - {table.name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
