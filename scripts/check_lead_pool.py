"""
Check lead pool status - how many leads are free vs assigned, per state.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.client import create_db_engine, create_session_factory, load_settings
from repositories.lead_repository import summarize_lead_pool
from repositories.unit_of_work import UnitOfWork


def check_lead_pool():
    """Print free vs assigned lead counts."""

    engine = create_db_engine(load_settings().database_url)
    with UnitOfWork(create_session_factory(engine)) as uow:
        summaries = summarize_lead_pool(uow.session)
    engine.dispose()

    free_total = sum(s.free_count for s in summaries)
    bound_total = sum(s.bound_count for s in summaries)
    total = free_total + bound_total

    print("=" * 50)
    print("LEAD POOL STATUS")
    print("=" * 50)
    print(f"Total leads:               {total}")
    print(f"Free:                      {free_total}")
    print(f"Assigned to orders:        {bound_total}")
    print(f"Percentage assigned:       {(bound_total / total * 100):.1f}%" if total > 0 else "N/A")
    print("=" * 50)

    print("\nBreakdown by state:")
    print("-" * 50)
    for s in summaries:
        print(f"{s.state}: {s.free_count} free, {s.bound_count} assigned")
    print("-" * 50)


if __name__ == "__main__":
    check_lead_pool()
