"""
One-time guard ledger (external collaborator, Supabase).

The guard ledger records external reference numbers of one-time products that
have already been turned into orders. This service only reads an "exists"
signal and appends new entries; it does not own the table's schema.

Table layout expected in Supabase (`automation`):
- order_name:   the order number created here
- order_number: the external reference (e.g. the storefront's order number)
"""

from __future__ import annotations

from typing import Protocol

from supabase import Client  # type: ignore[import-not-found]

# Supabase table name for guard ledger entries.
# Keep this aligned with your database schema.
_GUARD_TABLE: str = "automation"


class GuardLedger(Protocol):
    """What the order lifecycle needs from a guard ledger."""

    def exists(self, external_reference: str) -> bool:
        ...

    def record(self, order_name: str, external_reference: str) -> None:
        ...


class SupabaseGuardLedger:
    """
    Guard ledger backed by a Supabase table.

    Raises RuntimeError when Supabase returns an error response.
    """

    def __init__(self, client: Client, table: str = _GUARD_TABLE):
        self._client = client
        self._table = table

    def exists(self, external_reference: str) -> bool:
        response = (
            self._client.table(self._table)
            .select("id")
            .eq("order_number", external_reference)
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to query guard ledger: {error}")

        rows = getattr(response, "data", None) or []
        return len(rows) > 0

    def record(self, order_name: str, external_reference: str) -> None:
        payload = {
            "order_name": order_name,
            "order_number": external_reference,
        }
        response = self._client.table(self._table).insert(payload).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to record guard ledger entry: {error}")


__all__ = ["GuardLedger", "SupabaseGuardLedger"]
