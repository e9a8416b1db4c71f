"""
Domain: Lead entity.

Contract excerpts implemented here:
- A Lead is a phone-number record tagged with a 2-letter US state code.
- lead_id is assigned by the store in insertion order; lower ids are older leads.
- A Lead is either free (order_number is NULL or empty) or bound to exactly one
  order, identified by that order's public order number.
- Leads are created by an external ingestion process and never deleted here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Lead:
    """
    Pure domain entity for a Lead.

    Notes:
    - lead_id is None only for leads that have not been persisted yet.
    """

    lead_id: Optional[int]
    phone_number: str
    state: str
    order_number: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.state) != 2 or self.state != self.state.upper():
            raise ValueError(f"state must be an uppercase 2-letter code, got {self.state!r}")

    @property
    def is_free(self) -> bool:
        """A lead is free iff it carries no order reference."""

        return not self.order_number

    def is_bound_to(self, order_number: str) -> bool:
        return self.order_number == order_number


@dataclass(frozen=True, slots=True)
class LeadPoolStateSummary:
    """Free vs bound lead counts for a single state."""

    state: str
    free_count: int
    bound_count: int

    @property
    def total_count(self) -> int:
        return self.free_count + self.bound_count


@dataclass(frozen=True, slots=True)
class ExportRecord:
    """One row of a fulfilled order export."""

    phone_number: str
    state: str
    order_number: str
