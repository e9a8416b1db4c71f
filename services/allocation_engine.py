"""
Order-to-lead allocation engine.

Given an order's state list (in priority order), its per-state caps and the
quantity still to fill, the engine binds specific free leads to the order.

Key properties:
- Deterministic single pass over the states in list order; earlier states get
  first claim on scarce remaining quantity.
- Within a state, the oldest free leads (lowest id) are taken first.
- Never assigns more than `total_remaining` overall, never more than a state's
  cap for that state, never touches a lead that is already bound.
- A state with no free leads contributes 0; that is not an error.

The engine does not own a transaction. It is constructed around the caller's
session and its binds commit or roll back together with the caller's order
bookkeeping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence, Tuple

from sqlalchemy.orm import Session

from domain.states import StateCode, threshold_for
from repositories.lead_repository import claim_free_leads

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AllocationResult:
    """
    Outcome of one allocation pass.

    total_assigned: leads bound during this pass
    per_state: leads bound per state, for every state visited (0 when skipped)
    lead_ids: ids of the bound leads, in binding order
    """
    total_assigned: int
    per_state: Mapping[StateCode, int] = field(default_factory=dict)
    lead_ids: Tuple[int, ...] = ()


def state_cap(threshold: int, remaining: int) -> int:
    """Leads a single state may contribute at this step of the pass."""

    return min(threshold, remaining)


class AllocationEngine:
    def __init__(self, session: Session):
        self._session = session

    def allocate(
        self,
        order_number: str,
        order_states: Sequence[StateCode],
        per_state_threshold: Mapping[StateCode, int],
        total_remaining: int,
    ) -> AllocationResult:
        """
        Bind free leads to `order_number`.

        Args:
            order_number: public order number the leads are bound to
            order_states: non-empty, deduplicated state codes in priority order
            per_state_threshold: cap per state; missing states use the default
                cap (999)
            total_remaining: quantity still to fill for this order

        Returns:
            AllocationResult with the total and per-state counts.

        Raises:
            ValueError: if order_states is empty or total_remaining is negative
            PersistenceError: if a concurrent writer bound a selected lead
        """
        if not order_states:
            raise ValueError("order_states cannot be empty")
        if total_remaining < 0:
            raise ValueError("total_remaining cannot be negative")

        assigned = 0
        per_state: dict[StateCode, int] = {}
        lead_ids: list[int] = []

        for state in order_states:
            cap = state_cap(threshold_for(state, per_state_threshold), total_remaining - assigned)
            if cap <= 0:
                per_state[state] = 0
                continue

            bound = claim_free_leads(
                self._session,
                state=state,
                limit=cap,
                order_number=order_number,
            )
            per_state[state] = len(bound)
            lead_ids.extend(bound)
            assigned += len(bound)

        logger.debug(
            f"Allocated {assigned}/{total_remaining} leads to order {order_number}",
            extra={"order_number": order_number, "per_state": per_state},
        )

        return AllocationResult(
            total_assigned=assigned,
            per_state=per_state,
            lead_ids=tuple(lead_ids),
        )


__all__ = ["AllocationEngine", "AllocationResult", "state_cap"]
