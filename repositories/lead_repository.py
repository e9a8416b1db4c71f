"""
Lead repository (persistence).

This module provides *only* persistence operations for the lead pool. It does
not decide how many leads an order may take; that is the allocation engine's
job. Every function works inside the caller's session and never commits.
"""

from __future__ import annotations

from typing import Iterable, List

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.orm import Session

from domain.errors import PersistenceError
from domain.lead import ExportRecord, Lead, LeadPoolStateSummary
from repositories.schema import LeadRow


def _is_free():
    """A lead is free when its order reference is NULL or empty."""

    return or_(LeadRow.order_number.is_(None), LeadRow.order_number == "")


def _row_to_lead(row: LeadRow) -> Lead:
    return Lead(
        lead_id=row.id,
        phone_number=row.phone_number,
        state=row.state,
        order_number=row.order_number or None,
    )


def insert_leads(session: Session, leads: Iterable[Lead]) -> List[int]:
    """
    Insert leads into the pool and return their assigned ids, in input order.

    Ids are assigned by the store; any lead_id on the input is ignored.
    """

    rows = [
        LeadRow(phone_number=lead.phone_number, state=lead.state, order_number=lead.order_number)
        for lead in leads
    ]
    session.add_all(rows)
    session.flush()
    return [row.id for row in rows]


def claim_free_leads(
    session: Session,
    *,
    state: str,
    limit: int,
    order_number: str,
) -> List[int]:
    """
    Bind up to `limit` free leads in `state` to `order_number`.

    Candidates are the oldest free leads (ascending id). They are locked at
    selection time; rows locked by another transaction are skipped rather than
    waited on. The bind only touches rows that are still free, and any
    shortfall between selected and bound rows aborts the caller's transaction.

    Returns:
        Ids of the leads bound, ascending.

    Raises:
        PersistenceError: if a selected lead was bound by someone else.
    """

    if limit <= 0:
        return []

    candidates = (
        select(LeadRow.id)
        .where(LeadRow.state == state, _is_free())
        .order_by(LeadRow.id.asc())
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    lead_ids = list(session.scalars(candidates))
    if not lead_ids:
        return []

    result = session.execute(
        update(LeadRow)
        .where(LeadRow.id.in_(lead_ids), _is_free())
        .values(order_number=order_number)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != len(lead_ids):
        raise PersistenceError(
            f"Lead bind conflict in {state}: selected {len(lead_ids)}, bound {result.rowcount}"
        )

    return lead_ids


def release_leads(session: Session, order_number: str) -> int:
    """Return every lead bound to `order_number` to the free pool."""

    result = session.execute(
        update(LeadRow)
        .where(LeadRow.order_number == order_number)
        .values(order_number=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def list_leads_by_order(session: Session, order_number: str) -> List[Lead]:
    """Leads bound to an order, ascending id."""

    rows = session.scalars(
        select(LeadRow).where(LeadRow.order_number == order_number).order_by(LeadRow.id.asc())
    )
    return [_row_to_lead(row) for row in rows]


def list_export_records(session: Session, order_number: str) -> List[ExportRecord]:
    """Flat export rows (phone, state, order number) for an order, ascending id."""

    rows = session.execute(
        select(LeadRow.phone_number, LeadRow.state, LeadRow.order_number)
        .where(LeadRow.order_number == order_number)
        .order_by(LeadRow.id.asc())
    )
    return [
        ExportRecord(phone_number=phone, state=state, order_number=number)
        for phone, state, number in rows
    ]


def count_free_leads(session: Session, state: str) -> int:
    return session.scalar(
        select(func.count()).select_from(LeadRow).where(LeadRow.state == state, _is_free())
    ) or 0


def summarize_lead_pool(session: Session) -> List[LeadPoolStateSummary]:
    """Free and bound lead counts per state, ordered by state code."""

    free = func.sum(case((_is_free(), 1), else_=0))
    rows = session.execute(
        select(LeadRow.state, free, func.count())
        .group_by(LeadRow.state)
        .order_by(LeadRow.state)
    )

    summaries: List[LeadPoolStateSummary] = []
    for state, free_count, total in rows:
        free_count = int(free_count or 0)
        summaries.append(LeadPoolStateSummary(
            state=state,
            free_count=free_count,
            bound_count=int(total) - free_count,
        ))
    return summaries


__all__ = [
    "claim_free_leads",
    "count_free_leads",
    "insert_leads",
    "list_export_records",
    "list_leads_by_order",
    "release_leads",
    "summarize_lead_pool",
]
