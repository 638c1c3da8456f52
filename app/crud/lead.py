# app/crud/lead.py
from typing import Iterable, List, Optional, Sequence
from uuid import UUID
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from app.models import Lead
from app.models.constants import LeadStatus


def _stock_filter(campaign_id: UUID):
    return (
        Lead.campaign_id == campaign_id,
        Lead.consultant_id.is_(None),
        Lead.status == LeadStatus.NOVO,
    )


# Workflow fields a lead gets back when it changes hands from stock
FRESH_ASSIGNMENT_FIELDS = {
    "status": LeadStatus.NOVO,
    "is_worked": False,
    "next_follow_up_at": None,
    "next_step_note": None,
    "last_outcome_code": None,
    "last_outcome_label": None,
    "last_outcome_note": None,
}

# Everything reset_campaign clears
RESET_FIELDS = {
    "consultant_id": None,
    "owner_id": None,
    "office_id": None,
    "status": LeadStatus.NOVO,
    "is_worked": False,
    "next_follow_up_at": None,
    "next_step_note": None,
    "last_status_change_at": None,
    "last_activity_at": None,
    "last_interaction_at": None,
    "last_outcome_code": None,
    "last_outcome_label": None,
    "last_outcome_note": None,
}


# --- Stock (unassigned NOVO leads), oldest first ---
def _stock_query(columns, campaign_id: UUID, exclude: Iterable[UUID], with_phone: bool):
    stmt = (
        select(*columns)
        .where(*_stock_filter(campaign_id))
        .order_by(Lead.created_at.asc(), Lead.lead_id.asc())
    )
    exclude = list(exclude)
    if exclude:
        stmt = stmt.where(Lead.lead_id.notin_(exclude))
    if with_phone:
        stmt = stmt.where(Lead.phone.isnot(None), func.trim(Lead.phone) != "")
    return stmt


async def find_stock(
    db: AsyncSession,
    campaign_id: UUID,
    limit: Optional[int],
    exclude: Iterable[UUID] = (),
    with_phone: bool = False,
) -> List[UUID]:
    """Stock lead ids; `limit=None` returns the whole stock."""
    stmt = _stock_query((Lead.lead_id,), campaign_id, exclude, with_phone).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_stock_phones(
    db: AsyncSession,
    campaign_id: UUID,
    exclude: Iterable[UUID] = (),
) -> List[tuple]:
    """(lead_id, phone) of every stock lead that has a phone, for filtering in Python."""
    result = await db.execute(_stock_query((Lead.lead_id, Lead.phone), campaign_id, exclude, True))
    return [tuple(row) for row in result.all()]


async def count_stock(db: AsyncSession, campaign_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Lead.lead_id)).where(*_stock_filter(campaign_id))
    )
    return result.scalar() or 0


# --- Guarded claim: only rows still in stock are taken ---
async def claim_leads(
    db: AsyncSession,
    lead_ids: Sequence[UUID],
    consultant_id: UUID,
    office_id: Optional[UUID],
    now: datetime,
) -> List[UUID]:
    """
    Assign `lead_ids` to `consultant_id` in one UPDATE statement.

    The WHERE clause re-checks the stock predicate, so a lead that another
    distribution claimed after we read it is left alone. Returns the ids that
    were actually claimed.
    """
    if not lead_ids:
        return []
    stmt = (
        update(Lead)
        .where(
            Lead.lead_id.in_(list(lead_ids)),
            Lead.consultant_id.is_(None),
            Lead.status == LeadStatus.NOVO,
        )
        .values(
            consultant_id=consultant_id,
            owner_id=consultant_id,
            office_id=office_id,
            last_status_change_at=now,
            updated_at=now,
            **FRESH_ASSIGNMENT_FIELDS,
        )
        .returning(Lead.lead_id)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def reset_leads(db: AsyncSession, campaign_id: UUID, now: datetime) -> int:
    stmt = (
        update(Lead)
        .where(Lead.campaign_id == campaign_id)
        .values(updated_at=now, **RESET_FIELDS)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount


# --- Counting ---
async def count_leads(db: AsyncSession, campaign_id: UUID, *criteria) -> int:
    result = await db.execute(
        select(func.count(Lead.lead_id)).where(Lead.campaign_id == campaign_id, *criteria)
    )
    return result.scalar() or 0


# --- Fetch ---
async def get_lead_by_id(db: AsyncSession, lead_id: UUID) -> Lead | None:
    result = await db.execute(
        select(Lead)
        .where(Lead.lead_id == lead_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_leads_in_campaign(db: AsyncSession, campaign_id: UUID, lead_ids: Sequence[UUID]) -> List[Lead]:
    result = await db.execute(
        select(Lead)
        .where(Lead.campaign_id == campaign_id, Lead.lead_id.in_(list(lead_ids)))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_assigned_leads(db: AsyncSession, campaign_id: UUID) -> List[tuple]:
    """(lead_id, consultant_id, status) for every lead that currently has an owner."""
    result = await db.execute(
        select(Lead.lead_id, Lead.consultant_id, Lead.status)
        .where(Lead.campaign_id == campaign_id, Lead.consultant_id.isnot(None))
    )
    return [tuple(row) for row in result.all()]


async def get_campaign_office_ids(db: AsyncSession, campaign_id: UUID) -> set:
    result = await db.execute(
        select(Lead.office_id)
        .where(Lead.campaign_id == campaign_id, Lead.office_id.isnot(None))
        .distinct()
    )
    return set(result.scalars().all())


async def get_existing_documents(db: AsyncSession, campaign_id: UUID, documents: Sequence[str]) -> set:
    if not documents:
        return set()
    result = await db.execute(
        select(Lead.document)
        .where(Lead.campaign_id == campaign_id, Lead.document.in_(list(documents)))
    )
    return set(result.scalars().all())
