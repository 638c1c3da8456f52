# app/crud/campaign.py
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func

from app.models import Campaign, ImportBatch, Lead, LeadHistory


async def get_campaign(db: AsyncSession, campaign_id: UUID) -> Campaign | None:
    result = await db.execute(
        select(Campaign)
        .where(Campaign.campaign_id == campaign_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_counters(db: AsyncSession, campaign_id: UUID, total: int, remaining: int, assigned: int) -> None:
    await db.execute(
        update(Campaign)
        .where(Campaign.campaign_id == campaign_id)
        .values(total_leads=total, remaining_leads=remaining, assigned_leads=assigned)
        .execution_options(synchronize_session=False)
    )


async def get_consultant_breakdown(db: AsyncSession, campaign_id: UUID):
    """Lead count per (consultant, status) among assigned leads."""
    result = await db.execute(
        select(Lead.consultant_id, Lead.status, func.count(Lead.lead_id).label("total"))
        .where(Lead.campaign_id == campaign_id, Lead.consultant_id.isnot(None))
        .group_by(Lead.consultant_id, Lead.status)
    )
    return result.mappings().all()


# --- Import batches ---
async def get_import_batch(db: AsyncSession, campaign_id: UUID, batch_id: UUID) -> ImportBatch | None:
    result = await db.execute(
        select(ImportBatch).where(
            ImportBatch.batch_id == batch_id,
            ImportBatch.campaign_id == campaign_id,
        )
    )
    return result.scalar_one_or_none()


# --- Cascading deletes (caller owns the transaction) ---
async def delete_leads_where(db: AsyncSession, *criteria) -> tuple[int, int]:
    """Delete matching leads and their history. Returns (leads, history rows)."""
    lead_ids = select(Lead.lead_id).where(*criteria)
    history = await db.execute(
        delete(LeadHistory)
        .where(LeadHistory.lead_id.in_(lead_ids))
        .execution_options(synchronize_session=False)
    )
    leads = await db.execute(
        delete(Lead).where(*criteria).execution_options(synchronize_session=False)
    )
    return leads.rowcount, history.rowcount


async def delete_import_batch_row(db: AsyncSession, batch_id: UUID) -> int:
    result = await db.execute(
        delete(ImportBatch)
        .where(ImportBatch.batch_id == batch_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_campaign_rows(db: AsyncSession, campaign_id: UUID) -> tuple[int, int]:
    """Delete the campaign's import batches and then the campaign itself."""
    batches = await db.execute(
        delete(ImportBatch)
        .where(ImportBatch.campaign_id == campaign_id)
        .execution_options(synchronize_session=False)
    )
    campaigns = await db.execute(
        delete(Campaign)
        .where(Campaign.campaign_id == campaign_id)
        .execution_options(synchronize_session=False)
    )
    return batches.rowcount, campaigns.rowcount
