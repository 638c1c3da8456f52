# crud/lead_history.py
from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models import LeadHistory


# List history of a lead, newest first
async def get_history_by_lead(db: AsyncSession, lead_id: UUID) -> List[LeadHistory]:
    result = await db.execute(
        select(LeadHistory)
        .where(LeadHistory.lead_id == lead_id)
        .order_by(LeadHistory.created_at.desc())
    )
    return list(result.scalars().all())

