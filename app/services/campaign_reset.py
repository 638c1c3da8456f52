from dataclasses import dataclass
from typing import Optional
from uuid import UUID
from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.constants import HistoryAction, LeadStatus
from app.crud import lead as crud_lead
from app.crud import campaign as crud_campaign
from app.services.campaign_counters import CampaignCounters, recompute_campaign_counters
from app.services.errors import NotFoundError
from app.services.lead_history import LeadHistoryLogger

logger = logging.getLogger(__name__)


@dataclass
class ResetResult:
    reset_count: int
    counters: CampaignCounters


async def reset_campaign(
    db: AsyncSession,
    campaign_id: UUID,
    actor_id: UUID,
    history: Optional[LeadHistoryLogger] = None,
) -> ResetResult:
    """
    Put every lead of the campaign back in stock.

    Ownership, office, timestamps, outcome and follow-up fields are cleared and
    status forced to NOVO in a single UPDATE. Leads that had an owner get a
    RESET history entry. Either the whole campaign is reset or, on any error,
    nothing is.
    """
    history = history or LeadHistoryLogger(db)
    try:
        if not await crud_campaign.get_campaign(db, campaign_id):
            raise NotFoundError(f"Campaign {campaign_id} not found")

        now = datetime.utcnow()
        owned = await crud_lead.get_assigned_leads(db, campaign_id)
        reset_count = await crud_lead.reset_leads(db, campaign_id, now)

        for lead_id, consultant_id, status in owned:
            history.record(
                lead_id,
                HistoryAction.RESET,
                by_user_id=actor_id,
                from_user_id=consultant_id,
                previous_status=status,
                new_status=LeadStatus.NOVO,
                notes="Campaign reset",
                at=now,
            )

        counters = await recompute_campaign_counters(db, campaign_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Campaign %s reset: %s leads back in stock", campaign_id, reset_count)
    return ResetResult(reset_count=reset_count, counters=counters)
