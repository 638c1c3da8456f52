from dataclasses import dataclass, asdict
from uuid import UUID
import json
import logging
import os

from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.models import Lead
from app.crud import lead as crud_lead
from app.crud import campaign as crud_campaign
from app.services.errors import NotFoundError
from app.schemas.campaign import CampaignOverview, ConsultantLoad

logger = logging.getLogger(__name__)

OVERVIEW_TTL = int(os.getenv("CAMPAIGN_OVERVIEW_TTL", "60"))


@dataclass
class CampaignCounters:
    total: int
    remaining: int
    assigned: int

    def as_dict(self):
        return asdict(self)


async def recompute_campaign_counters(db: AsyncSession, campaign_id: UUID) -> CampaignCounters:
    """
    Recount the campaign's leads and overwrite the stored counters.

    Counters are never incremented in place: every mutating operation calls
    this inside its own transaction, so the stored values always match what a
    fresh count would return.
    """
    total = await crud_lead.count_leads(db, campaign_id)
    remaining = await crud_lead.count_leads(db, campaign_id, Lead.consultant_id.is_(None))
    counters = CampaignCounters(total=total, remaining=remaining, assigned=total - remaining)

    await crud_campaign.update_counters(db, campaign_id, **counters.as_dict())
    return counters


def _overview_key(campaign_id: UUID) -> str:
    return f"campaign_overview:{campaign_id}"


async def get_campaign_overview(db: AsyncSession, redis: Redis, campaign_id: UUID) -> CampaignOverview:
    """Counters plus per-consultant load, cached in Redis for a short while."""
    cache_key = _overview_key(campaign_id)

    # 1. --- Checking Redis cache ---
    try:
        cached = await redis.get(cache_key)
    except RedisError as e:
        logger.warning("Overview cache read failed for %s: %s", campaign_id, e)
        cached = None
    if cached:
        return CampaignOverview(**json.loads(cached))

    # 2. --- Live counts ---
    campaign = await crud_campaign.get_campaign(db, campaign_id)
    if not campaign:
        raise NotFoundError(f"Campaign {campaign_id} not found")

    total = await crud_lead.count_leads(db, campaign_id)
    remaining = await crud_lead.count_leads(db, campaign_id, Lead.consultant_id.is_(None))

    # 3. --- Per consultant breakdown ---
    loads = {}
    for row in await crud_campaign.get_consultant_breakdown(db, campaign_id):
        load = loads.setdefault(row["consultant_id"], {"total": 0, "by_status": {}})
        load["total"] += row["total"]
        load["by_status"][row["status"]] = row["total"]

    overview = CampaignOverview(
        campaign_id=campaign.campaign_id,
        name=campaign.name,
        status=campaign.status,
        total_leads=total,
        remaining_leads=remaining,
        assigned_leads=total - remaining,
        consultants=[
            ConsultantLoad(consultant_id=consultant_id, **load)
            for consultant_id, load in sorted(loads.items(), key=lambda item: str(item[0]))
        ],
    )

    # Cache in Redis
    try:
        await redis.set(cache_key, overview.model_dump_json(), ex=OVERVIEW_TTL)
    except RedisError as e:
        logger.warning("Overview cache write failed for %s: %s", campaign_id, e)

    return overview


async def invalidate_campaign_overview(redis: Redis, campaign_id: UUID) -> None:
    try:
        await redis.delete(_overview_key(campaign_id))
    except RedisError as e:
        logger.warning("Overview cache invalidation failed for %s: %s", campaign_id, e)
