from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from uuid import UUID
import logging
import traceback

from app.schemas.lead import LeadHistoryItem, LeadHistoryResponse, LeadReassignRequest, LeadReassignResponse
from app.db.session import get_db
from app.db.redis_client import get_redis
from app.crud import lead as crud_lead
from app.routers.dependencies import get_current_actor, get_permission_oracle
from app.services.campaign_counters import invalidate_campaign_overview
from app.services.errors import CrossOfficeForbiddenError
from app.services.lead_history import LeadHistoryLogger
from app.services.lead_reassignment import LeadReassignmentService
from app.services.permissions import Actor, PermissionOracle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/leads", tags=["Leads"])


@router.post(
    "/{lead_id}/reassign",
    response_model=LeadReassignResponse,
    summary="Reassign a lead",
    description="Moves one lead to another consultant of the same office."
)
async def reassign_lead(
    lead_id: UUID,
    request: LeadReassignRequest,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    lead = await crud_lead.get_lead_by_id(db, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    campaign_id = lead.campaign_id
    if not await oracle.can_reassign(actor, campaign_id, lead.office_id):
        raise HTTPException(status_code=403, detail="Forbidden")

    try:
        service = LeadReassignmentService(db)
        result = await service.reassign(lead_id, request.new_consultant_id, actor.user_id, request.note)
    except CrossOfficeForbiddenError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in reassign_lead: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")

    await invalidate_campaign_overview(redis, campaign_id)
    return LeadReassignResponse(ok=True, **result.__dict__)


@router.get(
    "/{lead_id}/history",
    response_model=LeadHistoryResponse,
    summary="Lead ownership history",
)
async def lead_history(
    lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    lead = await crud_lead.get_lead_by_id(db, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    if lead.consultant_id != actor.user_id and not await oracle.can_manage_campaign(actor, lead.campaign_id):
        raise HTTPException(status_code=403, detail="Forbidden")

    try:
        entries = await LeadHistoryLogger(db).list_history(lead_id)
    except Exception as e:
        logger.error("Error in lead_history: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")
    return LeadHistoryResponse(
        lead_id=lead_id,
        history=[LeadHistoryItem.model_validate(entry) for entry in entries],
    )
