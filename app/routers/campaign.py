from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis
from uuid import UUID
import logging
import traceback

from app.schemas.campaign import (
    BatchDeleteResponse,
    CampaignDeleteResponse,
    CampaignOverview,
    CampaignResetResponse,
    LeadImportRequest,
    LeadImportResponse,
)
from app.schemas.distribution import DistributeRequest, DistributeResponse, RecaptureRequest, RecaptureResponse
from app.db.session import get_db
from app.models.constants import DistributionMode
from app.db.redis_client import get_redis
from app.routers.dependencies import get_current_actor, get_permission_oracle
from app.services.campaign_counters import get_campaign_overview, invalidate_campaign_overview
from app.services.campaign_reset import reset_campaign
from app.services.errors import EmptyStockError, PermissionDeniedError
from app.services.lead_distribution import LeadDistributionEngine
from app.services.lead_import import delete_campaign, delete_import_batch, import_leads
from app.services.lead_reassignment import LeadReassignmentService
from app.services.permissions import Actor, PermissionOracle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/campaigns", tags=["Campaigns"])


def _forbidden():
    return HTTPException(status_code=403, detail="Forbidden")


@router.post(
    "/{campaign_id}/distribute",
    response_model=DistributeResponse,
    summary="Distribute stock leads",
    description="Assigns the oldest unassigned leads of the campaign to the given consultants, in fixed-size slices (manual) or split evenly (auto)."
)
async def distribute_leads(
    campaign_id: UUID,
    request: DistributeRequest,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    if not await oracle.can_distribute(actor, campaign_id):
        raise _forbidden()
    try:
        engine = LeadDistributionEngine(db)
        result = await engine.distribute(
            campaign_id,
            request.consultant_ids,
            request.quantity_per_consultant,
            actor.user_id,
            request.note,
            mode=request.mode,
            only_with_phone=request.filters.only_with_phone,
            ignore_invalid_phones=request.filters.ignore_invalid_phones,
        )
    except EmptyStockError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in distribute_leads: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")

    await invalidate_campaign_overview(redis, campaign_id)

    # Auto mode asks for whatever the filtered stock holds
    if request.mode == DistributionMode.AUTO:
        requested = result.total_distributed
    else:
        requested = request.quantity_per_consultant * len(request.consultant_ids)
    return DistributeResponse(
        success=True,
        distributed=result.distributed,
        total_distributed=result.total_distributed,
        requested=requested,
        remaining_stock=result.remaining_stock,
        counters=result.counters.as_dict(),
        message="Partial distribution: stock ran out" if result.total_distributed < requested else None,
    )


@router.post(
    "/{campaign_id}/recapture",
    response_model=RecaptureResponse,
    summary="Recapture assigned leads",
    description="Moves leads to another consultant; leads the caller may not touch are reported as blocked."
)
async def recapture_leads(
    campaign_id: UUID,
    request: RecaptureRequest,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    try:
        service = LeadReassignmentService(db)
        result = await service.recapture(
            campaign_id, request.lead_ids, request.new_consultant_id, actor, oracle, request.reason
        )
    except PermissionDeniedError as e:
        raise HTTPException(
            status_code=403,
            detail={"message": e.message, "blocked": [str(lead_id) for lead_id in e.blocked]},
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in recapture_leads: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")

    await invalidate_campaign_overview(redis, campaign_id)
    return RecaptureResponse(processed=result.processed, blocked=result.blocked)


@router.post(
    "/{campaign_id}/reset",
    response_model=CampaignResetResponse,
    summary="Reset a campaign",
    description="Returns every lead of the campaign to stock with a clean workflow state."
)
async def reset_campaign_leads(
    campaign_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    if not oracle.can_reset(actor):
        raise _forbidden()
    try:
        result = await reset_campaign(db, campaign_id, actor.user_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Error in reset_campaign_leads: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")

    await invalidate_campaign_overview(redis, campaign_id)
    return CampaignResetResponse(reset_count=result.reset_count, counters=result.counters.as_dict())


@router.get(
    "/{campaign_id}/overview",
    response_model=CampaignOverview,
    summary="Campaign distribution overview",
)
async def campaign_overview(
    campaign_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    if not await oracle.can_manage_campaign(actor, campaign_id):
        raise _forbidden()
    try:
        return await get_campaign_overview(db, redis, campaign_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Error in campaign_overview: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/{campaign_id}/import",
    response_model=LeadImportResponse,
    status_code=201,
    summary="Import parsed spreadsheet rows",
)
async def import_campaign_leads(
    campaign_id: UUID,
    request: LeadImportRequest,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    if not oracle.can_import(actor):
        raise _forbidden()
    try:
        result = await import_leads(db, campaign_id, request.rows, actor.user_id, request.file_name)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in import_campaign_leads: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")

    await invalidate_campaign_overview(redis, campaign_id)
    return LeadImportResponse(
        batch_id=result.batch_id,
        total_rows=result.total_rows,
        imported=result.imported,
        skipped=result.skipped,
        counters=result.counters.as_dict(),
    )


@router.delete(
    "/{campaign_id}/batches/{batch_id}",
    response_model=BatchDeleteResponse,
    summary="Delete an import batch and its leads",
)
async def delete_campaign_batch(
    campaign_id: UUID,
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    if not oracle.can_delete(actor):
        raise _forbidden()
    try:
        counters = await delete_import_batch(db, campaign_id, batch_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Error in delete_campaign_batch: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")

    await invalidate_campaign_overview(redis, campaign_id)
    return BatchDeleteResponse(success=True, counters=counters.as_dict())


@router.delete(
    "/{campaign_id}",
    response_model=CampaignDeleteResponse,
    summary="Delete a campaign with all its leads",
)
async def delete_whole_campaign(
    campaign_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    actor: Actor = Depends(get_current_actor),
    oracle: PermissionOracle = Depends(get_permission_oracle),
):
    if not oracle.can_delete(actor):
        raise _forbidden()
    try:
        result = await delete_campaign(db, campaign_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Error in delete_whole_campaign: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")

    await invalidate_campaign_overview(redis, campaign_id)
    return CampaignDeleteResponse(**result.__dict__)
