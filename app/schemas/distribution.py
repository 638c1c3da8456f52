from typing import Dict, List, Literal, Optional, Annotated
from pydantic import BaseModel, Field
from uuid import UUID

from app.schemas.campaign import CampaignCountersOut


# --- Distribution ---
class DistributionFilters(BaseModel):
    only_with_phone: bool = False
    ignore_invalid_phones: bool = False


class DistributeRequest(BaseModel):
    consultant_ids: Annotated[List[UUID], Field(min_length=1)]
    mode: Literal["manual", "auto"] = "manual"
    # Required in manual mode; ignored in auto mode
    quantity_per_consultant: Annotated[Optional[int], Field(gt=0)] = None
    filters: DistributionFilters = DistributionFilters()
    note: Optional[str] = None


class DistributeResponse(BaseModel):
    success: bool
    distributed: Dict[UUID, int]
    total_distributed: int
    requested: int
    remaining_stock: int
    counters: CampaignCountersOut
    message: Optional[str] = None


# --- Recapture ---
class RecaptureRequest(BaseModel):
    lead_ids: Annotated[List[UUID], Field(min_length=1)]
    new_consultant_id: UUID
    reason: Optional[str] = None


class RecaptureResponse(BaseModel):
    processed: List[UUID]
    blocked: List[UUID]
