from typing import Any, Dict, List, Optional, Annotated
from pydantic import BaseModel, Field
from uuid import UUID


# --- Counters ---
class CampaignCountersOut(BaseModel):
    total: int
    remaining: int
    assigned: int


# --- Overview ---
class ConsultantLoad(BaseModel):
    consultant_id: UUID
    total: int
    by_status: Dict[str, int]


class CampaignOverview(BaseModel):
    campaign_id: UUID
    name: str
    status: str
    total_leads: int
    remaining_leads: int
    assigned_leads: int
    consultants: List[ConsultantLoad]

    model_config = {"from_attributes": True}


# --- Reset ---
class CampaignResetResponse(BaseModel):
    reset_count: int
    counters: CampaignCountersOut
    message: str = "Campaign reset"


# --- Import ---
class LeadImportRequest(BaseModel):
    file_name: Optional[str] = None
    rows: Annotated[List[Dict[str, Any]], Field(min_length=1)]


class LeadImportResponse(BaseModel):
    batch_id: UUID
    total_rows: int
    imported: int
    skipped: int
    counters: CampaignCountersOut


# --- Deletes ---
class BatchDeleteResponse(BaseModel):
    success: bool
    counters: CampaignCountersOut


class CampaignDeleteResponse(BaseModel):
    campaign_id: UUID
    deleted_leads: int
    deleted_history: int
    deleted_batches: int
