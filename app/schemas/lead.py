from typing import List, Optional
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime


# --- Reassignment ---
class LeadReassignRequest(BaseModel):
    new_consultant_id: UUID
    note: Optional[str] = None


class LeadReassignResponse(BaseModel):
    ok: bool
    lead_id: UUID
    from_consultant_id: Optional[UUID]
    to_consultant_id: UUID
    previous_status: str
    new_status: str


# --- History ---
class LeadHistoryItem(BaseModel):
    history_id: UUID
    action: str
    from_user_id: Optional[UUID] = None
    to_user_id: Optional[UUID] = None
    by_user_id: UUID
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class LeadHistoryResponse(BaseModel):
    lead_id: UUID
    history: List[LeadHistoryItem]
