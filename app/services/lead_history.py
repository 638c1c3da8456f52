from typing import List, Optional
from uuid import UUID
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import LeadHistory
from app.models.constants import HistoryAction
from app.crud import lead_history as crud_history


class LeadHistoryLogger:
    """
        Append-only audit trail of lead ownership and status changes.

        Entries are added to the caller's session, so they commit or roll back
        together with the allocation change they describe. Nothing here ever
        updates or deletes an entry; rows only disappear when their lead is
        removed by a batch or campaign cascade delete.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        lead_id: UUID,
        action: str,
        by_user_id: Optional[UUID] = None,
        from_user_id: Optional[UUID] = None,
        to_user_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        previous_status: Optional[str] = None,
        new_status: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> LeadHistory:
        if action not in HistoryAction.ALL:
            raise ValueError(f"Unknown history action: {action}")

        # The acting user falls back to the receiving, then the giving user
        effective_user = by_user_id or to_user_id or from_user_id
        if not effective_user:
            raise ValueError("Cannot log lead action without actor user id")

        entry = LeadHistory(
            lead_id=lead_id,
            action=action,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            by_user_id=effective_user,
            previous_status=previous_status,
            new_status=new_status,
            notes=notes,
            created_at=at or datetime.utcnow(),
        )
        self.db.add(entry)
        return entry

    async def list_history(self, lead_id: UUID) -> List[LeadHistory]:
        return await crud_history.get_history_by_lead(self.db, lead_id)
