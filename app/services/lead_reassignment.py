from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from uuid import UUID
from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Lead, User
from app.models.constants import HistoryAction, Role
from app.crud import lead as crud_lead
from app.crud import campaign as crud_campaign
from app.crud import user as crud_user
from app.services.campaign_counters import recompute_campaign_counters
from app.services.errors import (
    CrossOfficeForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from app.services.lead_history import LeadHistoryLogger
from app.services.permissions import Actor, PermissionOracle

logger = logging.getLogger(__name__)


@dataclass
class ReassignResult:
    lead_id: UUID
    from_consultant_id: Optional[UUID]
    to_consultant_id: UUID
    previous_status: str
    new_status: str


@dataclass
class RecaptureResult:
    processed: List[UUID] = field(default_factory=list)
    blocked: List[UUID] = field(default_factory=list)


def _push_previous(lead: Lead) -> None:
    # Assign a new list so the JSON column is flagged as changed
    if lead.consultant_id:
        lead.previous_consultants = [*(lead.previous_consultants or []), str(lead.consultant_id)]


class LeadReassignmentService:
    """
        Moves leads that already have an owner to another consultant.

        1. Direct reassignment (`reassign`):
        - One lead, all-or-nothing.
        - Refused with CROSS_OFFICE_FORBIDDEN when the lead and the target
          consultant both belong to an office and the offices differ.
        - The lead inherits the consultant's office when it had none.

        2. Recapture (`recapture`):
        - Many leads of one campaign, checked one by one against the
          PermissionOracle for the lead's office.
        - Denied leads are reported in `blocked`; the others are processed.
          One lead's denial never fails the rest of the request.
        - Leads already with the target consultant, and leads of another
          office than the target consultant's, are blocked too.
        - A lead without an office inherits the target consultant's office.

        Both paths push the prior consultant into `previous_consultants` and
        write one history entry per moved lead in the same transaction.
    """

    def __init__(self, db: AsyncSession, history: Optional[LeadHistoryLogger] = None):
        self.db = db
        self.history = history or LeadHistoryLogger(db)

    async def _get_consultant(self, consultant_id: UUID) -> User:
        consultant = await crud_user.get_user(self.db, consultant_id)
        if not consultant or consultant.role != Role.CONSULTOR or not consultant.is_active:
            raise NotFoundError(f"Consultant {consultant_id} not found")
        return consultant

    async def reassign(
        self,
        lead_id: UUID,
        new_consultant_id: UUID,
        actor_id: UUID,
        note: Optional[str] = None,
    ) -> ReassignResult:
        try:
            result = await self._reassign(lead_id, new_consultant_id, actor_id, note)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Lead %s reassigned from %s to %s", lead_id, result.from_consultant_id, new_consultant_id)
        return result

    async def _reassign(self, lead_id, new_consultant_id, actor_id, note) -> ReassignResult:
        lead = await crud_lead.get_lead_by_id(self.db, lead_id)
        if not lead:
            raise NotFoundError(f"Lead {lead_id} not found")
        consultant = await self._get_consultant(new_consultant_id)

        if lead.consultant_id == new_consultant_id:
            raise InvalidArgumentError("Lead is already assigned to this consultant")

        if lead.office_id and consultant.office_id and lead.office_id != consultant.office_id:
            raise CrossOfficeForbiddenError(
                f"Lead {lead_id} belongs to office {lead.office_id}, "
                f"consultant {new_consultant_id} to office {consultant.office_id}"
            )

        previous_consultant = lead.consultant_id
        previous_status = lead.status
        now = datetime.utcnow()

        _push_previous(lead)
        lead.consultant_id = new_consultant_id
        lead.owner_id = new_consultant_id
        if not lead.office_id:
            lead.office_id = consultant.office_id
        lead.is_worked = False
        lead.updated_at = now

        self.history.record(
            lead.lead_id,
            HistoryAction.REASSIGN,
            by_user_id=actor_id,
            from_user_id=previous_consultant,
            to_user_id=new_consultant_id,
            previous_status=previous_status,
            new_status=lead.status,
            notes=note,
            at=now,
        )

        # A lead taken from stock changes the campaign counters
        if previous_consultant is None:
            await self.db.flush()
            await recompute_campaign_counters(self.db, lead.campaign_id)

        return ReassignResult(
            lead_id=lead.lead_id,
            from_consultant_id=previous_consultant,
            to_consultant_id=new_consultant_id,
            previous_status=previous_status,
            new_status=lead.status,
        )

    async def recapture(
        self,
        campaign_id: UUID,
        lead_ids: Sequence[UUID],
        new_consultant_id: UUID,
        actor: Actor,
        oracle: PermissionOracle,
        reason: Optional[str] = None,
    ) -> RecaptureResult:
        if not lead_ids or not new_consultant_id:
            raise InvalidArgumentError("Lead ids and new consultant are required")

        try:
            result = await self._recapture(campaign_id, list(dict.fromkeys(lead_ids)), new_consultant_id, actor, oracle, reason)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Recapture on campaign %s: %s processed, %s blocked",
            campaign_id, len(result.processed), len(result.blocked),
        )
        return result

    async def _recapture(self, campaign_id, lead_ids, new_consultant_id, actor, oracle, reason) -> RecaptureResult:
        if not await crud_campaign.get_campaign(self.db, campaign_id):
            raise NotFoundError(f"Campaign {campaign_id} not found")
        consultant = await self._get_consultant(new_consultant_id)

        leads = {lead.lead_id: lead for lead in await crud_lead.get_leads_in_campaign(self.db, campaign_id, lead_ids)}
        result = RecaptureResult()

        # 1. --- Partition per lead ---
        allowed: List[Lead] = []
        for lead_id in lead_ids:
            lead = leads.get(lead_id)
            if lead is None:
                logger.warning("Recapture skipped lead %s: not in campaign %s", lead_id, campaign_id)
                result.blocked.append(lead_id)
            elif lead.consultant_id == new_consultant_id:
                logger.warning("Recapture skipped lead %s: already with consultant %s", lead_id, new_consultant_id)
                result.blocked.append(lead_id)
            elif lead.office_id and consultant.office_id and lead.office_id != consultant.office_id:
                logger.warning(
                    "Recapture skipped lead %s: office %s differs from consultant office %s",
                    lead_id, lead.office_id, consultant.office_id,
                )
                result.blocked.append(lead_id)
            elif await oracle.can_recapture(actor, campaign_id, lead.office_id):
                allowed.append(lead)
            else:
                logger.warning("Recapture blocked for lead %s (office %s)", lead_id, lead.office_id)
                result.blocked.append(lead_id)

        if not allowed:
            raise PermissionDeniedError("No lead allowed for recapture", blocked=result.blocked)

        # 2. --- Apply to the allowed ones ---
        now = datetime.utcnow()
        for lead in allowed:
            previous_consultant = lead.consultant_id
            _push_previous(lead)
            lead.consultant_id = new_consultant_id
            lead.owner_id = new_consultant_id
            if not lead.office_id:
                lead.office_id = consultant.office_id
            lead.last_activity_at = now
            lead.updated_at = now

            self.history.record(
                lead.lead_id,
                HistoryAction.RECAPTURE,
                by_user_id=actor.user_id,
                from_user_id=previous_consultant,
                to_user_id=new_consultant_id,
                previous_status=lead.status,
                new_status=lead.status,
                notes=reason,
                at=now,
            )
            result.processed.append(lead.lead_id)

        await self.db.flush()
        await recompute_campaign_counters(self.db, campaign_id)
        return result
