import pytest
from datetime import datetime
from uuid import uuid4
from sqlalchemy import select

from app.models import Campaign, Lead, LeadHistory
from app.models.constants import HistoryAction, LeadStatus, Role
from app.services.campaign_reset import reset_campaign
from app.services.errors import NotFoundError

from tests.factories import make_campaign, make_leads, make_office, make_user


class TestResetCampaign:
    @pytest.mark.asyncio
    async def test_every_lead_returns_to_stock(self, db, session_factory):
        office = await make_office(db)
        campaign = await make_campaign(db)
        consultant = await make_user(db, office=office)
        admin = await make_user(db, role=Role.MASTER)
        await make_leads(
            db, campaign, 3, consultant=consultant, office=office,
            status=LeadStatus.EM_NEGOCIACAO,
            is_worked=True,
            last_status_change_at=datetime(2024, 2, 1),
            last_activity_at=datetime(2024, 2, 2),
            last_interaction_at=datetime(2024, 2, 3),
            last_outcome_code="CALLBACK",
            last_outcome_label="Retornar",
            last_outcome_note="cliente pediu retorno",
            next_follow_up_at=datetime(2024, 2, 10),
            next_step_note="enviar proposta",
        )
        await make_leads(db, campaign, 2)

        result = await reset_campaign(db, campaign.campaign_id, admin.user_id)

        assert result.reset_count == 5
        assert result.counters.remaining == result.counters.total == 5
        assert result.counters.assigned == 0

        async with session_factory() as session:
            leads = (await session.execute(select(Lead))).scalars().all()
            stored = await session.get(Campaign, campaign.campaign_id)
        assert stored.remaining_leads == stored.total_leads == 5
        for lead in leads:
            assert lead.consultant_id is None
            assert lead.owner_id is None
            assert lead.office_id is None
            assert lead.status == LeadStatus.NOVO
            assert lead.is_worked is False
            assert lead.last_status_change_at is None
            assert lead.last_activity_at is None
            assert lead.last_interaction_at is None
            assert lead.last_outcome_code is None
            assert lead.last_outcome_label is None
            assert lead.last_outcome_note is None
            assert lead.next_follow_up_at is None
            assert lead.next_step_note is None

    @pytest.mark.asyncio
    async def test_history_only_for_leads_that_had_an_owner(self, db, session_factory):
        campaign = await make_campaign(db)
        consultant = await make_user(db)
        admin = await make_user(db, role=Role.MASTER)
        owned = await make_leads(db, campaign, 2, consultant=consultant, status=LeadStatus.FECHADO)
        await make_leads(db, campaign, 1)

        await reset_campaign(db, campaign.campaign_id, admin.user_id)

        async with session_factory() as session:
            entries = (await session.execute(select(LeadHistory))).scalars().all()
        assert {e.lead_id for e in entries} == {lead.lead_id for lead in owned}
        for entry in entries:
            assert entry.action == HistoryAction.RESET
            assert entry.from_user_id == consultant.user_id
            assert entry.previous_status == LeadStatus.FECHADO
            assert entry.new_status == LeadStatus.NOVO

    @pytest.mark.asyncio
    async def test_other_campaigns_are_left_alone(self, db, session_factory):
        campaign, other = await make_campaign(db), await make_campaign(db, "Outra")
        consultant = await make_user(db)
        admin = await make_user(db, role=Role.MASTER)
        await make_leads(db, campaign, 1, consultant=consultant)
        (kept,) = await make_leads(db, other, 1, consultant=consultant)

        await reset_campaign(db, campaign.campaign_id, admin.user_id)

        async with session_factory() as session:
            stored = await session.get(Lead, kept.lead_id)
        assert stored.consultant_id == consultant.user_id

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, db):
        with pytest.raises(NotFoundError):
            await reset_campaign(db, uuid4(), uuid4())
