import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

from app.models.constants import HistoryAction, LeadStatus
from app.services.lead_history import LeadHistoryLogger

from tests.factories import make_campaign, make_leads, make_user


class TestLeadHistoryLogger:
    @pytest.mark.asyncio
    async def test_lists_newest_first(self, db):
        campaign = await make_campaign(db)
        (lead,) = await make_leads(db, campaign, 1)
        a, b = await make_user(db), await make_user(db)
        logger = LeadHistoryLogger(db)
        t0 = datetime(2024, 3, 1, 10, 0)

        logger.record(lead.lead_id, HistoryAction.ASSIGN, by_user_id=a.user_id, to_user_id=a.user_id, at=t0)
        logger.record(lead.lead_id, HistoryAction.REASSIGN, by_user_id=a.user_id, from_user_id=a.user_id,
                      to_user_id=b.user_id, at=t0 + timedelta(hours=1))
        logger.record(lead.lead_id, HistoryAction.STATUS_CHANGE, by_user_id=b.user_id,
                      previous_status=LeadStatus.NOVO, new_status=LeadStatus.EM_ATENDIMENTO,
                      at=t0 + timedelta(hours=2))
        await db.commit()

        entries = await logger.list_history(lead.lead_id)
        assert [e.action for e in entries] == [
            HistoryAction.STATUS_CHANGE, HistoryAction.REASSIGN, HistoryAction.ASSIGN,
        ]

    def test_actor_falls_back_to_target_then_source(self):
        logger = LeadHistoryLogger(MagicMock())
        to_user, from_user = uuid4(), uuid4()
        assert logger.record(uuid4(), HistoryAction.ASSIGN, to_user_id=to_user).by_user_id == to_user
        assert logger.record(uuid4(), HistoryAction.RESET, from_user_id=from_user).by_user_id == from_user

    def test_entry_without_any_user_is_rejected(self):
        with pytest.raises(ValueError):
            LeadHistoryLogger(MagicMock()).record(uuid4(), HistoryAction.ASSIGN)

    def test_unknown_action_is_rejected(self):
        with pytest.raises(ValueError):
            LeadHistoryLogger(MagicMock()).record(uuid4(), "DELETE", by_user_id=uuid4())
