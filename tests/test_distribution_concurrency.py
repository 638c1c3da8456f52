"""
Two distributions racing for the same stock.

Both calls are forced to read the stock before either one writes. With the
guarded claim every lead ends up with exactly one owner; with a naive
"update by id" claim the second writer silently steals the first writer's
leads.
"""
import asyncio
import pytest
from collections import defaultdict
from datetime import datetime
from sqlalchemy import select, update

from app.crud import lead as crud_lead
from app.models import Lead, LeadHistory
from app.models.constants import HistoryAction, Role
from app.services.lead_distribution import LeadDistributionEngine

from tests.factories import make_campaign, make_leads, make_user


def _hold_first_reads(monkeypatch, parties=2):
    """Make the first stock read of each distribution wait until all of them have read."""
    original = crud_lead.find_stock
    state = {"reads": 0}
    all_read = asyncio.Event()

    async def find_stock(db, campaign_id, limit, exclude=(), with_phone=False):
        ids = await original(db, campaign_id, limit, exclude, with_phone)
        if not exclude:
            state["reads"] += 1
            if state["reads"] >= parties:
                all_read.set()
            await asyncio.wait_for(all_read.wait(), timeout=5)
        return ids

    monkeypatch.setattr(crud_lead, "find_stock", find_stock)


async def naive_claim_leads(db, lead_ids, consultant_id, office_id, now: datetime):
    """Claim without re-checking that the leads are still in stock."""
    if not lead_ids:
        return []
    await db.execute(
        update(Lead)
        .where(Lead.lead_id.in_(list(lead_ids)))
        .values(consultant_id=consultant_id, owner_id=consultant_id, office_id=office_id)
        .execution_options(synchronize_session=False)
    )
    return list(lead_ids)


async def _race(session_factory, campaign, first, second, quantity, admin):
    async def run(consultants):
        async with session_factory() as session:
            return await LeadDistributionEngine(session).distribute(
                campaign.campaign_id, [c.user_id for c in consultants], quantity, admin.user_id
            )

    return await asyncio.gather(run(first), run(second))


async def _assign_targets(session_factory):
    async with session_factory() as session:
        entries = (await session.execute(
            select(LeadHistory).where(LeadHistory.action == HistoryAction.ASSIGN)
        )).scalars().all()
    targets = defaultdict(set)
    for entry in entries:
        targets[entry.lead_id].add(entry.to_user_id)
    return targets


class TestGuardedClaim:
    @pytest.mark.asyncio
    async def test_second_claim_on_same_ids_takes_nothing(self, db):
        campaign = await make_campaign(db)
        await make_leads(db, campaign, 3)
        a, b = await make_user(db), await make_user(db)

        # Both callers read the same stock before either writes
        seen_by_a = await crud_lead.find_stock(db, campaign.campaign_id, limit=3)
        seen_by_b = await crud_lead.find_stock(db, campaign.campaign_id, limit=3)
        assert seen_by_a == seen_by_b

        now = datetime.utcnow()
        claimed_a = await crud_lead.claim_leads(db, seen_by_a, a.user_id, None, now)
        claimed_b = await crud_lead.claim_leads(db, seen_by_b, b.user_id, None, now)

        assert sorted(claimed_a) == sorted(seen_by_a)
        assert claimed_b == []

    @pytest.mark.asyncio
    async def test_naive_claim_overwrites_the_first_owner(self, db):
        campaign = await make_campaign(db)
        await make_leads(db, campaign, 3)
        a, b = await make_user(db), await make_user(db)

        seen_by_a = await crud_lead.find_stock(db, campaign.campaign_id, limit=3)
        seen_by_b = await crud_lead.find_stock(db, campaign.campaign_id, limit=3)

        now = datetime.utcnow()
        claimed_a = await naive_claim_leads(db, seen_by_a, a.user_id, None, now)
        claimed_b = await naive_claim_leads(db, seen_by_b, b.user_id, None, now)

        # Both callers believe they own the same leads
        assert set(claimed_a) & set(claimed_b) == set(seen_by_a)


class TestConcurrentDistribute:
    @pytest.mark.asyncio
    async def test_no_lead_is_assigned_twice(self, db, session_factory, monkeypatch):
        campaign = await make_campaign(db)
        leads = await make_leads(db, campaign, 4)
        c1, c2, c3, c4 = [await make_user(db) for _ in range(4)]
        admin = await make_user(db, role=Role.MASTER)
        _hold_first_reads(monkeypatch)

        first, second = await _race(session_factory, campaign, [c1, c2], [c3, c4], 2, admin)

        assert first.total_distributed + second.total_distributed == len(leads)
        targets = await _assign_targets(session_factory)
        assert set(targets) == {lead.lead_id for lead in leads}
        assert all(len(owners) == 1 for owners in targets.values())

        async with session_factory() as session:
            stored = (await session.execute(select(Lead))).scalars().all()
        for lead in stored:
            (owner,) = targets[lead.lead_id]
            assert lead.consultant_id == owner

    @pytest.mark.asyncio
    async def test_unguarded_claim_double_assigns(self, db, session_factory, monkeypatch):
        campaign = await make_campaign(db)
        leads = await make_leads(db, campaign, 4)
        c1, c2, c3, c4 = [await make_user(db) for _ in range(4)]
        admin = await make_user(db, role=Role.MASTER)
        _hold_first_reads(monkeypatch)
        monkeypatch.setattr(crud_lead, "claim_leads", naive_claim_leads)

        first, second = await _race(session_factory, campaign, [c1, c2], [c3, c4], 2, admin)

        # Each call reports the full stock as its own
        assert first.total_distributed == second.total_distributed == len(leads)
        targets = await _assign_targets(session_factory)
        assert all(len(owners) == 2 for owners in targets.values())
