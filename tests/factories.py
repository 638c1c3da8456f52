"""Builders for test rows. Every helper flushes and commits on the given session."""
from datetime import datetime, timedelta
from uuid import uuid4

from app.models import Campaign, Lead, ManagerOffice, Office, User
from app.models.constants import LeadStatus, Role

BASE_TIME = datetime(2024, 1, 1, 9, 0, 0)


async def make_office(db, name="Matriz", code=None):
    office = Office(office_id=uuid4(), name=name, code=code or f"OF-{uuid4().hex[:6]}")
    db.add(office)
    await db.commit()
    return office


async def make_user(db, role=Role.CONSULTOR, office=None, name=None, is_active=True):
    user_id = uuid4()
    user = User(
        user_id=user_id,
        full_name=name or f"User {user_id.hex[:6]}",
        email=f"{user_id.hex}@example.com",
        role=role,
        office_id=office.office_id if office else None,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    return user


async def make_manager(db, managed_offices, role=Role.GERENTE_NEGOCIOS, office=None):
    manager = await make_user(db, role=role, office=office)
    for managed in managed_offices:
        db.add(ManagerOffice(manager_id=manager.user_id, office_id=managed.office_id))
    await db.commit()
    return manager


async def make_campaign(db, name="Campanha Teste"):
    campaign = Campaign(campaign_id=uuid4(), name=name)
    db.add(campaign)
    await db.commit()
    return campaign


async def make_leads(db, campaign, count, consultant=None, office=None, status=LeadStatus.NOVO, start=BASE_TIME, **extra):
    """`count` leads with strictly increasing created_at, returned oldest first."""
    leads = []
    for i in range(count):
        lead = Lead(
            lead_id=uuid4(),
            campaign_id=campaign.campaign_id,
            company_name=f"Empresa {i + 1}",
            document=f"{uuid4().int % 10**14:014d}",
            consultant_id=consultant.user_id if consultant else None,
            owner_id=consultant.user_id if consultant else None,
            office_id=office.office_id if office else None,
            status=status,
            previous_consultants=[],
            created_at=start + timedelta(minutes=i),
            **extra,
        )
        leads.append(lead)
    db.add_all(leads)
    await db.commit()
    return leads
