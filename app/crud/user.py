# app/crud/user.py
from typing import List, Sequence
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models import User, ManagerOffice


async def get_user(db: AsyncSession, user_id: UUID) -> User | None:
    result = await db.execute(select(User).where(User.user_id == user_id))
    return result.scalar_one_or_none()


async def get_users(db: AsyncSession, user_ids: Sequence[UUID]) -> List[User]:
    result = await db.execute(select(User).where(User.user_id.in_(list(user_ids))))
    return list(result.scalars().all())


async def get_managed_office_ids(db: AsyncSession, manager_id: UUID) -> List[UUID]:
    result = await db.execute(
        select(ManagerOffice.office_id).where(ManagerOffice.manager_id == manager_id)
    )
    return list(result.scalars().all())
