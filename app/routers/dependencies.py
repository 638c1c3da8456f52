from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.services.permissions import Actor, PermissionOracle, load_actor


async def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Resolve the session user forwarded by the auth layer in `X-User-Id`."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Unauthorized")

    actor = await load_actor(db, user_id)
    if not actor:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return actor


async def get_permission_oracle(db: AsyncSession = Depends(get_db)) -> PermissionOracle:
    return PermissionOracle(db)
