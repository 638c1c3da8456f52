from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.constants import Role
from app.crud import user as crud_user
from app.crud import lead as crud_lead


@dataclass(frozen=True)
class Actor:
    """The authenticated user a request acts on behalf of."""

    user_id: UUID
    role: str
    office_id: Optional[UUID] = None
    managed_office_ids: FrozenSet[UUID] = field(default_factory=frozenset)


async def load_actor(db: AsyncSession, user_id: UUID) -> Optional[Actor]:
    user = await crud_user.get_user(db, user_id)
    if not user or not user.is_active:
        return None
    managed = await crud_user.get_managed_office_ids(db, user_id)
    return Actor(
        user_id=user.user_id,
        role=user.role,
        office_id=user.office_id,
        managed_office_ids=frozenset(managed),
    )


# --- Role policies ---
class RolePolicy:
    """Base policy: no global reach and no office access."""

    unrestricted = False
    can_allocate = False
    can_import = False
    can_reset = False
    can_delete = False

    def has_office_access(self, actor: Actor, office_ids: Iterable[UUID]) -> bool:
        return False


class MasterPolicy(RolePolicy):
    unrestricted = True
    can_allocate = True
    can_import = True
    can_reset = True
    can_delete = True


class SeniorManagerPolicy(RolePolicy):
    unrestricted = True
    can_allocate = True
    can_import = True


class BusinessManagerPolicy(RolePolicy):
    can_allocate = True

    def has_office_access(self, actor, office_ids):
        return any(office_id in actor.managed_office_ids for office_id in office_ids)


class OwnerPolicy(RolePolicy):
    can_allocate = True

    def has_office_access(self, actor, office_ids):
        return actor.office_id is not None and actor.office_id in set(office_ids)


class ConsultantPolicy(RolePolicy):
    pass


POLICIES: Dict[str, RolePolicy] = {
    Role.MASTER: MasterPolicy(),
    Role.GERENTE_SENIOR: SeniorManagerPolicy(),
    Role.GERENTE_NEGOCIOS: BusinessManagerPolicy(),
    Role.PROPRIETARIO: OwnerPolicy(),
    Role.CONSULTOR: ConsultantPolicy(),
}


def policy_for(actor: Actor) -> RolePolicy:
    # Unknown roles get nothing
    return POLICIES.get(actor.role, ConsultantPolicy())


class PermissionOracle:
    """
        Single source of truth for "may this actor do X on this campaign/office".

        Office-scoped roles are checked against the given office; when no
        office is given they are checked against every office that owns a lead
        in the campaign. A campaign without any office-tagged lead is only
        reachable by unrestricted roles.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self._campaign_offices: Dict[UUID, set] = {}

    async def _offices_for(self, campaign_id: UUID, office_id: Optional[UUID]) -> set:
        if office_id:
            return {office_id}
        if campaign_id not in self._campaign_offices:
            self._campaign_offices[campaign_id] = await crud_lead.get_campaign_office_ids(self.db, campaign_id)
        return self._campaign_offices[campaign_id]

    async def _office_scoped(self, actor: Actor, campaign_id: UUID, office_id: Optional[UUID]) -> bool:
        policy = policy_for(actor)
        if policy.unrestricted:
            return True
        if not policy.can_allocate:
            return False
        offices = await self._offices_for(campaign_id, office_id)
        if not offices:
            return False
        return policy.has_office_access(actor, offices)

    async def can_distribute(self, actor: Actor, campaign_id: UUID, office_id: Optional[UUID] = None) -> bool:
        return await self._office_scoped(actor, campaign_id, office_id)

    async def can_recapture(self, actor: Actor, campaign_id: UUID, office_id: Optional[UUID] = None) -> bool:
        return await self._office_scoped(actor, campaign_id, office_id)

    async def can_reassign(self, actor: Actor, campaign_id: UUID, office_id: Optional[UUID] = None) -> bool:
        return await self._office_scoped(actor, campaign_id, office_id)

    async def can_manage_campaign(self, actor: Actor, campaign_id: UUID) -> bool:
        policy = policy_for(actor)
        if policy.unrestricted:
            return True
        offices = await self._offices_for(campaign_id, None)
        return bool(offices) and policy.has_office_access(actor, offices)

    def can_import(self, actor: Actor) -> bool:
        return policy_for(actor).can_import

    def can_reset(self, actor: Actor) -> bool:
        return policy_for(actor).can_reset

    def can_delete(self, actor: Actor) -> bool:
        return policy_for(actor).can_delete
