"""Team persistence helpers."""
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamguard.features.permissions.models import Ability, Capability, Group, Role
from teamguard.features.teams.models import Invitation, Membership, Team
from teamguard.features.users.models import User


def _team_options():
    """Eager-load contract for a materialized Team."""
    return (
        selectinload(Team.owner),
        selectinload(Team.memberships).selectinload(Membership.user),
        selectinload(Team.memberships).selectinload(Membership.role).selectinload(Role.capabilities),
        selectinload(Team.roles).selectinload(Role.capabilities),
        selectinload(Team.groups).selectinload(Group.users),
        selectinload(Team.abilities).selectinload(Ability.capability),
        selectinload(Team.invitations),
    )


class TeamsRepository:
    """Query helpers for teams and their children."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load_team(self, team_id: str) -> Team | None:
        """Load a team with roles, capabilities, groups, memberships, abilities and invitations."""
        stmt = (
            select(Team)
            .options(*_team_options())
            .where(Team.id == team_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user: User) -> list[Team]:
        member_of = select(Membership.team_id).where(Membership.user_id == user.id)
        stmt = (
            select(Team)
            .options(*_team_options())
            .where(or_(Team.user_id == user.id, Team.id.in_(member_of)))
            .order_by(Team.name)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_capability(self, code: str) -> Capability | None:
        result = await self._session.execute(
            select(Capability).where(Capability.code == code)
        )
        return result.scalar_one_or_none()

    async def get_invitation(self, invitation_id: str) -> Invitation | None:
        stmt = (
            select(Invitation)
            .where(Invitation.id == invitation_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
