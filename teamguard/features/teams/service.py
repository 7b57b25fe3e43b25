"""
Team mutations.

Every public coroutine runs as one unit of work: it commits on success,
rolls back on failure, and reloads the team so the caller's Team object
reflects the stored state. Lookup misses return None/False instead of
raising.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamguard.core.exceptions import (
    AlreadyMemberError,
    ConstraintViolation,
    DuplicateGroupError,
    DuplicateInvitationError,
    DuplicateRoleError,
)
from teamguard.features.permissions.models import (
    Ability,
    Capability,
    Group,
    Role,
    group_users,
    role_capabilities,
)
from teamguard.features.permissions.resolver import entity_ref
from teamguard.features.permissions.schemas import AbilityGrant, GroupCreate, RoleCreate
from teamguard.features.teams.models import Invitation, InvitationStatus, Membership, Team
from teamguard.features.teams.repository import TeamsRepository
from teamguard.features.teams.schemas import InvitationCreate, TeamCreate, TeamPolicy
from teamguard.features.users.models import User
from teamguard.utils import get_logger


log = get_logger(__name__)


class TeamService:
    """Operations on the team aggregate backed by an async session."""

    def __init__(self, db: AsyncSession, policy: TeamPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or TeamPolicy()
        self.repository = TeamsRepository(db)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(
        self,
        on_conflict: type[ConstraintViolation] | None = None,
        **details: Any,
    ) -> AsyncIterator[None]:
        """
        Run the block as one unit of work.

        Commits when the block finishes; any failure inside the block or on
        commit rolls back every statement issued in it. An IntegrityError is
        re-raised as ``on_conflict`` when one is given.

        Rolling back expires loaded objects, so callers reload before reuse.
        """
        try:
            yield
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            if on_conflict is None:
                raise
            raise on_conflict(**details) from exc
        except Exception:
            await self.db.rollback()
            raise

    async def _reload(self, team: Team) -> Team:
        reloaded = await self.repository.load_team(team.id)
        return reloaded if reloaded is not None else team

    def _resolve_role(self, team: Team, role: Role | str | None) -> Role | None:
        if isinstance(role, Role):
            return team.find_role_by_id(role.id)
        if role is None:
            return None
        return team.find_role_by_name(role)

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def create_team(self, owner: User, name: str) -> Team:
        data = TeamCreate(name=name)
        team = Team(user_id=owner.id, name=data.name)
        async with self._transaction():
            self.db.add(team)
        log.info(f"Team {team.id} created for owner {owner.id}")
        return await self._reload(team)

    async def load_team(self, team_id: str) -> Team | None:
        return await self.repository.load_team(team_id)

    async def teams_for_user(self, user: User) -> list[Team]:
        """Get every team the user owns or belongs to."""
        return await self.repository.list_for_user(user)

    async def purge(self, team: Team) -> None:
        """
        Purge all the team's resources and the team itself.

        Runs as a single transaction so that no child row can outlive the team.
        """
        team_id = team.id
        group_ids = select(Group.id).where(Group.team_id == team_id)
        role_ids = select(Role.id).where(Role.team_id == team_id)
        try:
            async with self._transaction():
                await self.db.execute(delete(group_users).where(group_users.c.group_id.in_(group_ids)))
                await self.db.execute(delete(Membership).where(Membership.team_id == team_id))
                await self.db.execute(delete(Ability).where(Ability.team_id == team_id))
                await self.db.execute(delete(Invitation).where(Invitation.team_id == team_id))
                await self.db.execute(delete(role_capabilities).where(role_capabilities.c.role_id.in_(role_ids)))
                await self.db.execute(delete(Role).where(Role.team_id == team_id))
                await self.db.execute(delete(Group).where(Group.team_id == team_id))
                await self.db.execute(delete(Team).where(Team.id == team_id))
        except Exception:
            log.exception(f"Purge of team {team_id} failed, rolled back")
            raise
        log.info(f"Team {team_id} purged")

    # ------------------------------------------------------------------
    # Capabilities and roles
    # ------------------------------------------------------------------

    async def get_or_create_capability(self, code: str) -> Capability:
        """
        Get the global capability with this code, creating it on first use.

        Flushes but does not commit; callers commit as part of their own work.
        The insert runs in a savepoint so that losing a race on the unique
        code only discards the insert, and the row written by the other
        session is returned instead.
        """
        capability = await self.repository.get_capability(code)
        if capability is not None:
            return capability

        try:
            async with self.db.begin_nested():
                capability = Capability(code=code)
                self.db.add(capability)
                await self.db.flush([capability])
        except IntegrityError:
            log.debug(f"Capability {code!r} created concurrently, reusing it")
            return await self.repository.get_capability(code)

        log.debug(f"Capability {code!r} created")
        return capability

    async def _capabilities(self, codes: Iterable[str]) -> list[Capability]:
        return [await self.get_or_create_capability(code) for code in codes]

    async def add_role(self, team: Team, name: str, capabilities: Iterable[str]) -> Role:
        """
        Add a role with the given capability codes to the team.

        Raises:
            DuplicateRoleError: if the team already has a role with this name
        """
        data = RoleCreate(name=name, capabilities=list(capabilities))
        if team.find_role_by_name(data.name) is not None:
            raise DuplicateRoleError(team_id=team.id, name=data.name)

        async with self._transaction(DuplicateRoleError, team_id=team.id, name=data.name):
            role = Role(
                team_id=team.id,
                name=data.name,
                capabilities=await self._capabilities(data.capabilities),
            )
            self.db.add(role)
        await self.db.refresh(role)
        await self._reload(team)

        log.info(f"Role {data.name!r} added to team {team.id} with {len(data.capabilities)} capabilities")
        return role

    async def update_role(self, team: Team, name: str, capabilities: Iterable[str]) -> Role | None:
        """
        Replace the capabilities of the named role.

        Links missing from the new set are detached, new ones attached and
        the rest left alone. Returns None if the team has no such role.
        """
        role = team.find_role_by_name(name)
        if role is None:
            return None

        data = RoleCreate(name=role.name, capabilities=list(capabilities))
        async with self._transaction():
            role.capabilities = await self._capabilities(data.capabilities)
        await self._reload(team)

        log.info(f"Role {name!r} in team {team.id} now has capabilities {sorted(data.capabilities)}")
        return role

    async def delete_role(self, team: Team, name: str) -> bool:
        """
        Delete the named role. Members holding it are left without a role.

        Capability rows are kept, only the links are removed.
        """
        role = team.find_role_by_name(name)
        if role is None:
            return False

        async with self._transaction():
            await self.db.execute(
                update(Membership).where(Membership.role_id == role.id).values(role_id=None)
            )
            await self.db.execute(
                update(Invitation).where(Invitation.role_id == role.id).values(role_id=None)
            )
            await self.db.delete(role)
        await self._reload(team)

        log.info(f"Role {name!r} deleted from team {team.id}")
        return True

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def add_group(self, team: Team, code: str, name: str) -> Group:
        """
        Add a group to the team.

        Raises:
            DuplicateGroupError: if the team already has a group with this code
        """
        data = GroupCreate(code=code, name=name)
        if team.group(data.code) is not None:
            raise DuplicateGroupError(team_id=team.id, code=data.code)

        group = Group(team_id=team.id, code=data.code, name=data.name, users=[])
        async with self._transaction(DuplicateGroupError, team_id=team.id, code=data.code):
            self.db.add(group)
        await self.db.refresh(group)
        await self._reload(team)

        log.info(f"Group {data.code!r} added to team {team.id}")
        return group

    async def delete_group(self, team: Team, code: str) -> Group | None:
        group = team.group(code)
        if group is None:
            return None

        async with self._transaction():
            await self.db.delete(group)
        await self._reload(team)

        log.info(f"Group {code!r} deleted from team {team.id}")
        return group

    async def add_user_to_group(self, team: Team, code: str, user: User) -> bool:
        group = team.group(code)
        if group is None or not team.has_user(user):
            return False
        if group.has_user(user):
            return True

        async with self._transaction():
            group.users.append(user)
        await self._reload(team)
        return True

    async def remove_user_from_group(self, team: Team, code: str, user: User) -> bool:
        group = team.group(code)
        if group is None:
            return False
        member = next((u for u in group.users if u.id == user.id), None)
        if member is None:
            return False

        async with self._transaction():
            group.users.remove(member)
        await self._reload(team)
        return True

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    async def add_user(self, team: Team, user: User, role: Role | str | None = None) -> Membership | None:
        """
        Add a user to the team, optionally with a role (object or name).

        Returns None if the role does not exist in the team.

        Raises:
            AlreadyMemberError: if the user owns or already belongs to the team
        """
        if team.has_user(user):
            raise AlreadyMemberError(team_id=team.id, user_id=user.id)

        resolved = self._resolve_role(team, role)
        if role is not None and resolved is None:
            return None

        membership = Membership(team_id=team.id, user_id=user.id, role_id=resolved.id if resolved else None)
        async with self._transaction(AlreadyMemberError, team_id=team.id, user_id=user.id):
            self.db.add(membership)
        await self.db.refresh(membership)
        await self._reload(team)

        log.info(f"User {user.id} added to team {team.id} with role {resolved.name if resolved else None!r}")
        return membership

    async def update_user_role(self, team: Team, user: User, role: Role | str | None) -> Membership | None:
        """Assign another role (or no role) to a member. None if not a member or role unknown."""
        membership = team.membership_for(user)
        if membership is None:
            return None

        resolved = self._resolve_role(team, role)
        if role is not None and resolved is None:
            return None

        async with self._transaction():
            membership.role_id = resolved.id if resolved else None
        await self._reload(team)

        log.info(f"User {user.id} in team {team.id} now has role {resolved.name if resolved else None!r}")
        return membership

    async def delete_user(self, team: Team, user: User) -> bool:
        """
        Remove the given user from the team.

        Also drops the user's group placements and personal ability grants
        in this team; other members are unaffected.
        """
        membership = team.membership_for(user)
        if membership is None:
            return False

        group_ids = select(Group.id).where(Group.team_id == team.id)
        async with self._transaction():
            await self.db.execute(
                delete(group_users).where(
                    group_users.c.user_id == user.id,
                    group_users.c.group_id.in_(group_ids),
                )
            )
            await self.db.execute(
                delete(Ability).where(Ability.team_id == team.id, Ability.user_id == user.id)
            )
            await self.db.delete(membership)
        await self._reload(team)

        log.info(f"User {user.id} removed from team {team.id}")
        return True

    # ------------------------------------------------------------------
    # Ability grants
    # ------------------------------------------------------------------

    def _find_ability(self, team: Team, grant: AbilityGrant) -> Ability | None:
        return next(
            (
                ability for ability in team.abilities
                if ability.action == grant.action
                and ability.user_id == grant.user_id
                and ability.entity_type == grant.entity_type
                and ability.entity_id == grant.entity_id
            ),
            None,
        )

    def _grant(self, action: str, entity: Any, user: User | None) -> AbilityGrant:
        ref = entity_ref(entity)
        return AbilityGrant(
            action=action,
            entity_type=ref.type if ref else None,
            entity_id=ref.id if ref else None,
            user_id=user.id if user else None,
        )

    async def grant_ability(
        self,
        team: Team,
        action: str,
        entity: Any = None,
        user: User | None = None,
    ) -> Ability | None:
        """
        Grant an action directly on the team.

        Args:
            team: Team receiving the grant
            action: Capability code (created on first use)
            entity: Optional entity the grant is narrowed to
            user: Optional grantee; without one every member benefits

        Returns:
            The grant (existing one if identical), or None if the grantee
            does not belong to the team
        """
        grant = self._grant(action, entity, user)
        if user is not None and not team.has_user(user):
            return None

        existing = self._find_ability(team, grant)
        if existing is not None:
            return existing

        async with self._transaction():
            capability = await self.get_or_create_capability(grant.action)
            ability = Ability(team_id=team.id, capability_id=capability.id, **grant.model_dump())
            self.db.add(ability)
        await self.db.refresh(ability)
        await self._reload(team)

        log.info(f"Ability {grant.action!r} granted in team {team.id} ({grant.entity_type}#{grant.entity_id}, user={grant.user_id})")
        return ability

    async def revoke_ability(
        self,
        team: Team,
        action: str,
        entity: Any = None,
        user: User | None = None,
    ) -> bool:
        """Remove the grant exactly matching action, entity and grantee."""
        ability = self._find_ability(team, self._grant(action, entity, user))
        if ability is None:
            return False

        async with self._transaction():
            await self.db.delete(ability)
        await self._reload(team)

        log.info(f"Ability {action!r} revoked in team {team.id}")
        return True

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    def _same_email(self, left: str, right: str) -> bool:
        if self.policy.case_sensitive_emails:
            return left == right
        return left.casefold() == right.casefold()

    async def invite(self, team: Team, email: str, role: str | None = None) -> Invitation | None:
        """
        Invite someone to the team by email.

        Returns the pending invitation (an existing one for the same email
        is reused), or None if the role does not exist in the team.

        The address is validated but stored exactly as given; EmailStr
        normalizes the domain, which would break case-sensitive matching
        against User.email.

        Raises:
            AlreadyMemberError: if a team user already has this email
            DuplicateInvitationError: if another session invited the same
                email concurrently
        """
        data = InvitationCreate(email=email, role=role)
        if team.has_user_with_email(email, case_sensitive=self.policy.case_sensitive_emails):
            raise AlreadyMemberError(team_id=team.id, email=email)

        existing = next((i for i in team.invitations if self._same_email(i.email, email)), None)
        if existing is not None:
            return existing

        resolved = self._resolve_role(team, data.role)
        if data.role is not None and resolved is None:
            return None

        invitation = Invitation(team_id=team.id, email=email, role_id=resolved.id if resolved else None)
        async with self._transaction(DuplicateInvitationError, team_id=team.id, email=email):
            self.db.add(invitation)
        await self.db.refresh(invitation)
        await self._reload(team)

        log.info(f"Invitation {invitation.id} created for team {team.id}")
        return invitation

    async def accept_invitation(self, invitation_id: str, user: User) -> Membership | None:
        """
        Accept a pending invitation: the user joins with the invited role and
        the invitation is consumed.

        Returns None if the invitation does not exist, is addressed to another
        email, or the user already belongs to the team (the invitation is
        consumed in that last case).
        """
        invitation = await self.repository.get_invitation(invitation_id)
        if invitation is None or not self._same_email(invitation.email, user.email):
            return None

        team = await self.repository.load_team(invitation.team_id)
        if team is None:
            return None

        membership = None
        async with self._transaction(AlreadyMemberError, team_id=team.id, user_id=user.id):
            if not team.has_user(user):
                membership = Membership(team_id=team.id, user_id=user.id, role_id=invitation.role_id)
                self.db.add(membership)
            invitation.status = InvitationStatus.ACCEPTED
            await self.db.delete(invitation)
        if membership is not None:
            await self.db.refresh(membership)
        await self._reload(team)

        log.info(f"Invitation {invitation_id} {invitation.status.value} by user {user.id}")
        return membership

    async def decline_invitation(self, invitation_id: str) -> bool:
        invitation = await self.repository.get_invitation(invitation_id)
        if invitation is None:
            return False

        async with self._transaction():
            invitation.status = InvitationStatus.DECLINED
            await self.db.delete(invitation)

        log.info(f"Invitation {invitation_id} {invitation.status.value}")
        return True
