"""
Team models.

A team is the aggregate root: it has exactly one owner (never stored as a
membership row) and owns its roles, groups, memberships, ability grants
and invitations. Every relationship is eagerly loaded so that the
aggregate can answer membership and role questions without further IO.
"""
from typing import Any, Sequence
from sqlalchemy import String, ForeignKey, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from teamguard.core.database.base import Base, TimestampMixin, generate_ulid
from teamguard.features.users.models import User
from teamguard.features.permissions.models import Ability, Group, Role
from teamguard.features.permissions.resolver import NamedRole, Owner, TeamRole


class Membership(Base, TimestampMixin):
    """
    Relation between a user and a team, carrying the assigned role.
    """
    __tablename__ = "team_user"

    team_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("teams.id", ondelete="CASCADE"),
        primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True
    )
    role_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    user: Mapped["User"] = relationship("User", lazy="selectin")
    role: Mapped["Role | None"] = relationship("Role", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Membership(team_id={self.team_id}, user_id={self.user_id}, role_id={self.role_id})>"


class InvitationStatus(str, enum.Enum):
    """Status of team invitations."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Invitation(Base, TimestampMixin):
    """
    Pending request for someone to join a team.

    Rows only ever exist while pending: accepting or declining deletes them.
    """
    __tablename__ = "invitations"
    __table_args__ = (
        UniqueConstraint("team_id", "email", name="uq_invitations_team_email"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    team_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True
    )
    status: Mapped[InvitationStatus] = mapped_column(
        SQLEnum(InvitationStatus),
        default=InvitationStatus.PENDING,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, team_id={self.team_id}, email={self.email!r}, status={self.status})>"


class Team(Base, TimestampMixin):
    """
    Team model, the aggregate root of the authorization data.
    """
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Owner of the team
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    owner: Mapped["User"] = relationship("User", lazy="selectin")

    memberships: Mapped[list["Membership"]] = relationship(
        "Membership",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    roles: Mapped[list["Role"]] = relationship(
        "Role",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Role.name"
    )

    groups: Mapped[list["Group"]] = relationship(
        "Group",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Group.code"
    )

    abilities: Mapped[list["Ability"]] = relationship(
        "Ability",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    invitations: Mapped[list["Invitation"]] = relationship(
        "Invitation",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @property
    def users(self) -> list[User]:
        """Members of the team, owner excluded."""
        return [membership.user for membership in self.memberships]

    def all_users(self) -> list[User]:
        """Get all the team's users including its owner, without duplicates."""
        seen: dict[str, User] = {}
        for user in [*self.users, self.owner]:
            seen.setdefault(user.id, user)
        return list(seen.values())

    def membership_for(self, user: User) -> Membership | None:
        return next((m for m in self.memberships if m.user_id == user.id), None)

    def has_user(self, user: User) -> bool:
        """Determine if the given user belongs to the team."""
        return self.membership_for(user) is not None or user.owns_team(self)

    def has_user_with_email(self, email: str, case_sensitive: bool = True) -> bool:
        """Determine if the given email address belongs to a user on the team."""
        if case_sensitive:
            return any(user.email == email for user in self.all_users())
        email = email.casefold()
        return any(user.email.casefold() == email for user in self.all_users())

    # ------------------------------------------------------------------
    # Groups and roles
    # ------------------------------------------------------------------

    def group(self, code: str) -> Group | None:
        """Get team group by its code."""
        return next((group for group in self.groups if group.code == code), None)

    def has_roles(self) -> bool:
        return len(self.roles) > 0

    def find_role_by_id(self, role_id: str) -> Role | None:
        return next((role for role in self.roles if role.id == role_id), None)

    def find_role_by_name(self, name: str) -> Role | None:
        return next((role for role in self.roles if role.name == name), None)

    def user_role(self, user: User) -> TeamRole | None:
        """
        Resolve where the user's rights in this team come from.

        Returns Owner for the team owner, NamedRole for a member with an
        assigned role, and None for non-members or members without a role.
        """
        if user.owns_team(self):
            return Owner()

        membership = self.membership_for(user)
        if membership is None or membership.role_id is None:
            return None

        role = self.find_role_by_id(membership.role_id)
        return NamedRole(role) if role is not None else None

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def user_has_permission(
        self,
        user: User,
        permission: str | Sequence[str],
        require: bool = False,
        entity: Any = None,
    ) -> bool:
        """Determine if the given user has the given permission on the team."""
        return user.has_team_permission(self, permission, require=require, entity=entity)

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name!r}, owner_id={self.user_id})>"
