"""
Capability, Role, Group and Ability models for team-scoped RBAC.

This module implements:
- A global capability vocabulary shared by every team
- Team-owned roles bundling capabilities
- Team-owned groups partitioning the membership
- Ability grants: a capability granted directly to a team, optionally
  narrowed to one grantee and/or one entity instance
"""
from typing import Any
from sqlalchemy import String, ForeignKey, Table, Column, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamguard.core.database.base import Base, TimestampMixin, generate_ulid
from teamguard.features.users.models import User


# ============================================================================
# Association Tables for Many-to-Many Relationships
# ============================================================================

# Role-Capability relationship
role_capabilities = Table(
    "role_capability",
    Base.metadata,
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("capability_id", String(26), ForeignKey("capabilities.id", ondelete="CASCADE"), primary_key=True),
)

# Users placed into a team group
group_users = Table(
    "group_user",
    Base.metadata,
    Column("group_id", String(26), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


# ============================================================================
# Core Models
# ============================================================================

class Capability(Base, TimestampMixin):
    """
    Atomic named permission, e.g. "edit-post" or "invite-user".

    Capabilities are global and outlive the roles and teams using them.
    """
    __tablename__ = "capabilities"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Capability(id={self.id}, code={self.code!r})>"


class Role(Base, TimestampMixin):
    """
    Named bundle of capabilities owned by a team.
    Examples: editor, billing_manager, viewer
    """
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("team_id", "name", name="uq_roles_team_name"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    team_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    capabilities: Mapped[list["Capability"]] = relationship(
        "Capability",
        secondary=role_capabilities,
        lazy="selectin",
        order_by="Capability.code",
    )

    def capability_codes(self) -> set[str]:
        return {capability.code for capability in self.capabilities}

    def has_capability(self, code: str) -> bool:
        return any(capability.code == code for capability in self.capabilities)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, team_id={self.team_id})>"


class Group(Base, TimestampMixin):
    """
    Organizational sub-collection of a team, identified by a per-team code.

    Groups carry no rights of their own; they only partition membership.
    """
    __tablename__ = "groups"
    __table_args__ = (
        UniqueConstraint("team_id", "code", name="uq_groups_team_code"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    team_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    code: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    users: Mapped[list["User"]] = relationship(
        "User",
        secondary=group_users,
        lazy="selectin"
    )

    def has_user(self, user: User) -> bool:
        return any(member.id == user.id for member in self.users)

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, code={self.code!r}, team_id={self.team_id})>"


class Ability(Base, TimestampMixin):
    """
    Direct grant of an action inside a team.

    - user_id null: applies to every member of the team
    - entity_type/entity_id null: applies team-wide, otherwise only to
      that one entity instance
    """
    __tablename__ = "abilities"
    __table_args__ = (
        CheckConstraint(
            "(entity_type IS NULL) = (entity_id IS NULL)",
            name="ck_abilities_entity_pair",
        ),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    team_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    capability_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("capabilities.id", ondelete="SET NULL"),
        nullable=True
    )
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    # Entity scope, e.g. ("Post", "5")
    entity_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    capability: Mapped["Capability | None"] = relationship("Capability", lazy="selectin")

    @property
    def is_team_wide(self) -> bool:
        return self.entity_type is None

    def applies_to(self, user_id: str, entity: Any = None) -> bool:
        """Check grantee and entity scope (entity is an EntityRef or None)."""
        if self.user_id is not None and self.user_id != user_id:
            return False
        if self.is_team_wide:
            return True
        if entity is None:
            return False
        return self.entity_type == entity.type and self.entity_id == entity.id

    def __repr__(self) -> str:
        scope = "*" if self.is_team_wide else f"{self.entity_type}#{self.entity_id}"
        return f"<Ability(id={self.id}, action={self.action!r}, team_id={self.team_id}, scope={scope})>"
