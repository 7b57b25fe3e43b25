"""
User model with ULID primary keys.

Users are owned by the host application; teamguard only needs identity,
email and the two team-facing predicates below.
"""
from typing import TYPE_CHECKING, Any, Sequence
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from teamguard.core.database.base import Base, TimestampMixin, generate_ulid

if TYPE_CHECKING:
    from teamguard.features.teams.models import Team


class User(Base, TimestampMixin):
    """
    User model representing a person who can own or join teams.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def owns_team(self, team: "Team") -> bool:
        """Determine if this user is the owner of the given team."""
        return team.user_id == self.id

    def has_team_permission(
        self,
        team: "Team",
        permission: str | Sequence[str],
        require: bool = False,
        entity: Any = None,
    ) -> bool:
        """Determine if this user has the given permission(s) on the team."""
        from teamguard.features.permissions.resolver import has_team_permission

        return has_team_permission(self, team, permission, require=require, entity=entity)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
