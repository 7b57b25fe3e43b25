"""
teamguard: team-scoped role-based access control on SQLAlchemy.
"""
from teamguard.core.exceptions import (
    AlreadyMemberError,
    ConstraintViolation,
    DuplicateGroupError,
    DuplicateInvitationError,
    DuplicateRoleError,
    InvalidGrantError,
    TeamguardError,
)
from teamguard.features.users.models import User
from teamguard.features.permissions.models import Ability, Capability, Group, Role
from teamguard.features.permissions.resolver import (
    EntityRef,
    NamedRole,
    Owner,
    TeamRole,
    has_team_permission,
    team_permissions,
)
from teamguard.features.teams.models import Invitation, InvitationStatus, Membership, Team
from teamguard.features.teams.schemas import TeamPolicy
from teamguard.features.teams.service import TeamService

__version__ = "0.1.0"

__all__ = [
    "Ability",
    "AlreadyMemberError",
    "Capability",
    "ConstraintViolation",
    "DuplicateGroupError",
    "DuplicateInvitationError",
    "DuplicateRoleError",
    "EntityRef",
    "Group",
    "InvalidGrantError",
    "Invitation",
    "InvitationStatus",
    "Membership",
    "NamedRole",
    "Owner",
    "Role",
    "Team",
    "TeamPolicy",
    "TeamRole",
    "TeamService",
    "TeamguardError",
    "User",
    "has_team_permission",
    "team_permissions",
]
