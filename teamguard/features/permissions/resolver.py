"""
Team permission resolution.

A user's rights in a team come from three sources, checked in order:
1. Ownership of the team (always allowed)
2. Capabilities of the role assigned through the membership
3. Ability grants on the team, optionally narrowed to a grantee and/or
   to one entity instance

Resolution works purely on an eagerly loaded Team; it never touches the
database, so every check reflects whatever state the Team was loaded with.
"""
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple, Sequence, Union

from teamguard.core.exceptions import InvalidGrantError
from teamguard.utils import get_logger

if TYPE_CHECKING:
    from teamguard.features.permissions.models import Role
    from teamguard.features.teams.models import Team
    from teamguard.features.users.models import User


log = get_logger(__name__)

WILDCARD = "*"


# ============================================================================
# Role sources
# ============================================================================

@dataclass(frozen=True)
class Owner:
    """Marker returned for the team owner. Not a stored role."""

    name: str = "owner"

    def grants(self, permission: str) -> bool:
        return True


@dataclass(frozen=True)
class NamedRole:
    """A persisted role assigned through a membership."""

    role: "Role"

    @property
    def name(self) -> str:
        return self.role.name

    def grants(self, permission: str) -> bool:
        return self.role.has_capability(permission)


TeamRole = Union[Owner, NamedRole]


# ============================================================================
# Entity references
# ============================================================================

class EntityRef(NamedTuple):
    """Identifies one resource instance, e.g. EntityRef("Post", "5")."""
    type: str
    id: str


def entity_ref(entity: Any) -> EntityRef | None:
    """
    Normalize an entity argument.

    Accepts None, an EntityRef, a (type, id) pair, or any object with an
    ``id`` attribute (its class name becomes the type).
    """
    if entity is None or isinstance(entity, EntityRef):
        return entity
    if isinstance(entity, tuple):
        if len(entity) != 2 or entity[0] is None or entity[1] is None:
            raise InvalidGrantError("Entity must be a (type, id) pair", entity=entity)
        return EntityRef(str(entity[0]), str(entity[1]))
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise InvalidGrantError("Entity has no id", entity=repr(entity))
    return EntityRef(type(entity).__name__, str(entity_id))


# ============================================================================
# Resolution
# ============================================================================

def _is_granted(user: "User", team: "Team", permission: str, entity: EntityRef | None) -> bool:
    if user.owns_team(team):
        log.debug(f"User {user.id} owns team {team.id} - granted {permission}")
        return True

    membership = team.membership_for(user)
    if membership is None:
        log.debug(f"User {user.id} is not a member of team {team.id} - denied {permission}")
        return False

    role_source = team.user_role(user)
    if role_source is not None and role_source.grants(permission):
        log.debug(f"User {user.id} granted {permission} in team {team.id} via role {role_source.name!r}")
        return True

    for ability in team.abilities:
        if ability.action == permission and ability.applies_to(user.id, entity):
            log.debug(f"User {user.id} granted {permission} in team {team.id} via ability {ability.id}")
            return True

    log.debug(f"User {user.id} denied {permission} in team {team.id}")
    return False


def has_team_permission(
    user: "User",
    team: "Team",
    permission: str | Sequence[str],
    require: bool = False,
    entity: Any = None,
) -> bool:
    """
    Check if user has permission(s) in a team.

    Args:
        user: User being checked
        team: Eagerly loaded team
        permission: Capability code, or a list of codes
        require: With a list, True requires all codes, False any of them
            (an empty list is granted to the owner only)
        entity: Optional target entity (EntityRef, (type, id) pair or model)

    Returns:
        True if allowed, False otherwise. Denial is never raised.
    """
    ref = entity_ref(entity)

    if isinstance(permission, str):
        return _is_granted(user, team, permission, ref)

    permissions = list(permission)
    if not permissions:
        # nothing asked for: only the owner passes
        return user.owns_team(team)

    if require:
        return all(_is_granted(user, team, code, ref) for code in permissions)
    return any(_is_granted(user, team, code, ref) for code in permissions)


def team_permissions(user: "User", team: "Team") -> set[str]:
    """
    Get every team-wide capability code the user holds in a team.

    The owner gets {"*"}; entity-scoped grants are not included since they
    only apply to a specific entity.
    """
    if user.owns_team(team):
        return {WILDCARD}
    if team.membership_for(user) is None:
        return set()

    codes: set[str] = set()
    role_source = team.user_role(user)
    if isinstance(role_source, NamedRole):
        codes |= role_source.role.capability_codes()

    for ability in team.abilities:
        if ability.is_team_wide and ability.applies_to(user.id):
            codes.add(ability.action)
    return codes
