"""
FastAPI dependencies for guarding routes with team permissions.

The host application provides its own current-user dependency; teamguard
only loads the team named by the ``team_id`` path parameter and asks the
resolver.
"""
from typing import Annotated, Any, Awaitable, Callable, Sequence
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamguard.core.database.engine import get_db
from teamguard.features.teams.models import Team
from teamguard.features.teams.repository import TeamsRepository
from teamguard.features.users.models import User
from teamguard.utils import get_logger


log = get_logger(__name__)


async def get_team_by_id(
    team_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Team:
    """
    Get a fully loaded team by ID or raise 404.

    Raises:
        HTTPException: 404 if team not found
    """
    team = await TeamsRepository(db).load_team(team_id)

    if team is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Team not found"
        )

    return team


def require_team_permission(
    permission: str | Sequence[str],
    get_user: Callable[..., User | Awaitable[User]],
    require: bool = False,
    entity: Any = None,
):
    """
    FastAPI dependency to require a permission in the team from the path.

    Usage:
        @router.post("/teams/{team_id}/posts")
        async def create_post(
            user: User = Depends(require_team_permission("create-post", get_current_user))
        ):
            pass

    Args:
        permission: Capability code or list of codes
        get_user: Application dependency returning the current user
        require: With a list, require all codes instead of any
        entity: Optional entity the check targets

    Returns:
        Dependency function that returns the current user if allowed

    Raises:
        HTTPException: 403 if the user lacks the permission
    """
    async def permission_dependency(
        team: Annotated[Team, Depends(get_team_by_id)],
        current_user: Annotated[User, Depends(get_user)],
    ) -> User:
        if not team.user_has_permission(current_user, permission, require=require, entity=entity):
            log.info(f"User {current_user.id} denied {permission} in team {team.id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {permission}"
            )

        return current_user

    return permission_dependency
