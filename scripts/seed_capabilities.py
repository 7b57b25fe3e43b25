"""
Seed script to populate the default capability vocabulary.

Creates the capabilities every team is expected to use, and offers role
templates that can be applied to a team.

Usage:
    python -m scripts.seed_capabilities
"""
import asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from teamguard.core.database.engine import get_db, init_db
from teamguard.features.permissions.models import Capability, Role
from teamguard.features.teams.models import Team
from teamguard.features.teams.service import TeamService
from teamguard.utils import get_logger


log = get_logger(__name__)


DEFAULT_CAPABILITIES = [
    # Team management
    "view-team",
    "edit-team",
    "delete-team",

    # Membership
    "invite-user",
    "remove-user",
    "assign-role",

    # Roles and groups
    "manage-roles",
    "manage-groups",

    # Content
    "create-post",
    "edit-post",
    "delete-post",
    "publish-post",
]


ROLE_TEMPLATES = {
    "admin": [
        "view-team", "edit-team",
        "invite-user", "remove-user", "assign-role",
        "manage-roles", "manage-groups",
        "create-post", "edit-post", "delete-post", "publish-post",
    ],
    "editor": [
        "view-team",
        "create-post", "edit-post", "publish-post",
    ],
    "viewer": [
        "view-team",
    ],
}


async def seed_capabilities(db: AsyncSession) -> dict[str, Capability]:
    """
    Create default capabilities.

    Returns:
        Dictionary mapping capability codes to Capability objects
    """
    log.info("Creating default capabilities...")
    service = TeamService(db)
    capabilities = {code: await service.get_or_create_capability(code) for code in DEFAULT_CAPABILITIES}
    await db.commit()

    log.info(f"{len(capabilities)} default capabilities available")
    return capabilities


async def apply_role_templates(service: TeamService, team: Team) -> list[Role]:
    """
    Add the template roles a team does not have yet.

    Existing roles with a template name are left untouched.
    """
    created = []
    for name, codes in ROLE_TEMPLATES.items():
        if team.find_role_by_name(name) is not None:
            log.debug(f"Role '{name}' already exists in team {team.id}, skipping")
            continue
        created.append(await service.add_role(team, name, codes))
    return created


async def main():
    """Main function to seed capabilities."""
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            await seed_capabilities(db)
            log.info("Capability seeding completed successfully!")
        except Exception as e:
            log.error(f"Error seeding capabilities: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
