"""Tests for purging a team and for rollback of failed mutations."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from teamguard import Ability, Capability, Group, Invitation, Membership, Role, Team
from teamguard.features.permissions.models import group_users, role_capabilities

pytestmark = pytest.mark.asyncio


async def _count(db, stmt) -> int:
    return (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()


def _fail_on_execute(db, monkeypatch, call: int) -> None:
    """Make the nth db.execute from now on raise."""
    original_execute = db.execute
    calls = {"n": 0}

    async def failing_execute(statement, *args, **kwargs):
        calls["n"] += 1
        if calls["n"] == call:
            raise SQLAlchemyError("connection lost")
        return await original_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", failing_execute)


async def _populate(service, team, make_user):
    alice = await make_user("Alice")
    await service.add_role(team, "editor", ["edit-post", "create-post"])
    await service.add_user(team, alice, "editor")
    await service.add_group(team, "writers", "Writers")
    await service.add_user_to_group(team, "writers", alice)
    await service.grant_ability(team, "publish-post", entity=("Post", 5))
    await service.invite(team, "carol@example.com", role="editor")
    return alice


async def test_purge_leaves_no_orphans(db, service, team, make_user) -> None:
    await _populate(service, team, make_user)
    team_id = team.id
    role_ids = [role.id for role in team.roles]
    group_ids = [group.id for group in team.groups]
    assert role_ids and group_ids

    await service.purge(team)

    assert await _count(db, select(Team).where(Team.id == team_id)) == 0
    assert await _count(db, select(Role).where(Role.team_id == team_id)) == 0
    assert await _count(db, select(Group).where(Group.team_id == team_id)) == 0
    assert await _count(db, select(Membership).where(Membership.team_id == team_id)) == 0
    assert await _count(db, select(Ability).where(Ability.team_id == team_id)) == 0
    assert await _count(db, select(Invitation).where(Invitation.team_id == team_id)) == 0
    assert await _count(db, select(role_capabilities).where(role_capabilities.c.role_id.in_(role_ids))) == 0
    assert await _count(db, select(group_users).where(group_users.c.group_id.in_(group_ids))) == 0
    assert await service.load_team(team_id) is None


async def test_purge_keeps_capabilities_and_other_teams(db, service, team, make_user) -> None:
    await _populate(service, team, make_user)
    other_owner = await make_user("Other")
    other = await service.create_team(other_owner, "Other")
    await service.add_role(other, "editor", ["edit-post"])

    await service.purge(team)

    codes = set((await db.execute(select(Capability.code))).scalars().all())
    assert {"edit-post", "create-post", "publish-post"} <= codes
    other = await service.load_team(other.id)
    assert other.find_role_by_name("editor").capability_codes() == {"edit-post"}


async def test_failed_purge_rolls_back(db, service, team, make_user, monkeypatch) -> None:
    await _populate(service, team, make_user)
    team_id = team.id
    _fail_on_execute(db, monkeypatch, call=4)
    with pytest.raises(SQLAlchemyError):
        await service.purge(team)
    monkeypatch.undo()

    assert await _count(db, select(Membership).where(Membership.team_id == team_id)) == 1
    assert await _count(db, select(Role).where(Role.team_id == team_id)) == 1
    assert await _count(db, select(Team).where(Team.id == team_id)) == 1


async def test_failed_delete_user_rolls_back(db, service, team, make_user, monkeypatch) -> None:
    alice = await _populate(service, team, make_user)
    await service.grant_ability(team, "edit-post", user=alice)
    team_id, alice_id = team.id, alice.id

    _fail_on_execute(db, monkeypatch, call=2)
    with pytest.raises(SQLAlchemyError):
        await service.delete_user(team, alice)
    monkeypatch.undo()

    # a later unit of work must not carry the aborted deletes with it
    team = await service.load_team(team_id)
    await service.add_group(team, "reviewers", "Reviewers")

    assert await _count(db, select(group_users).where(group_users.c.user_id == alice_id)) == 1
    assert await _count(db, select(Membership).where(Membership.user_id == alice_id)) == 1
    assert await _count(db, select(Ability).where(Ability.user_id == alice_id)) == 1


async def test_failed_delete_role_rolls_back(db, service, team, make_user, monkeypatch) -> None:
    alice = await _populate(service, team, make_user)
    team_id, alice_id = team.id, alice.id
    role_id = team.find_role_by_name("editor").id

    _fail_on_execute(db, monkeypatch, call=2)
    with pytest.raises(SQLAlchemyError):
        await service.delete_role(team, "editor")
    monkeypatch.undo()

    team = await service.load_team(team_id)
    await service.add_group(team, "reviewers", "Reviewers")

    member = select(Membership).where(Membership.user_id == alice_id, Membership.role_id == role_id)
    assert await _count(db, member) == 1
    assert await _count(db, select(Role).where(Role.id == role_id)) == 1
    assert team.find_role_by_name("editor") is not None
