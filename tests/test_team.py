"""Tests for the in-memory queries of the team aggregate."""

from __future__ import annotations

import pytest

from teamguard import Membership, NamedRole, Owner

pytestmark = pytest.mark.asyncio


async def test_all_users_includes_owner_and_members(service, team, owner, make_user) -> None:
    alice = await make_user("Alice")
    await service.add_user(team, alice)

    ids = {user.id for user in team.all_users()}

    assert ids == {owner.id, alice.id}
    assert [user.id for user in team.users] == [alice.id]


async def test_all_users_deduplicates_owner_stored_as_member(db, service, team, owner) -> None:
    db.add(Membership(team_id=team.id, user_id=owner.id))
    await db.commit()
    team = await service.load_team(team.id)

    users = team.all_users()

    assert len(users) == 1
    assert users[0].id == owner.id


async def test_has_user_matches_all_users(service, team, owner, make_user) -> None:
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    await service.add_user(team, alice)

    for user in (owner, alice, bob):
        assert team.has_user(user) == (user.id in {u.id for u in team.all_users()})
    assert team.has_user(bob) is False


async def test_has_user_with_email(service, team, make_user) -> None:
    alice = await make_user("Alice", email="Alice@Example.com")
    await service.add_user(team, alice)

    assert team.has_user_with_email("Alice@Example.com")
    assert team.has_user_with_email("owner@example.com")
    assert not team.has_user_with_email("alice@example.com")
    assert team.has_user_with_email("alice@example.com", case_sensitive=False)
    assert not team.has_user_with_email("nobody@example.com")


async def test_group_lookup_by_code(service, team) -> None:
    await service.add_group(team, "support", "Support desk")

    assert team.group("support").name == "Support desk"
    assert team.group("sales") is None


async def test_has_roles(service, team) -> None:
    assert team.has_roles() is False

    await service.add_role(team, "editor", ["edit-post"])

    assert team.has_roles() is True


async def test_find_role_by_id_and_by_name(service, team) -> None:
    role = await service.add_role(team, "editor", ["edit-post"])

    assert team.find_role_by_id(role.id).name == "editor"
    assert team.find_role_by_name("editor").id == role.id
    assert team.find_role_by_name(role.id) is None
    assert team.find_role_by_id("editor") is None


async def test_user_role_variants(service, team, owner, make_user) -> None:
    editor = await make_user("Editor")
    plain = await make_user("Plain")
    stranger = await make_user("Stranger")
    await service.add_role(team, "editor", ["edit-post"])
    await service.add_user(team, editor, "editor")
    await service.add_user(team, plain)

    assert team.user_role(owner) == Owner()

    source = team.user_role(editor)
    assert isinstance(source, NamedRole)
    assert source.name == "editor"

    assert team.user_role(plain) is None
    assert team.user_role(stranger) is None


async def test_load_team_missing_returns_none(service) -> None:
    assert await service.load_team("01HZZZZZZZZZZZZZZZZZZZZZZZ") is None
