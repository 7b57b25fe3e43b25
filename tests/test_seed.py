"""Tests for the capability seed script."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from scripts.seed_capabilities import (
    DEFAULT_CAPABILITIES,
    ROLE_TEMPLATES,
    apply_role_templates,
    seed_capabilities,
)
from teamguard import Capability

pytestmark = pytest.mark.asyncio


async def test_seed_is_idempotent(db) -> None:
    first = await seed_capabilities(db)
    second = await seed_capabilities(db)

    assert set(first) == set(DEFAULT_CAPABILITIES)
    assert {code: cap.id for code, cap in first.items()} == {code: cap.id for code, cap in second.items()}
    stored = (await db.execute(select(Capability.code))).scalars().all()
    assert sorted(stored) == sorted(DEFAULT_CAPABILITIES)


async def test_templates_only_use_default_capabilities() -> None:
    for codes in ROLE_TEMPLATES.values():
        assert set(codes) <= set(DEFAULT_CAPABILITIES)


async def test_apply_role_templates_skips_existing(service, team) -> None:
    await service.add_role(team, "viewer", ["view-team", "create-post"])

    created = await apply_role_templates(service, team)

    assert sorted(role.name for role in created) == ["admin", "editor"]
    assert team.find_role_by_name("viewer").capability_codes() == {"view-team", "create-post"}
    assert team.find_role_by_name("editor").capability_codes() == set(ROLE_TEMPLATES["editor"])
