"""Shared pytest fixtures for teamguard tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from teamguard.core.database.engine import build_engine, create_session_factory, init_db
from teamguard.features.teams.models import Team
from teamguard.features.teams.service import TeamService
from teamguard.features.users.models import User


@pytest.fixture()
def database_url(tmp_path) -> str:
    """Provide a file-backed SQLite database URL for one test."""

    return f"sqlite+aiosqlite:///{tmp_path / 'teams.sqlite'}"


@pytest_asyncio.fixture()
async def engine(database_url: str) -> AsyncIterator[AsyncEngine]:
    test_engine = build_engine(database_url)
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine: AsyncEngine):
    return create_session_factory(engine)


@pytest_asyncio.fixture()
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def service(db: AsyncSession) -> TeamService:
    return TeamService(db)


@pytest.fixture()
def make_user(db: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Persist a user with the given name; email defaults to <name>@example.com."""

    async def _make(name: str, email: str | None = None) -> User:
        user = User(name=name, email=email or f"{name.lower()}@example.com")
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


@pytest_asyncio.fixture()
async def owner(make_user) -> User:
    return await make_user("Owner")


@pytest_asyncio.fixture()
async def team(service: TeamService, owner: User) -> Team:
    return await service.create_team(owner, "Acme")
