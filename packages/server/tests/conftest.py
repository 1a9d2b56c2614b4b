"""
Shared fixtures for server tests: in-memory SQLite, seeded organizations,
and an HTTP client with the session dependency pointed at the test database.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("GUMBOARD_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("GUMBOARD_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from gumboard.core.auth import create_session_token
from gumboard.core.database import get_session
from gumboard.main import app
from gumboard.models import Board, Membership, Organization, User

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
async def client(session_factory):
    async def _override_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def world(session):
    """
    Two orgs A and B plus a third org C.

    alice: admin of A, member of B, active in A
    bob:   member of A, active in A
    carol: no memberships
    """
    org_a = Organization(id="org-a", name="Acme")
    org_b = Organization(id="org-b", name="Beta")
    org_c = Organization(id="org-c", name="Gamma")
    alice = User(id="alice", name="Alice", email="alice@example.com",
                 organization_id="org-a", is_admin=True)
    bob = User(id="bob", name="Bob", email="bob@example.com", organization_id="org-a")
    carol = User(id="carol", name="Carol", email="carol@example.com")
    session.add_all([org_a, org_b, org_c, alice, bob, carol])
    await session.flush()

    session.add_all([
        Membership(user_id="alice", organization_id="org-a", is_admin=True, joined_at=T0),
        Membership(user_id="alice", organization_id="org-b", is_admin=False,
                   joined_at=T0 + timedelta(days=1)),
        Membership(user_id="bob", organization_id="org-a", is_admin=False, joined_at=T0),
        Board(id="board-a", name="Roadmap", organization_id="org-a", created_by="alice"),
        Board(id="board-b", name="Beta board", organization_id="org-b", created_by="alice"),
        Board(id="board-c-public", name="Open", organization_id="org-c",
              created_by="alice", is_public=True),
    ])
    await session.commit()
    return {"orgs": [org_a, org_b, org_c], "users": [alice, bob, carol]}


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_session_token(user_id)}"}
    return _headers
