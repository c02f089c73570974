from __future__ import annotations
import os

# Must be set before engage.config is imported
os.environ.setdefault("JWT_SECRET", "test-secret-for-pytest-only-" + "x" * 40)
os.environ.setdefault("ENVIRONMENT", "test")

from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from engage.db import Base, get_session
from engage.main import app
from engage.models.user import Tenant, User
from engage.models.circle import Circle
from engage.models.challenge import Challenge
from engage.models.submission import Submission  # noqa: F401  registers the table
from engage.models.ledger import PointsLedgerEntry, UserPoints  # noqa: F401
from engage.security import make_access_token
from engage.services import events


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite shared by every session in the test (StaticPool)."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def race_engine(tmp_path):
    """
    File-backed SQLite with a fresh connection per session, so concurrent
    sessions really run in separate transactions and contend on locks.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def race_factory(race_engine):
    return async_sessionmaker(race_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def race_world(race_factory):
    return await seed_world(race_factory)


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_factory):
    async def _session_override():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def seed_world(session_factory) -> SimpleNamespace:
    """
    Two tenants. Acme has a moderator, Alice, Bob and the 'Runners' circle with two
    challenges (5k Run: 50 pts, Stretching: 30 pts). Globex has Carol and its own circle.
    Dave belongs to no tenant.
    """
    async with session_factory() as s:
        acme = Tenant(name="Acme")
        globex = Tenant(name="Globex")
        s.add_all([acme, globex])
        await s.flush()

        mod = User(tenant_id=acme.id, name="Morgan", email="morgan@acme.test", role="moderator")
        alice = User(tenant_id=acme.id, name="Alice", email="alice@acme.test")
        bob = User(tenant_id=acme.id, name="Bob", email="bob@acme.test")
        carol = User(tenant_id=globex.id, name="Carol", email="carol@globex.test")
        globex_mod = User(tenant_id=globex.id, name="Gina", email="gina@globex.test", role="moderator")
        dave = User(tenant_id=None, name="Dave", email="dave@nowhere.test")
        s.add_all([mod, alice, bob, carol, globex_mod, dave])
        await s.flush()

        runners = Circle(tenant_id=acme.id, created_by=mod.id, name="Runners")
        readers = Circle(tenant_id=acme.id, created_by=mod.id, name="Readers")
        globex_circle = Circle(tenant_id=globex.id, created_by=globex_mod.id, name="Globex Walkers")
        s.add_all([runners, readers, globex_circle])
        await s.flush()

        run5k = Challenge(circle_id=runners.id, created_by=mod.id, title="5k Run", points=50)
        stretch = Challenge(circle_id=runners.id, created_by=mod.id, title="Stretching", points=30)
        novel = Challenge(circle_id=readers.id, created_by=mod.id, title="Read a Novel", points=20)
        walk = Challenge(circle_id=globex_circle.id, created_by=globex_mod.id, title="10k Steps", points=40)
        s.add_all([run5k, stretch, novel, walk])
        await s.commit()

        return SimpleNamespace(
            acme=acme.id, globex=globex.id,
            mod=mod.id, alice=alice.id, bob=bob.id, carol=carol.id, globex_mod=globex_mod.id, dave=dave.id,
            runners=runners.id, readers=readers.id, globex_circle=globex_circle.id,
            run5k=run5k.id, stretch=stretch.id, novel=novel.id, walk=walk.id,
        )


@pytest_asyncio.fixture
async def world(session_factory):
    return await seed_world(session_factory)


def auth(user_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_access_token(str(user_id))}"}


@pytest.fixture
def captured_events():
    seen: list[tuple[str, dict]] = []

    def _capture(topic, payload):
        seen.append((topic, payload))

    events.subscribe(_capture)
    yield seen
    events.unsubscribe(_capture)
