import os
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
# Default DATABASE_URL for the app's own engine; tests use the per-session file engine below
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
from roomshare.main import app
from roomshare.db.database import Base, get_db
from roomshare.db.models import Post, User
from roomshare.core.security import create_access_token
from roomshare.realtime.hub import ChatHub


class FakeEmitter:
    """Stands in for the Socket.IO namespace: records every emit."""

    def __init__(self):
        self.emitted = []

    async def emit(self, event, data=None, to=None, **kwargs):
        self.emitted.append((to, event, data))

    def events_for(self, sid):
        return [(event, data) for to, event, data in self.emitted if to == sid]

    def clear(self):
        self.emitted.clear()


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///./test_roomshare.db",
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="session")
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="session")
def override_get_db_for_app(session_factory):
    """Point the app's get_db at the test engine for the whole session."""

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def clean_tables(test_engine):
    """Ensure DB is empty before each test by deleting from all tables (keep schema intact)."""
    async with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())
    yield


@pytest.fixture
async def test_session(session_factory, override_get_db_for_app, clean_tables):
    async with session_factory() as session:
        yield session


@pytest.fixture
def emitter():
    return FakeEmitter()


@pytest.fixture
def hub(emitter):
    """A fresh hub per test, installed where the REST send path looks it up."""
    previous = app.state.hub
    fresh = ChatHub(emitter=emitter)
    app.state.hub = fresh
    yield fresh
    app.state.hub = previous


@pytest.fixture
async def client(hub, test_session):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def make_user(session, name: str) -> User:
    user = User(email=f"{name}@example.com", name=name, hashed_password="not-a-real-hash")
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def alice(test_session):
    return await make_user(test_session, "alice")


@pytest.fixture
async def bob(test_session):
    return await make_user(test_session, "bob")


@pytest.fixture
async def carol(test_session):
    return await make_user(test_session, "carol")


@pytest.fixture
async def listing(test_session, bob):
    """A listing posted by bob."""
    post = Post(
        title="Sunny room near campus",
        description="Quiet flat, bills included",
        price=450.0,
        location="Leeds",
        type="Room",
        occupancy="Single",
        furnished=True,
        available_from=datetime(2026, 11, 1, tzinfo=timezone.utc),
        amenities=["wifi"],
        images=[],
        posted_by_id=bob.id,
    )
    test_session.add(post)
    await test_session.commit()
    await test_session.refresh(post)
    return post


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token(data={"sub": str(user.id), "name": user.name})
        return {"Authorization": f"Bearer {token}"}
    return _headers
