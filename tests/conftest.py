"""
Pytest fixtures for eventhub tests.

Each test gets its own SQLite database file (aiosqlite) with the full schema,
a session on it, and an httpx client wired to the app with get_db /
get_sessionmaker overridden to the same database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

import eventhub.models  # noqa: E402,F401
from eventhub.core.db import Base, get_db, get_sessionmaker  # noqa: E402
from eventhub.main import app  # noqa: E402
from eventhub.models import UserRole  # noqa: E402

from factories import create_user  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'eventhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
async def client(sessionmaker):
    async def _get_db():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_sessionmaker] = lambda: sessionmaker

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
async def organizer(db):
    return await create_user(db, role=UserRole.ORGANIZER)


@pytest.fixture
async def customer(db):
    return await create_user(db)
