# tests/conftest.py - shared fixtures
import os
import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test_projecthub.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["ENVIRONMENT"] = "test"

import projecthub.models  # noqa: E402,F401
from projecthub.db.base import Base  # noqa: E402
from projecthub.db.session import get_db_session, get_session_factory  # noqa: E402
from projecthub.domain.enums import PropertyType  # noqa: E402
from projecthub.domain.records import PropertyDefinition, TaskRecord  # noqa: E402
from projecthub.main import app  # noqa: E402
from projecthub.models.project import Project  # noqa: E402
from projecthub.models.user import User  # noqa: E402
from projecthub.services.change_feed import ChangeFeed  # noqa: E402


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def feed():
    """A private change feed so tests never see each other's notifications."""
    return ChangeFeed()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory):
    """HTTP test client with overridden DB dependencies"""

    async def override_get_db():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def project(db_session):
    """A project scope for project tasks"""
    project = Project(name="Website relaunch", description="Q3 marketing site")
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return project


@pytest_asyncio.fixture
async def member(db_session):
    user = User(email="dana@example.com", display_name="Dana")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def make_task(title: str = "Design homepage", **fields) -> TaskRecord:
    """In-memory task record for pure domain tests."""
    return TaskRecord(title=title, **fields)


def make_definition(property_type: PropertyType | str, **fields) -> PropertyDefinition:
    fields.setdefault("id", uuid.uuid4())
    fields.setdefault("name", str(property_type).title())
    return PropertyDefinition(property_type=PropertyType(property_type), **fields)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
