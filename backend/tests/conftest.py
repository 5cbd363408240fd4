"""
Persons API — Test Configuration (conftest.py)
================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Overview:
    ├── mock_db_session: Mock AsyncSession (no real DB needed)
    ├── sample_person_data: Field values for Person rows
    ├── sqlite_url: URL of a throwaway SQLite database file
    └── test_client: HTTPX AsyncClient wired to a fresh app + SQLite schema
"""

import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{tempfile.mkdtemp(prefix='persons_test_')}/test.db"
)
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_update(mock_db_session):
            mock_db_session.get.return_value = person
            await person_service.update_person(mock_db_session, 1, data)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.delete = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def sample_person_data():
    return {"id": 7, "name": "Ada Lovelace", "age": 36}


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'persons.db'}"


@pytest_asyncio.fixture
async def test_client(sqlite_url):
    """
    Provides an async HTTP test client for endpoint testing.

    ASGITransport does not run the lifespan, so the engine is initialized
    here and the schema is created from the ORM metadata.
    """
    import app.models  # noqa: F401
    from app.database import Base, dispose_engine, init_engine
    from app.main import create_app

    engine = init_engine(sqlite_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    application = create_app()
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await dispose_engine()
