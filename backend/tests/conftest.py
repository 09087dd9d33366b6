"""Shared test fixtures for backend tests."""

from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.api.deps import get_db
from policy_trace.database import Store
from policy_trace.main import app
from policy_trace.services.records import RecordService


@pytest_asyncio.fixture
async def store(tmp_path) -> AsyncGenerator[Store, None]:
    """A fresh SQLite file per test, schema already created."""
    s = Store(f"sqlite+aiosqlite:///{tmp_path / 'policy_trace_test.sqlite'}")
    await s.init_schema()
    yield s
    await s.dispose()


@pytest_asyncio.fixture
async def db_session(store: Store) -> AsyncGenerator[AsyncSession, None]:
    async with store.session() as session:
        yield session


@pytest_asyncio.fixture
async def records(db_session: AsyncSession) -> RecordService:
    return RecordService(db_session)


def _override_db(store: Store):
    """Create a dependency override for get_db bound to the test store."""
    async def _get_db():
        async with store.session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    return _get_db


@pytest_asyncio.fixture
async def client(store: Store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, backed by the per-test store."""
    app.state.store = store
    app.dependency_overrides[get_db] = _override_db(store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
