"""Shared test fixtures for the sync dashboard test suite."""

import httpx
import pytest
import pytest_asyncio

from app.core.config import Settings
from app.core.database import build_engine
from app.main import create_app
from app.services.store import SyncStore


@pytest.fixture
def test_settings():
    """Settings with short sync timers and no .env lookup."""
    return Settings(
        _env_file=None,
        db_path=":memory:",
        session_secret="test-secret",
        notion_client_id="client-id",
        notion_client_secret="client-secret",
        notion_redirect_uri="http://testserver/auth/external/callback",
        notion_api_url="https://notion.test/v1",
        sync_completion_delay=0.05,
        sync_timeout=0.5,
        sync_cleanup_delay=0.05,
    )


@pytest_asyncio.fixture
async def store():
    """
    Provide an initialised in-memory store.

    Each test gets a clean database with the default settings row.
    """
    store = SyncStore.from_engine(build_engine(":memory:"))
    await store.init()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def app(test_settings):
    """App built from test settings, with its store initialised."""
    app = create_app(test_settings)
    await app.state.store.init()
    yield app
    await app.state.simulator.shutdown()
    await app.state.store.close()


@pytest_asyncio.fixture
async def client(app):
    """HTTP client talking to the app in-process on the test's event loop."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
