"""
Pytest configuration and fixtures for testing
"""
import os
import tempfile

# Settings are read at import time; configure the environment first
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["OPENROUTER_API_KEY"] = "test-openrouter-key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["ENV"] = "test"
os.environ["LOG_DIR"] = os.path.join(tempfile.gettempdir(), "planning-backend-test-logs")

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from database import Base, create_session_factory
from backend.utils.errors import ProviderError
from services.openrouter_service import CompletionResult
from utils.rate_limit import InMemoryRateLimitStore

# In-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_completion(content: str) -> CompletionResult:
    """A successful chat-completion result whose first choice carries `content`."""
    return CompletionResult.model_validate({
        "id": "gen-test",
        "model": "test/model",
        "choices": [{"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    })


class FakeCompletionClient:
    """
    Stand-in for OpenRouterClient.

    Each queued item is either message content (str) or an exception to
    raise. Every request is recorded for assertions.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def complete(self, request, api_key=None):
        self.requests.append(request)
        if not self.responses:
            raise ProviderError("No response queued", provider_status=503)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return make_completion(item)


@pytest.fixture
async def test_engine():
    """
    Fixture that provides an isolated, in-memory SQLite database for each test.

    StaticPool keeps a single connection so every session (the guard's and
    the handler's) sees the same database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        # Import models to ensure they're registered with Base
        import database_models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest.fixture
async def test_db(session_factory):
    """
    Yields a clean AsyncSession for the test, committed afterwards
    (rolled back if the test raises).
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def llm_client():
    return FakeCompletionClient()


@pytest.fixture
def rate_limit_store():
    return InMemoryRateLimitStore()


@pytest.fixture
def app(session_factory, llm_client, rate_limit_store):
    from main import create_app

    return create_app(
        session_factory=session_factory,
        rate_limit_store=rate_limit_store,
        llm_client=llm_client,
    )


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def register(client):
    """
    Returns an async helper that registers a user and gives back
    Bearer headers for it.
    """
    async def _register(email: str, password: str = "password123", name: str = "Test User") -> dict:
        response = await client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": name},
        )
        assert response.status_code == 200, response.text
        token = response.json()["data"]["session"]["access_token"]
        return {"Authorization": f"Bearer {token}"}

    return _register


@pytest.fixture
async def auth_headers(register):
    return await register("owner@example.com")
