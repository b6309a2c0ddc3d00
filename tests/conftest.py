"""
Shared fixtures for the AI Council tests.

Environment is configured before any aicouncil module is imported so the
cached settings pick up the test database and disable the scheduler.
Upstream OpenAI calls are replaced by the fakes below through FastAPI
dependency overrides.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_aicouncil.db"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["EMISSION_PACING_SECONDS"] = "0"
os.environ["DEBUG"] = "false"

import math
import zlib
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from aicouncil.main import app
from aicouncil.db import init_db, drop_db, async_session_maker
from aicouncil.services import create_user, create_access_token
from aicouncil.services.embedding_service import get_embedding_service
from aicouncil.services.errors import LLMServiceError
from aicouncil.services.llm_service import LLMResponse, get_llm_service
from aicouncil.services.usage_tracker import UsageTracker
from aicouncil.api.ws_council import RoomManager


class FakeEmbeddingService:
    """
    Deterministic bag-of-words embeddings.

    Identical texts embed identically; `vectors` pins exact vectors for
    specific texts when a test needs control over similarity.
    """

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dimension: int = 64):
        self.vectors = vectors or {}
        self.dimension = dimension
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.vectors:
            return list(self.vectors[text])
        vector = [0.0] * self.dimension
        for word in text.lower().split():
            vector[zlib.crc32(word.strip(".,!?").encode()) % self.dimension] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]


class FakeLLMService:
    """
    Records every completion request and answers with scripted content.

    `fail_on_call` (1-based) makes that call raise LLMServiceError.
    """

    def __init__(self, replies: Optional[List[str]] = None, fail_on_call: Optional[int] = None,
                 tokens: int = 100):
        self.replies = list(replies or [])
        self.fail_on_call = fail_on_call
        self.tokens = tokens
        self.calls: List[dict] = []

    async def complete(self, system_prompt, user_prompt, history=None, model=None, temperature=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "history": list(history or []),
            "model": model,
            "temperature": temperature,
        })
        call_number = len(self.calls)
        if self.fail_on_call == call_number:
            raise LLMServiceError("Failed to generate AI response. Please try again later.")
        if self.replies:
            content = self.replies[(call_number - 1) % len(self.replies)]
        else:
            content = f"Reply number {call_number}"
        return LLMResponse(
            content=content,
            model="gpt-4",
            tokens_used=self.tokens,
            estimated_cost=self.tokens * 0.045 / 1000,
            finish_reason="stop",
        )


@pytest.fixture
def fake_llm():
    llm = FakeLLMService()
    app.dependency_overrides[get_llm_service] = lambda: llm
    yield llm
    app.dependency_overrides.pop(get_llm_service, None)


@pytest.fixture
def fake_embeddings():
    embeddings = FakeEmbeddingService()
    app.dependency_overrides[get_embedding_service] = lambda: embeddings
    yield embeddings
    app.dependency_overrides.pop(get_embedding_service, None)


@pytest.fixture(autouse=True)
def fresh_app_state():
    """Every test starts with empty usage counters and rooms and no pacing delay."""
    app.state.usage_tracker = UsageTracker()
    app.state.room_manager = RoomManager()
    app.state.emission_pacing_seconds = 0
    yield


@pytest_asyncio.fixture
async def database():
    """Create a fresh database for each test"""
    await init_db()
    yield
    await drop_db()


@pytest_asyncio.fixture
async def db_session(database):
    """Get a database session"""
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(database, fake_llm, fake_embeddings):
    """Create an async test client"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_user(email: str = "alice@example.com", tier: str = "FREE", role: str = "user"):
    async with async_session_maker() as db:
        user = await create_user(db, email, "password123", "Alice")
        if tier != "FREE" or role != "user":
            user.subscription_tier = tier
            user.role = role
            await db.commit()
        return user


@pytest_asyncio.fixture
async def user(database):
    return await make_user()


@pytest_asyncio.fixture
async def auth_headers(user):
    """Bearer headers for the default test user"""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest_asyncio.fixture
async def other_user(database):
    """A second, unrelated user"""
    return await make_user("bob@example.com")


@pytest_asyncio.fixture
async def other_headers(other_user):
    return {"Authorization": f"Bearer {create_access_token(other_user.id)}"}


@pytest_asyncio.fixture
async def admin_headers(database):
    admin = await make_user("admin@example.com", tier="BUSINESS", role="admin")
    return {"Authorization": f"Bearer {create_access_token(admin.id)}"}


@pytest_asyncio.fixture
async def pro_headers(database):
    pro = await make_user("pro@example.com", tier="PRO")
    return {"Authorization": f"Bearer {create_access_token(pro.id)}"}

