# ============================================================================
# Test Configuration & Fixtures
# ============================================================================
import json
import pytest
from typing import AsyncGenerator, Dict
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import AsyncMock, MagicMock

from app.main import app
from app.core.database import Base, get_db
from app.api.deps import get_cache, get_question_generator
from app.models.user import User

# Test database URL (in-memory SQLite shared across the test's connections)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

test_session_maker = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_maker() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def make_user(db_session: AsyncSession):
    """Insert a learner row"""
    async def _make(user_id: str = "kid-1", grade: str = "4-5", **fields) -> User:
        user = User(
            id=user_id,
            grade=grade,
            total_xp=fields.pop("total_xp", 0),
            level=fields.pop("level", 1),
            daily_question_count=fields.pop("daily_question_count", 0),
            daily_goal=fields.pop("daily_goal", 10),
            selected_modules=fields.pop("selected_modules", []),
            **fields
        )
        db_session.add(user)
        await db_session.commit()
        return user
    return _make

@pytest.fixture
def mock_cache():
    """Dict-backed stand-in for the Redis cache"""
    store: Dict[str, str] = {}
    cache = MagicMock()
    cache.store = store

    async def _get(key):
        return store.get(key)

    async def _set(key, value, ttl=3600):
        store[key] = value

    async def _delete(key):
        store.pop(key, None)

    async def _claim(key, ttl=3600):
        if key in store:
            return False
        store[key] = "1"
        return True

    async def _get_json(key):
        data = store.get(key)
        return json.loads(data) if data else None

    async def _set_json(key, value, ttl=3600):
        store[key] = json.dumps(value)

    cache.get = AsyncMock(side_effect=_get)
    cache.set = AsyncMock(side_effect=_set)
    cache.delete = AsyncMock(side_effect=_delete)
    cache.claim = AsyncMock(side_effect=_claim)
    cache.get_json = AsyncMock(side_effect=_get_json)
    cache.set_json = AsyncMock(side_effect=_set_json)
    cache.publish = AsyncMock(return_value=1)
    return cache

@pytest.fixture
def mock_generator():
    """Question generator returning a fixed addition question"""
    generator = MagicMock()
    generator.generate = AsyncMock(return_value={"question": "What is 12 + 7?", "answer": None})
    return generator

@pytest.fixture
async def client(db_session: AsyncSession, mock_cache, mock_generator) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database, cache and generator"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: mock_cache
    app.dependency_overrides[get_question_generator] = lambda: mock_generator

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
