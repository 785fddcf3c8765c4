"""Shared test fixtures.

Every test gets its own SQLite database file with the schema created from the
ORM metadata, so no PostgreSQL or Redis is needed. The HTTP client runs the
app in-process over ASGITransport with the session dependency pointed at that
database.
"""

from __future__ import annotations

import fnmatch
import os
import time
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from itertools import count

os.environ.setdefault("QE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("QE_JWT_AUDIENCE", "authenticated")
os.environ.setdefault("QE_PAYMENT_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("QE_ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("QE_TIMEZONE", "UTC")
os.environ.setdefault("QE_LOG_FORMAT", "console")

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from quizecon.cache import ResponseCache  # noqa: E402
from quizecon.config import get_settings  # noqa: E402
from quizecon.database import get_session  # noqa: E402
from quizecon.db.base import Base  # noqa: E402
from quizecon.gamification.seed import seed_milestones  # noqa: E402
from quizecon.main import create_app  # noqa: E402
from quizecon.payments.packs import HintPack  # noqa: E402
from quizecon.payments.processor import CheckoutSession, PaymentProcessor  # noqa: E402

get_settings.cache_clear()

# Wednesday, mid-morning UTC. Tests pass explicit clocks derived from this.
NOW = datetime(2026, 3, 4, 10, 0, 0, tzinfo=timezone.utc)


class FakePaymentProcessor(PaymentProcessor):
    """Records checkout requests and hands out sequential session ids."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self._ids = count(1)
        self.closed = False

    async def create_checkout_session(
        self,
        user_id: str,
        pack: HintPack,
        metadata: dict[str, str] | None = None,
    ) -> CheckoutSession:
        session_id = f"cs_test_{next(self._ids)}"
        self.calls.append({"user_id": user_id, "pack_key": pack.key, "metadata": metadata or {}})
        return CheckoutSession(id=session_id, url=f"https://checkout.example.test/pay/{session_id}")

    async def aclose(self) -> None:
        self.closed = True


def make_token(user_id: str, expires_in: int = 3600, **claims: object) -> str:
    """Access token as the identity provider would issue it."""
    settings = get_settings()
    payload = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "iat": int(time.time()),
        "exp": int(time.time()) + expires_in,
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'quizecon.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await seed_milestones(session)
    yield factory


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session with both milestone ladders seeded."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_processor() -> FakePaymentProcessor:
    return FakePaymentProcessor()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_processor: FakePaymentProcessor,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, bound to the per-test database.

    ASGITransport does not run the lifespan, so the state it would build is
    installed here: a cache without Redis and the fake processor.
    """
    app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.state.cache = ResponseCache(None)
    app.state.payment_processor = fake_processor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def auth():
    """Factory for ``Authorization`` headers: ``auth("user-1")``."""
    return auth_headers


class InMemoryRedis:
    """The handful of redis.asyncio calls the cache and the rate limiter make."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.store[key] = value
        self.ttls[key] = ttl

    async def delete(self, *keys: str) -> int:
        return sum(1 for k in keys if self.store.pop(k, None) is not None)

    async def scan_iter(self, match: str = "*", count: int = 10):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    def pipeline(self) -> InMemoryPipeline:
        return InMemoryPipeline(self)


class InMemoryPipeline:
    def __init__(self, redis: InMemoryRedis) -> None:
        self._redis = redis
        self._ops: list[tuple[str, str, int]] = []

    def incr(self, key: str) -> None:
        self._ops.append(("incr", key, 0))

    def expire(self, key: str, seconds: int) -> None:
        self._ops.append(("expire", key, seconds))

    async def execute(self) -> list[int | bool]:
        results: list[int | bool] = []
        for op, key, arg in self._ops:
            if op == "incr":
                value = int(self._redis.store.get(key, "0")) + 1
                self._redis.store[key] = str(value)
                results.append(value)
            else:
                self._redis.ttls[key] = arg
                results.append(True)
        self._ops.clear()
        return results


@pytest.fixture
def memory_redis() -> InMemoryRedis:
    return InMemoryRedis()
