"""
Pytest configuration and fixtures.
"""

import time
from typing import AsyncGenerator, Callable
import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import crm.models  # noqa: F401
from crm.core.config import settings
from crm.core.database import Base, get_db
from crm.core.security import Principal
from crm.main import app
from crm.models.client import Client, ClientStatus
from crm.models.user import User


# In-memory SQLite shared by every session of one test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_JWT_KEY = "test-session-key"
TEST_WEBHOOK_SECRET = "whsec_dGVzdC13ZWJob29rLXNlY3JldA=="


@pytest.fixture(autouse=True)
def auth_settings(monkeypatch):
    """Verify HS256 session tokens signed with a test key."""
    monkeypatch.setattr(settings, "AUTH_JWT_KEY", TEST_JWT_KEY)
    monkeypatch.setattr(settings, "AUTH_JWT_ALGORITHM", "HS256")
    monkeypatch.setattr(settings, "AUTH_JWT_ISSUER", None)
    monkeypatch.setattr(settings, "AUTH_JWT_AUDIENCE", None)
    monkeypatch.setattr(settings, "WEBHOOK_SECRET", TEST_WEBHOOK_SECRET)


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield engine
    
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database session override."""
    
    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise
    
    app.dependency_overrides[get_db] = override_get_db
    
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac
    
    app.dependency_overrides.clear()


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Mint session tokens the way the auth provider does."""
    
    def _make_token(
        sub: str = "user_test",
        email: str | None = "test@example.com",
        expires_in: int = 3600,
        **claims,
    ) -> str:
        payload = {"sub": sub, "exp": int(time.time()) + expires_in, **claims}
        if email is not None:
            payload["email"] = email
        return jwt.encode(payload, TEST_JWT_KEY, algorithm="HS256")
    
    return _make_token


@pytest.fixture
def principal() -> Principal:
    return Principal(external_id="user_test", email="test@example.com", name="Test User")


@pytest.fixture
def other_principal() -> Principal:
    return Principal(external_id="user_other", email="other@example.com", name="Other User")


@pytest.fixture
async def test_user(db_session: AsyncSession, principal: Principal) -> User:
    """Create the user behind the default token."""
    user = User(
        external_id=principal.external_id,
        email=principal.email,
        name=principal.name,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession, other_principal: Principal) -> User:
    user = User(
        external_id=other_principal.external_id,
        email=other_principal.email,
        name=other_principal.name,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_client_record(db_session: AsyncSession, test_user: User) -> Client:
    """An active client owned by test_user."""
    record = Client(
        user_id=test_user.id,
        name="Acme Corp",
        email="contact@acme.example",
        company="Acme",
        tags=["vip"],
        status=ClientStatus.ACTIVE,
    )
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


@pytest.fixture
async def auth_client(
    client: AsyncClient,
    test_user: User,
    make_token,
) -> AsyncClient:
    """Create authenticated test client."""
    client.headers["Authorization"] = f"Bearer {make_token()}"
    return client


class FakeClock:
    """Controllable time source for the query cache."""
    
    def __init__(self, now: float = 1000.0):
        self.now = now
    
    def __call__(self) -> float:
        return self.now
    
    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
