"""Pytest fixtures for testing."""

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from uuid import UUID

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-dutylog-tests-0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from dutylog.core.database import async_database_url, configure_engine, get_db
from dutylog.core.email import EmailDeliveryError, get_mailer
from dutylog.main import app
from dutylog.models.base import Base

# SQLite in memory by default; point TEST_DATABASE_URL at a disposable
# Postgres database to run the suite against the production dialect.
TEST_DATABASE_URL = async_database_url(os.getenv("TEST_DATABASE_URL", "sqlite://"))

PASSWORD = "Str0ng!Passw0rd"


class FakeMailer:
    """Mailer double recording invitation deliveries."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send_invitation(self, to_email: str, organization_name: str, link: str) -> None:
        if self.fail:
            raise EmailDeliveryError("SMTP server unavailable")
        self.sent.append({"to": to_email, "organization": organization_name, "link": link})

    def token_for(self, email: str) -> str:
        """Token from the most recent invitation link sent to ``email``."""
        for message in reversed(self.sent):
            if message["to"] == email:
                return message["link"].rsplit("/", 1)[-1]
        raise AssertionError(f"no invitation sent to {email}")


@dataclass
class Actor:
    """Signed-in identity used by tests."""

    email: str
    user_id: UUID
    access_token: str
    organization_id: UUID | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


@pytest_asyncio.fixture(scope="function")
async def engine():
    """Create a fresh schema per test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        test_engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        test_engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    configure_engine(test_engine)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and assertions.

    Seeded rows must be committed; request sessions share the connection.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, mailer: FakeMailer) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and mailer overrides.

    Each request gets its own session with the same commit/rollback
    semantics as the production dependency.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def signup(client: AsyncClient, email: str, password: str = PASSWORD) -> Actor:
    """Register an identity through the API."""
    response = await client.post("/api/auth/signup", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    data = response.json()
    return Actor(email=email, user_id=UUID(data["user_id"]), access_token=data["access_token"])


async def create_admin(
    client: AsyncClient,
    email: str = "admin@example.com",
    full_name: str = "Alice Admin",
    organization_name: str = "Metro Police",
) -> Actor:
    """Sign up and onboard an identity as the first admin of a new organization."""
    actor = await signup(client, email)
    response = await client.post(
        "/api/auth/setup-profile",
        headers=actor.headers,
        json={
            "userId": str(actor.user_id),
            "email": email,
            "fullName": full_name,
            "organizationName": organization_name,
        },
    )
    assert response.status_code == 200, response.text
    actor.organization_id = UUID(response.json()["organization"]["id"])
    return actor


async def create_member(
    client: AsyncClient,
    mailer: FakeMailer,
    admin: Actor,
    email: str,
    full_name: str = "Oscar Officer",
    role: str = "user",
) -> Actor:
    """Invite ``email`` into the admin's organization, sign up and accept."""
    response = await client.post(
        "/api/invitations/send",
        headers=admin.headers,
        json={"email": email, "role": role},
    )
    assert response.status_code == 201, response.text

    actor = await signup(client, email)
    response = await client.post(
        f"/api/invitations/accept/{mailer.token_for(email)}",
        headers=actor.headers,
        json={"fullName": full_name},
    )
    assert response.status_code == 200, response.text
    actor.organization_id = admin.organization_id
    return actor


@pytest_asyncio.fixture
async def admin(client: AsyncClient) -> Actor:
    return await create_admin(client)


@pytest_asyncio.fixture
async def officer(client: AsyncClient, mailer: FakeMailer, admin: Actor) -> Actor:
    return await create_member(client, mailer, admin, "officer@example.com")


@pytest_asyncio.fixture
async def other_admin(client: AsyncClient) -> Actor:
    """Admin of a second, unrelated organization."""
    return await create_admin(
        client,
        email="rival@example.com",
        full_name="Rita Rival",
        organization_name="County Sheriff",
    )
