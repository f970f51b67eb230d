"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test gets its own transaction that rolls back after the test.
- ``TEST_DATABASE_URL`` selects the database. It defaults to an in-memory
  SQLite database; CI points it at PostgreSQL.
- Race tests use ``concurrent_engine`` instead: independent sessions that
  commit, cleaned up by the tests themselves.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from marketplace.auth.security import create_token_pair, hash_password
from marketplace.billing.plans import get_plan
from marketplace.database import Base, get_db, utcnow
from marketplace.errors import DependencyFailure
from marketplace.main import app
from marketplace.models.agency import Agency
from marketplace.models.agent import Agent
from marketplace.models.subscription import Subscription
from marketplace.models.user import User
from marketplace.services.media import StoredMedia, get_media_store
from marketplace.services.notifications import Notifier, get_notifier

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

_DEFAULT = object()


def _make_engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(TEST_DATABASE_URL, echo=False, pool_pre_ping=True)


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class RecordingSink:
    """Notification sink that keeps every delivered event in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[uuid.UUID, str, str]] = []

    async def notify(self, user_id: uuid.UUID, type: str, message: str) -> None:
        self.events.append((user_id, type, message))

    def of_type(self, type: str) -> list[tuple[uuid.UUID, str, str]]:
        return [event for event in self.events if event[1] == type]


class FakeMediaStore:
    """In-memory stand-in for the Cloudinary store."""

    def __init__(self) -> None:
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_uploads_after: int | None = None
        self.fail_deletes = False

    async def upload(self, content: bytes, filename: str, content_type: str | None = None) -> StoredMedia:
        if self.fail_uploads_after is not None and len(self.uploaded) >= self.fail_uploads_after:
            raise DependencyFailure("Image upload failed")
        public_id = f"property-images/{uuid.uuid4().hex[:12]}"
        self.uploaded.append(public_id)
        return StoredMedia(url=f"https://media.test/{public_id}.jpg", public_id=public_id)

    async def delete(self, public_id: str) -> None:
        if self.fail_deletes:
            raise DependencyFailure(f"Could not delete image {public_id}")
        self.deleted.append(public_id)

    def upload_signature(self) -> dict:
        return {
            "cloud_name": "test-cloud",
            "api_key": "key",
            "timestamp": 1700000000,
            "signature": "sig",
            "folder": "property-images",
            "upload_url": "https://api.cloudinary.com/v1_1/test-cloud/image/upload",
        }


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    """Create a session-scoped engine tied to the session event loop."""
    engine = _make_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    """Create all tables at the start of the session and drop them at the end."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def concurrent_engine(test_engine, setup_test_db, tmp_path_factory):
    """Engine for race tests: every session gets its own connection and commits for real.

    PostgreSQL reuses the test database. SQLite moves to a file database where
    each transaction opens with ``BEGIN IMMEDIATE``, so competing writers queue
    on the database lock instead of failing with "database is locked".
    """
    if not TEST_DATABASE_URL.startswith("sqlite"):
        yield test_engine
        return

    path = tmp_path_factory.mktemp("races") / "races.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool, connect_args={"timeout": 30})

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def notification_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def media_store() -> FakeMediaStore:
    return FakeMediaStore()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    notification_sink: RecordingSink,
    media_store: FakeMediaStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test DB session and collaborator doubles."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: Notifier(notification_sink)
    app.dependency_overrides[get_media_store] = lambda: media_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Create a user directly in the DB."""

    async def _make(role: str = "individual", gold_cards: int = 0, name: str = "Test User") -> User:
        unique = uuid.uuid4().hex[:8]
        user = User(
            email=f"{role}-{unique}@test.com",
            hashed_password=hash_password("testpass123"),
            name=name,
            is_active=True,
            role=role,
            approval_status="approved",
            gold_cards=gold_cards,
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_subscription(db_session: AsyncSession):
    """Create a ledger directly in the DB. ``listing_limit`` defaults to the plan's."""

    async def _make(
        user: User,
        plan: str = "basic",
        listing_limit=_DEFAULT,
        listings_used: int = 0,
        status: str = "active",
        expiration_date=_DEFAULT,
    ) -> Subscription:
        subscription = Subscription(
            user_id=user.id,
            plan=plan,
            status=status,
            listing_limit=get_plan(plan).default_listing_limit if listing_limit is _DEFAULT else listing_limit,
            listings_used=listings_used,
            featured_count=0,
            expiration_date=utcnow() + timedelta(days=30) if expiration_date is _DEFAULT else expiration_date,
        )
        db_session.add(subscription)
        await db_session.flush()
        await db_session.refresh(subscription)
        return subscription

    return _make


@pytest.fixture
def make_agency(db_session: AsyncSession, make_user):
    """Create an agency account with its profile; returns (user, agency)."""

    async def _make(name: str | None = None) -> tuple[User, Agency]:
        user = await make_user(role="agency")
        agency = Agency(user_id=user.id, name=name or f"Agency {uuid.uuid4().hex[:6]}", approval_status="approved")
        db_session.add(agency)
        await db_session.flush()
        return user, agency

    return _make


@pytest.fixture
def make_agent(db_session: AsyncSession, make_user):
    """Create an agent account with its profile; returns (user, agent)."""

    async def _make(agency: Agency | None = None) -> tuple[User, Agent]:
        user = await make_user(role="agent")
        agent = Agent(user_id=user.id, agency_id=agency.id if agency else None, approval_status="approved")
        db_session.add(agent)
        await db_session.flush()
        return user, agent

    return _make


def headers_for(user: User) -> dict[str, str]:
    tokens = create_token_pair(str(user.id), user.role)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def auth_headers_for():
    return headers_for


# ---------------------------------------------------------------------------
# Convenience fixtures: common actors
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(role="admin", name="Admin")


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict[str, str]:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def test_user(make_user, make_subscription) -> User:
    """An individual seller on a basic plan (limit 5)."""
    user = await make_user(role="individual", gold_cards=1)
    await make_subscription(user, plan="basic")
    return user


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    return headers_for(test_user)


@pytest_asyncio.fixture
async def other_user(make_user) -> User:
    return await make_user(role="individual", name="Other User")


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict[str, str]:
    return headers_for(other_user)


@pytest.fixture
def property_payload() -> dict:
    """A valid create body; tests override fields as needed."""
    return {
        "title": "Sea view apartment",
        "description": "Two bedrooms, walking distance to the beach.",
        "city": "Flic en Flac",
        "price": "8500000.00",
        "currency": "MUR",
        "category": "for-sale",
        "property_type": "Apartment",
        "size": "110",
        "bedrooms": 2,
        "bathrooms": 1,
        "amenities": ["parking", "pool", "parking"],
        "contact_details": {"phone": "+230 5000 0000", "email": "owner@test.com", "is_restricted": False},
    }


@pytest_asyncio.fixture
async def test_property(client: AsyncClient, auth_headers: dict, property_payload: dict) -> dict:
    """Create and return a pending test property via the API."""
    response = await client.post("/api/v1/properties", json=property_payload, headers=auth_headers)
    assert response.status_code == 201, f"Failed to create test property: {response.text}"
    return response.json()


@pytest_asyncio.fixture
async def approved_property(client: AsyncClient, test_property: dict, admin_headers: dict) -> dict:
    response = await client.post(f"/api/v1/admin/properties/{test_property['id']}/approve", headers=admin_headers)
    assert response.status_code == 200, response.text
    return response.json()

