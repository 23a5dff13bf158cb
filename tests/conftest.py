import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from debt_ledger.core.auth import create_access_token
from debt_ledger.core.config import settings
from debt_ledger.db.mongo import create_indexes, get_db
from debt_ledger.services.person_registry import PersonRegistry

TEST_DATABASE_NAME = "debt_ledger_test"


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """No real sleeping between retries or migrated records."""
    monkeypatch.setattr(settings, "MONGODB_TRANSACTIONS", False)
    monkeypatch.setattr(settings, "STORAGE_RETRY_BACKOFF_SECONDS", 0)
    monkeypatch.setattr(settings, "MIGRATION_ITEM_DELAY_SECONDS", 0)


@pytest_asyncio.fixture
async def test_db():
    """Fixture for an in-memory MongoDB database with the production indexes."""
    client = AsyncMongoMockClient(tz_aware=True)
    db = client[TEST_DATABASE_NAME]
    await create_indexes(db)

    yield db


@pytest_asyncio.fixture
async def mapped_people(test_db):
    """alice pays with a card and with cash; bob only with a card."""
    registry = PersonRegistry(test_db)
    await registry.upsert_mapping("alice-card", "alice", "Alice")
    await registry.upsert_mapping("alice-cash", "alice", "Alice")
    await registry.upsert_mapping("bob-card", "bob", "Bob")
    return {"alice": ["alice-card", "alice-cash"], "bob": ["bob-card"]}


@pytest.fixture
def operator_headers():
    return {"Authorization": f"Bearer {create_access_token('operator1')}"}


@pytest.fixture
def admin_headers():
    token = create_access_token("admin1", role=settings.ADMIN_ROLE)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(test_db):
    """HTTP client against the app, wired to the test database."""
    from debt_ledger.main import app

    app.dependency_overrides[get_db] = lambda: test_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
