import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import delete

from portfolio import database
from portfolio.main import app
from portfolio.models import Entry
from portfolio.services import content_store
from portfolio.services.auth import hash_password
from portfolio.services.throttle import LoginThrottle

ADMIN_PASSWORD = "correct horse battery"
SITE_PASSWORD = "viewer only"
ADMIN_HASH = hash_password(ADMIN_PASSWORD)
SITE_HASH = hash_password(SITE_PASSWORD)


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    """Known configuration for every test; viewer gate off by default."""
    monkeypatch.setenv("ADMIN_PASSWORD_HASH", ADMIN_HASH)
    monkeypatch.delenv("SITE_PASSWORD_HASH", raising=False)
    monkeypatch.setenv("SITE_URL", "https://example.com")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.delenv("ENVIRONMENT", raising=False)


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh database per test, with the seeded example entries removed."""
    await database.init_db(f"sqlite+aiosqlite:///{tmp_path / 'portfolio.db'}")
    async with database.async_session_maker() as session:
        await session.execute(delete(Entry))
        await session.commit()
    app.state.login_throttle = LoginThrottle()
    yield
    await database.engine.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with database.async_session_maker() as s:
        yield s


@pytest.fixture
def make_entry(db):
    """Create an entry through the store in its own session."""
    async def _make(**fields):
        fields.setdefault("title", fields.get("slug", "Untitled").title())
        fields.setdefault("kind", "project")
        async with database.async_session_maker() as s:
            return await content_store.create_entry(s, fields)
    return _make


@pytest.fixture
def fetch_entry(db):
    """Read an entry back in a fresh session, so nothing comes from a stale identity map."""
    async def _fetch(slug):
        async with database.async_session_maker() as s:
            return await content_store.get_entry_by_slug(s, slug)
    return _fetch


@pytest_asyncio.fixture
async def client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(client):
    response = await client.post("/auth/login", data={"password": ADMIN_PASSWORD, "next": "/admin"})
    assert response.status_code == 303
    yield client
