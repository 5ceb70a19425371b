import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment variables before importing studydesk modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("STORAGE_URL", "http://storage.test/storage/v1")
os.environ.setdefault("ADMIN_EMAILS", "admin@example.com")

BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory bound to a fresh SQLite file database.

    A file (not ``:memory:``) so that loaders opening several sessions at
    once all see the same tables.
    """
    from studydesk.database import Base
    import studydesk.models  # noqa: F401 - Import to register models with Base

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'studydesk.db'}", echo=False)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def storage_requests() -> list[httpx.Request]:
    """Requests seen by the mocked object storage."""
    return []


@pytest.fixture
def storage_files() -> dict[str, bytes]:
    """Objects served by the mocked object storage, keyed by path."""
    return {}


@pytest.fixture
def storage(storage_requests, storage_files):
    """ObjectStorage backed by an ``httpx.MockTransport``.

    DELETE always succeeds; GET serves ``storage_files`` and 404s otherwise.
    """
    from studydesk.services.storage import ObjectStorage

    prefix = "/storage/v1/object/study-notes/"

    def handler(request: httpx.Request) -> httpx.Response:
        storage_requests.append(request)
        if request.method == "DELETE":
            return httpx.Response(200, json=[])
        path = request.url.path.removeprefix(prefix)
        if path in storage_files:
            return httpx.Response(200, content=storage_files[path])
        return httpx.Response(404, json={"error": "not found"})

    return ObjectStorage(
        os.environ["STORAGE_URL"],
        "study-notes",
        "service-key",
        transport=httpx.MockTransport(handler),
    )


@pytest_asyncio.fixture(scope="function")
async def test_app(test_db: AsyncSession, session_factory, storage):
    """Provide the FastAPI app with database and storage overrides."""
    from studydesk.database import get_db, get_session_factory
    from studydesk.main import app
    from studydesk.services.storage import get_storage

    async def override_get_db():
        yield test_db

    async def override_get_storage():
        yield storage

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_storage] = override_get_storage
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing with test database."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def make_auth_headers(
    sub: str = "user-1", email: str | None = "user1@example.com", is_anonymous: bool = False
) -> dict[str, str]:
    """Create Authorization headers with a valid access token."""
    from studydesk.services.auth_service import create_access_token

    token = create_access_token(data={"sub": sub, "email": email, "is_anonymous": is_anonymous})
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------


def at(minutes: int) -> datetime:
    """A timestamp ``minutes`` after a fixed base time."""
    return BASE_TIME + timedelta(minutes=minutes)


async def add_rows(db: AsyncSession, *rows):
    db.add_all(rows)
    await db.commit()
    return rows[0] if len(rows) == 1 else rows


async def make_category(db, user_id="user-1", name="Lectures", sort_order=0, minutes=0, **kwargs):
    from studydesk.models import Category

    return await add_rows(
        db, Category(user_id=user_id, name=name, sort_order=sort_order, created_at=at(minutes), **kwargs)
    )


async def make_note(db, user_id="user-1", title="Week 1", minutes=0, **kwargs):
    from studydesk.models import Note

    return await add_rows(db, Note(user_id=user_id, title=title, created_at=at(minutes), **kwargs))


async def make_group(db, user_id="user-1", name="Algorithms", sort_order=0, minutes=0):
    from studydesk.models import LinkGroup

    return await add_rows(
        db, LinkGroup(user_id=user_id, name=name, sort_order=sort_order, created_at=at(minutes))
    )


async def make_subgroup(db, group_id, user_id="user-1", name="Week 1", sort_order=0, minutes=0):
    from studydesk.models import LinkSubgroup

    return await add_rows(
        db,
        LinkSubgroup(
            group_id=group_id, user_id=user_id, name=name, sort_order=sort_order, created_at=at(minutes)
        ),
    )


async def make_link(db, user_id="user-1", title="Docs", url="https://example.com", minutes=0, **kwargs):
    from studydesk.models import StudyLink

    return await add_rows(
        db, StudyLink(user_id=user_id, title=title, url=url, created_at=at(minutes), **kwargs)
    )
