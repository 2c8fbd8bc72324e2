import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tutorfeed.core.database import Base
from tests.mocks.fake_feed_repository import TEACHER_ID


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine so concurrent sessions see the same data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def app_with_db(db_engine, session_factory):
    """FastAPI app wired to the test database."""
    import tutorfeed.core.database as db_module

    original_engine = db_module.engine
    original_session = db_module.async_session
    db_module.engine = db_engine
    db_module.async_session = session_factory

    from tutorfeed.main import app

    yield app

    db_module.engine = original_engine
    db_module.async_session = original_session


@pytest_asyncio.fixture
async def client(app_with_db):
    """HTTP client acting as the default test teacher."""
    transport = ASGITransport(app=app_with_db)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        client.headers["X-Teacher-Id"] = str(TEACHER_ID)
        yield client


@pytest_asyncio.fixture
async def anon_client(app_with_db):
    """HTTP client without a tenant header."""
    transport = ASGITransport(app=app_with_db)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
