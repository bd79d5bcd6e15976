"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eventra.db.base import Base
# Import all models to register with Base.metadata
import eventra.db.models  # noqa: F401
from eventra.events.background import BackgroundTasks


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine; concurrent sessions need real connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'eventra_test.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(db_engine, session_factory):
    """Create a test application instance wired without running the lifespan."""
    from eventra.api.middleware.rate_limit import setup_rate_limiter
    from eventra.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.tasks = BackgroundTasks()
    _app.state.webhook_transport = None
    _app.state.webhook_sleep = no_sleep
    setup_rate_limiter(_app, session_factory)
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client. Drains detached webhook tasks on teardown."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.tasks.drain(timeout=5)
