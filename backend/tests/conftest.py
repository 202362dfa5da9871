"""Root conftest — shared test configuration and fixtures.

Invariants:
    - Every test gets a fresh in-memory SQLite database with the users schema applied
    - Apps are built with create_app(settings, database): nothing touches PostgreSQL

Design Decisions:
    - SQLite in-memory via aiosqlite: fast, no external dependency, sufficient for
      route tests (PostgreSQL-only options are covered by build_engine_options tests)
    - StaticPool: the single in-memory connection must survive between queries
"""

import os
from pathlib import Path

# Keep the module-level app in userapi.main away from real infrastructure
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_DIR", "")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from userapi.config import Settings  # noqa: E402
from userapi.db.migrate import run_migrations  # noqa: E402
from userapi.infrastructure.database import Database  # noqa: E402
from userapi.main import create_app  # noqa: E402

SQLITE_SCHEMA = Path(__file__).parent / "fixtures" / "schema_sqlite.sql"
MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="test",
        database_url=MEMORY_URL,
        log_dir=None,
    )


@pytest.fixture
async def database():
    engine = create_async_engine(MEMORY_URL, poolclass=StaticPool)
    db = Database(engine)
    await run_migrations(db, SQLITE_SCHEMA)
    yield db
    await db.dispose()


@pytest.fixture
def make_app(settings, database):
    """Build an app over the test database; keyword args override settings."""

    def _make(db=None, **overrides):
        return create_app(
            settings.model_copy(update=overrides), db or database,
        )

    return _make


@pytest.fixture
def make_client():
    """Open an AsyncClient bound to the given app."""

    def _make(app):
        return AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test",
        )

    return _make


@pytest.fixture
async def client(make_app, make_client):
    async with make_client(make_app()) as c:
        yield c
