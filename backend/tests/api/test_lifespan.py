"""Lifespan — owns the Database only when none was injected."""

import asyncio

import pytest

from userapi.core.errors import DatabaseError
from userapi.main import create_app


@pytest.fixture(autouse=True)
async def restore_loop_handler():
    yield
    asyncio.get_running_loop().set_exception_handler(None)


async def test_injected_database_is_left_alone(settings, database):
    app = create_app(settings, database)
    async with app.router.lifespan_context(app):
        assert app.state.database is database
    assert app.state.database is database
    assert await database.health_check()


async def test_lifespan_creates_and_disposes_database(settings, tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'app.sqlite'}"
    app = create_app(settings.model_copy(update={"database_url": url}))
    async with app.router.lifespan_context(app):
        assert app.state.database is not None
        assert await app.state.database.health_check()
    assert app.state.database is None


async def test_startup_fails_when_database_unreachable(settings):
    url = "sqlite+aiosqlite:////nonexistent/dir/app.sqlite"
    app = create_app(settings.model_copy(update={"database_url": url}))
    with pytest.raises(DatabaseError):
        async with app.router.lifespan_context(app):
            pass
