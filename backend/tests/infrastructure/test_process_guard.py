"""Process Guard — pool failures outside requests terminate; other loop errors only log."""

import asyncio
import logging

import asyncpg
from sqlalchemy.exc import DBAPIError, OperationalError

from userapi.infrastructure.process_guard import (
    handle_loop_exception, install_loop_guard, is_pool_failure,
)


def _dbapi_error():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection"))


def test_driver_errors_are_pool_failures():
    assert is_pool_failure(_dbapi_error())
    assert is_pool_failure(asyncpg.InterfaceError("connection is closed"))


def test_pool_failure_found_in_cause_chain():
    wrapper = RuntimeError("wrapped")
    wrapper.__cause__ = _dbapi_error()
    assert is_pool_failure(wrapper)


def test_application_errors_are_not_pool_failures():
    assert not is_pool_failure(ValueError("nope"))
    assert not is_pool_failure(None)


def test_pool_failure_terminates_with_status_1(caplog):
    exits = []
    handle_loop_exception(
        None, {"message": "idle client error", "exception": _dbapi_error()},
        terminate=exits.append,
    )
    assert exits == [1]
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)


def test_other_unobserved_errors_are_logged_once(caplog):
    exits = []
    handle_loop_exception(
        None,
        {"message": "Task exception was never retrieved", "exception": ValueError("x")},
        terminate=exits.append,
    )
    assert exits == []
    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "Task exception was never retrieved" in errors[0].getMessage()


async def test_installed_guard_handles_loop_errors():
    loop = asyncio.get_running_loop()
    exits = []
    install_loop_guard(loop, terminate=exits.append)
    try:
        loop.call_exception_handler({
            "message": "Unexpected error on idle client",
            "exception": DBAPIError("SELECT 1", {}, Exception("reset")),
        })
    finally:
        loop.set_exception_handler(None)
    assert exits == [1]
