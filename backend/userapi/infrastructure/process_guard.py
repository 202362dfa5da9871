"""Process Guard — fail-fast hooks for errors raised outside any request.

Invariants:
    - A driver/pool error surfacing on the event loop terminates the process (exit 1)
    - Any other unobserved asyncio error is logged exactly once and the process continues
    - Uncaught exceptions on the main thread are logged before the interpreter exits

Design Decisions:
    - One loop exception handler for all unobserved errors: no duplicate handlers
    - terminate is injectable so the policy can be exercised without killing the test run
"""

import logging
import os
import sys
from functools import partial
from typing import Any, Callable

import asyncpg
from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

_POOL_FAILURES = (DBAPIError, asyncpg.PostgresError, asyncpg.InterfaceError)


def _terminate(code: int) -> None:
    logging.shutdown()
    os._exit(code)


def is_pool_failure(exc: BaseException | None) -> bool:
    """True when exc (or anything in its cause chain) came from the driver."""
    while exc is not None:
        if isinstance(exc, _POOL_FAILURES):
            return True
        exc = exc.__cause__
    return False


def handle_loop_exception(
    loop,
    context: dict[str, Any],
    terminate: Callable[[int], None] = _terminate,
) -> None:
    exc = context.get("exception")
    message = context.get("message", "Unhandled exception in event loop")
    if is_pool_failure(exc):
        logger.critical(
            f"Unexpected error on idle database connection: {exc}",
            exc_info=exc,
        )
        terminate(1)
        return
    logger.error(f"Unhandled asyncio error: {message}", exc_info=exc)


def install_loop_guard(
    loop, terminate: Callable[[int], None] = _terminate,
) -> None:
    loop.set_exception_handler(partial(handle_loop_exception, terminate=terminate))


def install_excepthook() -> None:
    """Log uncaught exceptions before the default hook prints and exits."""

    def _hook(exc_type, exc, tb):
        if not issubclass(exc_type, KeyboardInterrupt):
            logger.critical("Uncaught exception", exc_info=(exc_type, exc, tb))
        sys.__excepthook__(exc_type, exc, tb)

    sys.excepthook = _hook
