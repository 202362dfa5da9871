"""Database Pool Manager — bounded async connection pool with a single query operation.

Invariants:
    - Every query runs in its own transaction: commit on success, rollback on failure
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py);
      constraint violations to IntegrityViolationError
    - At most db_pool_max connections are open; checkouts wait up to the
      acquisition timeout, then fail
    - A pooled connection is discarded after db_max_uses checkouts or once it
      has sat idle longer than db_idle_timeout_ms

Design Decisions:
    - Database built explicitly in the FastAPI lifespan and stored on app.state
      (no module-level singleton): tests inject an SQLite-backed instance
    - Raw text() statements with named binds over ORM models: handlers own their SQL
    - Use-count and idle recycling via pool events: QueuePool only recycles by age
"""

import logging
import ssl
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

from fastapi import Request
from sqlalchemy import event, exc, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from userapi.config import Settings
from userapi.core.errors import DatabaseError, IntegrityViolationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryResult:
    """Rows returned by a statement plus the affected/returned row count."""
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


def _ssl_mode(settings: Settings) -> ssl.SSLContext | bool:
    """TLS strictness: managed hosts skip verification, production verifies."""
    if settings.uses_managed_database:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context
    if settings.is_production:
        return ssl.create_default_context()
    return False


def build_engine_options(settings: Settings) -> dict[str, Any]:
    """Translate pool settings into create_async_engine keyword arguments."""
    if not settings.database_url:
        raise ValueError(
            "Database configuration is missing. Please check your .env file.",
        )
    url = make_url(settings.database_url)
    options: dict[str, Any] = {"pool_pre_ping": True}
    if url.get_backend_name() == "sqlite":
        # SQLite picks its own pool class; sizing arguments are rejected
        return options

    managed = settings.uses_managed_database
    timeout_ms = (
        settings.db_managed_connection_timeout_ms
        if managed else settings.db_connection_timeout_ms
    )
    options.update(
        pool_size=settings.db_pool_min,
        max_overflow=max(settings.db_pool_max - settings.db_pool_min, 0),
        pool_timeout=timeout_ms / 1000,
    )

    if url.get_driver_name() == "asyncpg":
        server_settings = {"application_name": f"{settings.environment}-app"}
        connect_args: dict[str, Any] = {
            "ssl": _ssl_mode(settings),
            "timeout": timeout_ms / 1000,
            "server_settings": server_settings,
        }
        if managed:
            server_settings["statement_timeout"] = str(settings.db_statement_timeout_ms)
            connect_args["command_timeout"] = settings.db_statement_timeout_ms / 1000
        options["connect_args"] = connect_args
    return options


def install_pool_listeners(
    engine: AsyncEngine,
    max_uses: int,
    idle_timeout_ms: int,
    log_connects: bool = True,
) -> None:
    """Attach connect/checkout/checkin hooks enforcing use-count and idle recycling."""
    idle_timeout_s = idle_timeout_ms / 1000

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        connection_record.info["uses"] = 0
        if log_connects:
            logger.info("New client connected to the database")

    @event.listens_for(engine.sync_engine, "checkout")
    def on_checkout(dbapi_connection, connection_record, connection_proxy):
        info = connection_record.info
        idle_since = info.pop("idle_since", None)
        if idle_since is not None and time.monotonic() - idle_since > idle_timeout_s:
            raise exc.DisconnectionError("Idle connection expired")
        info["uses"] = info.get("uses", 0) + 1
        if max_uses and info["uses"] > max_uses:
            raise exc.DisconnectionError("Connection reached its use limit")

    @event.listens_for(engine.sync_engine, "checkin")
    def on_checkin(dbapi_connection, connection_record):
        connection_record.info["idle_since"] = time.monotonic()


class Database:
    """Owns the engine (and its pool); exposes query() to the handlers."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        engine = create_async_engine(
            settings.database_url, **build_engine_options(settings),
        )
        if engine.url.get_backend_name() != "sqlite":
            install_pool_listeners(
                engine,
                max_uses=settings.db_max_uses,
                idle_timeout_ms=settings.db_idle_timeout_ms,
                log_connects=settings.environment != "test",
            )
        return cls(engine)

    async def query(
        self, statement: str, params: Mapping[str, Any] | None = None,
    ) -> QueryResult:
        """Run one parameterized statement in its own transaction."""
        start = time.perf_counter()
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(text(statement), dict(params or {}))
                if result.returns_rows:
                    rows = [dict(row) for row in result.mappings()]
                    row_count = len(rows)
                else:
                    rows, row_count = [], result.rowcount
        except exc.IntegrityError as e:
            logger.error(f"DB integrity error: {e.orig}")
            raise IntegrityViolationError(str(e.orig)) from e
        except exc.SQLAlchemyError as e:
            detail = getattr(e, "orig", None) or e
            logger.error(f"Database query error: {detail}")
            raise DatabaseError(str(detail), "query") from e

        logger.debug(
            "Executed query",
            extra={
                "statement": statement,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                "rows": row_count,
            },
        )
        return QueryResult(rows, row_count)

    async def connect(self) -> None:
        """Verify connectivity on startup; raises DatabaseError if unreachable."""
        result = await self.query("SELECT CURRENT_TIMESTAMP AS now")
        logger.info("Connected to database")
        logger.info(f"Database time: {result.rows[0]['now']}")

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            await self.query("SELECT 1")
            return True
        except DatabaseError as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    """FastAPI dependency resolving the app-scoped Database."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("Database not initialized")
    return database
