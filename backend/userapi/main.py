"""User API — FastAPI application factory and entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Pipeline order, outermost first: security headers → CORS → request logging →
      body size limit → gzip → rate limiting (/api only) → routes
    - Unmatched paths and every raised error produce the standard error envelope
    - The Database is created in the lifespan unless one was injected

Design Decisions:
    - create_app() factory: settings and database are passed in, not read from
      globals, so tests build isolated apps
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Client build mounted AFTER API routes so /api/* takes precedence
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from userapi.api.error_handlers import register_error_handlers
from userapi.api.middleware.body_limit import BodySizeLimitMiddleware
from userapi.api.middleware.rate_limit import RateLimitMiddleware, SlidingWindowRateLimiter
from userapi.api.middleware.request_logging import RequestLoggingMiddleware
from userapi.api.middleware.security import SecurityHeadersMiddleware
from userapi.api.routes import health, users
from userapi.api.static import ClientStaticFiles
from userapi.config import Settings, get_settings
from userapi.core.errors import DatabaseError
from userapi.infrastructure.database import Database
from userapi.infrastructure.observability import setup_logging
from userapi.infrastructure.process_guard import install_loop_guard

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"
API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_format, settings.log_dir)
    install_loop_guard(asyncio.get_running_loop())

    owns_database = app.state.database is None
    if owns_database:
        database = Database.from_settings(settings)
        try:
            await database.connect()
        except DatabaseError as e:
            logger.critical(f"Database connection error: {e.message}")
            await database.dispose()
            raise
        app.state.database = database

    logger.info(
        f"Server running in {settings.environment} mode on port {settings.port}",
    )
    if settings.is_production:
        logger.info("Production mode: security and performance optimizations are enabled")
    yield
    logger.info("Server shutting down")
    if owns_database:
        await app.state.database.dispose()
        app.state.database = None


def _install_pipeline(app: FastAPI, settings: Settings) -> None:
    # add_middleware wraps the current stack: the last one added runs first
    app.add_middleware(
        RateLimitMiddleware, limiter=app.state.rate_limiter, path_prefix=API_PREFIX,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.body_limit_bytes)
    app.add_middleware(
        RequestLoggingMiddleware,
        combined=settings.is_production, skip_path=HEALTH_PATH,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        allow_credentials=True,
    )
    app.add_middleware(SecurityHeadersMiddleware, connect_src=[settings.client_url])


def create_app(
    settings: Settings | None = None, database: Database | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="User API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.rate_limiter = SlidingWindowRateLimiter(
        settings.rate_limit_max, settings.rate_limit_window_ms,
    )

    _install_pipeline(app, settings)
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)

    if settings.is_production and os.path.isdir(settings.client_dist_dir):
        app.mount(
            "/", ClientStaticFiles(settings.client_dist_dir), name="client",
        )
    return app


app = create_app()
