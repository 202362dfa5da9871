"""Error Handlers — centralized responder turning every failure into the error envelope.

Invariants:
    - ApiError → envelope with the error's own status
    - RequestValidationError → 400 envelope with field-level details
    - HTTPException → envelope with its status; unmatched paths and methods are
      404 "Cannot <METHOD> <path?query>"
    - Exception (catch-all) → 500 envelope, never crashes the responder
    - Every error is logged; stack traces only leave the process outside production

Design Decisions:
    - Four-layer handler: domain (ApiError), validation (Pydantic), HTTP (routing), catch-all
    - Extracted from main.py to keep the app factory readable
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from userapi.core.errors import (
    ApiError, InternalError, RateLimitExceededError, build_envelope, format_stack,
)

logger = logging.getLogger(__name__)


def _is_production(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.is_production)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_api_error_handler(app)
    _register_validation_error_handler(app)
    _register_http_error_handler(app)
    _register_generic_error_handler(app)


def api_error_response(request: Request, exc: ApiError) -> JSONResponse:
    """Log exc and render it; shared with middleware that short-circuits."""
    extra = {
        "error_code": exc.code, "path": request.url.path,
        "status": exc.http_status,
    }
    if exc.http_status >= 500:
        cause = exc.__cause__ or exc
        logger.error(
            f"{type(exc).__name__}: {exc.message}", extra=extra,
            exc_info=(type(cause), cause, cause.__traceback__),
        )
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}", extra=extra)
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after_s)}
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_response(_is_production(request)),
        headers=headers,
    )


def _register_api_error_handler(app: FastAPI) -> None:

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        """Handle all domain/infrastructure errors."""
        return api_error_response(request, exc)


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError,
    ):
        """Handle Pydantic validation errors."""
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=build_envelope(
                status.HTTP_400_BAD_REQUEST,
                "Invalid request data",
                format_stack(exc),
                _is_production(request),
                details=[
                    {
                        "field": ".".join(str(loc) for loc in e["loc"]),
                        "message": e["msg"],
                        "type": e["type"],
                    }
                    for e in exc.errors()
                ],
            ),
        )


def _original_url(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def _register_http_error_handler(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        """Unmatched routes and methods, and explicit HTTPExceptions."""
        status_code, headers = exc.status_code, exc.headers
        if status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            status_code, headers = status.HTTP_404_NOT_FOUND, None
            message = f"Cannot {request.method} {_original_url(request)}"
        else:
            message = str(exc.detail)
        logger.warning(message, extra={"path": request.url.path, "status": status_code})
        return JSONResponse(
            status_code=status_code,
            content=build_envelope(
                status_code, message, format_stack(exc),
                _is_production(request),
            ),
            headers=headers,
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all for failures raised outside the routes (e.g. in middleware)."""
        wrapped = InternalError(str(exc))
        wrapped.__cause__ = exc
        return api_error_response(request, wrapped)
