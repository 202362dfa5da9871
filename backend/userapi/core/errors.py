"""Error Hierarchy — typed exceptions carrying the HTTP status of every failure mode.

Invariants:
    - Every error has a message (str), code (str), category (ErrorCategory) and http_status
    - Errors without an explicit status are 500 (internal failure)
    - to_response() produces the REST envelope {success, status, message, stack}
    - Stack traces are replaced by STACK_PLACEHOLDER in production

Design Decisions:
    - Single hierarchy with ApiError base: one global handler catches all (uniform error shape)
    - Envelope building lives here, not in the handlers, so the 404 fallback and
      the rate limiter emit the exact same shape
"""

import traceback
from enum import Enum
from typing import Any

STACK_PLACEHOLDER = "🥞"
DEFAULT_ERROR_MESSAGE = "Internal Server Error"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    RATE_LIMIT = "rate_limit"
    DATABASE = "database"
    INTERNAL = "internal"


def format_stack(exc: BaseException) -> str:
    """Render the traceback of exc (and its cause chain) as one string."""
    return "".join(
        traceback.format_exception(type(exc), exc, exc.__traceback__),
    )


def build_envelope(
    status: int,
    message: str,
    stack: str | None,
    production: bool,
    **extra: Any,
) -> dict:
    """Standard error envelope shared by every error response."""
    envelope = {
        "success": False,
        "status": status,
        "message": message or DEFAULT_ERROR_MESSAGE,
        "stack": STACK_PLACEHOLDER if production else stack,
    }
    envelope.update(extra)
    return envelope


class ApiError(Exception):
    """Base exception for all errors surfaced through the error envelope."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        category: ErrorCategory = ErrorCategory.INTERNAL,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.http_status = http_status

    def to_response(self, production: bool = False) -> dict:
        """Convert to the standardized REST error envelope."""
        return build_envelope(
            self.http_status, self.message, format_stack(self), production,
        )


# ─── Client Errors (400-level) ──────────────────────────────────

class NotFoundError(ApiError):
    """Requested resource does not exist."""
    def __init__(self, resource_type: str):
        super().__init__(
            f"{resource_type} not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND, 404,
        )
        self.resource_type = resource_type


class ConflictError(ApiError):
    """Resource already exists (duplicate unique attribute)."""
    def __init__(self, message: str):
        super().__init__(message, "CONFLICT", ErrorCategory.CONFLICT, 400)


class PayloadTooLargeError(ApiError):
    """Request body exceeds the configured parser limit."""
    def __init__(self, limit: int):
        super().__init__(
            f"Request body exceeds {limit} bytes",
            "PAYLOAD_TOO_LARGE", ErrorCategory.VALIDATION, 413,
        )
        self.limit = limit


class RateLimitExceededError(ApiError):
    """Client exceeded its request quota for the current window."""
    def __init__(self, retry_after_s: int):
        super().__init__(
            "Too many requests, please try again later.",
            "RATE_LIMITED", ErrorCategory.RATE_LIMIT, 429,
        )
        self.retry_after_s = retry_after_s


# ─── Server Errors (500-level) ──────────────────────────────────

class DatabaseError(ApiError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str = "query"):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE, 500,
        )
        self.operation = operation


class IntegrityViolationError(DatabaseError):
    """A constraint (unique, not-null, foreign key) rejected the statement."""
    def __init__(self, message: str):
        super().__init__(message, "constraint check")


class InternalError(ApiError):
    """Unexpected failure; wraps the original exception as __cause__."""
    def __init__(self, message: str = DEFAULT_ERROR_MESSAGE):
        super().__init__(message or DEFAULT_ERROR_MESSAGE)

    def to_response(self, production: bool = False) -> dict:
        cause = self.__cause__ or self
        message = DEFAULT_ERROR_MESSAGE if production else self.message
        return build_envelope(
            self.http_status, message, format_stack(cause), production,
        )
