"""Error-Forwarding Route — guarantees every handler failure reaches the error responder.

Invariants:
    - ApiError, HTTP exceptions and request validation errors pass through unchanged
    - Any other exception is re-raised as InternalError (500) chained to the original
    - Failures are raised inside the middleware stack, so error responses carry
      security, CORS and rate-limit headers like any other response

Design Decisions:
    - Custom APIRoute over a per-handler decorator: set once on the router,
      impossible to forget on a new endpoint
"""

from typing import Any, Callable, Coroutine

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from userapi.core.errors import ApiError, InternalError

_FORWARDED_AS_IS = (ApiError, StarletteHTTPException, RequestValidationError)


class ErrorForwardingRoute(APIRoute):
    """APIRoute whose handler converts unexpected exceptions into InternalError."""

    def get_route_handler(
        self,
    ) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()

        async def forwarding_handler(request: Request) -> Response:
            try:
                return await handler(request)
            except _FORWARDED_AS_IS:
                raise
            except Exception as exc:
                raise InternalError(str(exc)) from exc

        return forwarding_handler
