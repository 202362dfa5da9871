"""Body Size Limit — caps JSON and URL-encoded request bodies.

Invariants:
    - Only the limited content types are inspected; other bodies pass through
    - A declared Content-Length above the limit is rejected with 413 before reading
    - Streamed bodies are counted while read; crossing the limit raises
      PayloadTooLargeError inside the handler, which the error responder renders
"""

from typing import Iterable

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from userapi.api.error_handlers import api_error_response
from userapi.core.errors import PayloadTooLargeError

LIMITED_CONTENT_TYPES = (
    "application/json",
    "application/x-www-form-urlencoded",
)


class BodySizeLimitMiddleware:

    def __init__(
        self,
        app: ASGIApp,
        max_bytes: int = 10 * 1024,
        content_types: Iterable[str] = LIMITED_CONTENT_TYPES,
    ) -> None:
        self.app = app
        self.max_bytes = max_bytes
        self.content_types = frozenset(content_types)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        content_type = headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type not in self.content_types:
            await self.app(scope, receive, send)
            return

        declared = headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_bytes:
            response = api_error_response(
                Request(scope), PayloadTooLargeError(self.max_bytes),
            )
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise PayloadTooLargeError(self.max_bytes)
            return message

        await self.app(scope, limited_receive, send)
