"""Request Logging — one access-log line per request, health checks excluded.

Invariants:
    - Requests under skip_path are never logged
    - The line is emitted after the response completes (status and size known)
    - combined=True emits Apache combined format, otherwise a short dev format
"""

import logging
import time
from datetime import datetime, timezone

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("userapi.access")


class RequestLoggingMiddleware:

    def __init__(
        self, app: ASGIApp, combined: bool = False, skip_path: str = "/health",
    ) -> None:
        self.app = app
        self.combined = combined
        self.skip_path = skip_path.rstrip("/")

    def _skipped(self, path: str) -> bool:
        return path == self.skip_path or path.startswith(self.skip_path + "/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self._skipped(scope["path"]):
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        response: dict = {"status": 500, "length": "-"}

        async def capture(message: Message) -> None:
            if message["type"] == "http.response.start":
                response["status"] = message["status"]
                response["length"] = Headers(scope=message).get("content-length", "-")
            await send(message)

        try:
            await self.app(scope, receive, capture)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self._log(scope, response["status"], response["length"], duration_ms)

    def _log(
        self, scope: Scope, status: int, length: str, duration_ms: float,
    ) -> None:
        method = scope["method"]
        target = scope["path"]
        if scope.get("query_string"):
            target += "?" + scope["query_string"].decode("latin-1")
        client = scope["client"][0] if scope.get("client") else "-"
        extra = {
            "method": method, "path": scope["path"], "status": status,
            "client": client, "duration_ms": round(duration_ms, 3),
        }
        if not self.combined:
            logger.info(
                f"{method} {target} {status} {duration_ms:.3f} ms - {length}",
                extra=extra,
            )
            return
        headers = Headers(scope=scope)
        timestamp = datetime.now(timezone.utc).strftime("%d/%b/%Y:%H:%M:%S +0000")
        version = scope.get("http_version", "1.1")
        logger.info(
            f'{client} - - [{timestamp}] "{method} {target} HTTP/{version}" '
            f'{status} {length} "{headers.get("referer", "-")}" '
            f'"{headers.get("user-agent", "-")}"',
            extra=extra,
        )
