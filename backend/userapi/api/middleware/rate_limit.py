"""Rate limiting — in-memory sliding window per client, applied under a path prefix.

Invariants:
    - At most max_requests accepted per client within any window_ms span
    - Rejected requests are not recorded (they do not extend the block)
    - Every limited response carries RateLimit-Policy/Limit/Remaining/Reset;
      rejections add Retry-After and use the standard error envelope (429)
"""

import asyncio
import math
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from userapi.api.error_handlers import api_error_response
from userapi.core.errors import RateLimitExceededError


@dataclass(frozen=True)
class RateLimitState:
    allowed: bool
    limit: int
    remaining: int
    reset_s: int
    window_s: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Policy": f"{self.limit};w={self.window_s}",
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_s),
        }


class SlidingWindowRateLimiter:
    """Sliding-window log of request timestamps per key."""

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._hits: defaultdict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._clock = clock
        self.max_requests = max_requests
        self.window_s = window_ms / 1000
        self._last_cleanup = clock()
        self._cleanup_interval = 60.0  # seconds

    def _cleanup_old_keys(self, now: float) -> None:
        """Drop keys whose whole log has expired to bound memory."""
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        expired = [
            key for key, hits in self._hits.items()
            if not hits or hits[-1] <= now - self.window_s
        ]
        for key in expired:
            del self._hits[key]

    async def hit(self, key: str) -> RateLimitState:
        async with self._lock:
            now = self._clock()
            self._cleanup_old_keys(now)
            hits = self._hits[key]
            while hits and hits[0] <= now - self.window_s:
                hits.popleft()
            allowed = len(hits) < self.max_requests
            if allowed:
                hits.append(now)
            reset = self.window_s - (now - hits[0]) if hits else self.window_s
            return RateLimitState(
                allowed=allowed,
                limit=self.max_requests,
                remaining=max(self.max_requests - len(hits), 0),
                reset_s=max(math.ceil(reset), 0),
                window_s=math.ceil(self.window_s),
            )

    async def reset(self) -> None:
        async with self._lock:
            self._hits.clear()


class RateLimitMiddleware:
    """Applies a SlidingWindowRateLimiter to requests under path_prefix."""

    def __init__(
        self,
        app: ASGIApp,
        limiter: SlidingWindowRateLimiter,
        path_prefix: str = "/api",
    ) -> None:
        self.app = app
        self.limiter = limiter
        self.path_prefix = path_prefix.rstrip("/")

    def _applies_to(self, path: str) -> bool:
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self._applies_to(scope["path"]):
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        key = request.client.host if request.client else "anonymous"
        state = await self.limiter.hit(key)
        rate_headers = state.headers()

        if not state.allowed:
            response = api_error_response(
                request, RateLimitExceededError(state.reset_s),
            )
            response.headers.update(rate_headers)
            await response(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in rate_headers.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_headers)
