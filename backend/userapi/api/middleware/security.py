"""Security Headers — sets hardening headers on every HTTP response.

Invariants:
    - Headers are attached at http.response.start, so error responses get them too
    - Headers already set by an inner layer are left untouched
    - No Cross-Origin-Embedder-Policy (the client embeds third-party resources)
"""

from typing import Sequence

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


def build_content_security_policy(connect_src: Sequence[str] = ()) -> str:
    directives = {
        "default-src": ["'self'"],
        "base-uri": ["'self'"],
        "font-src": ["'self'", "https:", "data:"],
        "form-action": ["'self'"],
        "frame-ancestors": ["'self'"],
        "img-src": ["'self'", "data:", "https:"],
        "object-src": ["'none'"],
        "script-src": ["'self'", "'unsafe-inline'"],
        "script-src-attr": ["'none'"],
        "style-src": ["'self'", "'unsafe-inline'"],
        "connect-src": ["'self'", *[src for src in connect_src if src]],
    }
    policy = [f"{name} {' '.join(values)}" for name, values in directives.items()]
    policy.append("upgrade-insecure-requests")
    return ";".join(policy)


def build_security_headers(connect_src: Sequence[str] = ()) -> dict[str, str]:
    return {
        "Content-Security-Policy": build_content_security_policy(connect_src),
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": "same-origin",
        "Origin-Agent-Cluster": "?1",
        "Referrer-Policy": "no-referrer",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "X-Content-Type-Options": "nosniff",
        "X-DNS-Prefetch-Control": "off",
        "X-Download-Options": "noopen",
        "X-Frame-Options": "SAMEORIGIN",
        "X-Permitted-Cross-Domain-Policies": "none",
        "X-XSS-Protection": "0",
    }


class SecurityHeadersMiddleware:
    """Outermost pipeline stage."""

    def __init__(self, app: ASGIApp, connect_src: Sequence[str] = ()) -> None:
        self.app = app
        self.headers = build_security_headers(connect_src)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    headers.setdefault(name, value)
            await send(message)

        await self.app(scope, receive, send_with_headers)
