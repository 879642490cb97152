"""Starlette middleware that wraps every request in a SERVER span."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from honeytrace._types import SpanKind, SpanStatus

if TYPE_CHECKING:
    from honeytrace._bridge import TracerHandle

logger = logging.getLogger("honeytrace.middleware")


class TracingMiddleware(BaseHTTPMiddleware):
    """Record method, path, status and latency for each request.

    The tracer handle is passed in explicitly rather than looked up globally::

        app.add_middleware(TracingMiddleware, handle=handle)
    """

    def __init__(self, app: ASGIApp, *, handle: TracerHandle) -> None:
        super().__init__(app)
        self._handle = handle

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        method = request.method
        path = request.url.path
        attributes = {
            "http.request.method": method,
            "url.path": path,
            "url.scheme": request.url.scheme,
        }
        if request.url.hostname:
            attributes["server.address"] = request.url.hostname
        user_agent = request.headers.get("user-agent")
        if user_agent:
            attributes["user_agent.original"] = user_agent

        start = time.perf_counter()
        with self._handle.span(f"{method} {path}", kind=SpanKind.SERVER, attributes=attributes) as span:
            try:
                response = await call_next(request)
            finally:
                span.set_attribute("http.server.latency_ms", (time.perf_counter() - start) * 1000)
            span.set_attribute("http.response.status_code", response.status_code)
            if response.status_code >= 500:
                span.set_status(SpanStatus.ERROR, f"HTTP {response.status_code}")
            return response
