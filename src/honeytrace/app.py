"""The HTTP surface and the ordered serve/shutdown sequence."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from uvicorn.server import HANDLED_SIGNALS

from honeytrace._shutdown import shutdown
from honeytrace.middleware import TracingMiddleware

if TYPE_CHECKING:
    from honeytrace._bridge import TracerHandle

logger = logging.getLogger("honeytrace.app")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


def create_app(handle: TracerHandle) -> FastAPI:
    """Build the FastAPI app with request tracing attached."""
    app = FastAPI(title="honeytrace")
    app.add_middleware(TracingMiddleware, handle=handle)

    @app.get("/hello", response_class=PlainTextResponse)
    async def hello() -> str:
        return "Hello world!"

    return app


class _Server(uvicorn.Server):
    """uvicorn server that returns normally after a signal-initiated stop.

    Stock uvicorn re-raises the captured SIGINT/SIGTERM once ``serve()``
    finishes, which kills the process before the span pipeline is flushed.
    """

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        original_handlers = {
            sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS
        }
        try:
            yield
        finally:
            for sig, handler in original_handlers.items():
                signal.signal(sig, handler)
        for captured in self._captured_signals:
            logger.info("Stopped by %s", signal.Signals(captured).name)


def serve(
    handle: TracerHandle,
    *,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> bool:
    """Serve until interrupted, then flush the tracing pipeline.

    uvicorn stops accepting connections and waits for in-flight requests
    before ``serve()`` returns, so every request span is recorded before the
    processor is drained. Returns the result of ``honeytrace.shutdown``.
    """
    config = uvicorn.Config(
        create_app(handle),
        host=host,
        port=port,
        log_config=None,
        timeout_graceful_shutdown=max(1, int(handle.shutdown_timeout_s)),
    )
    server = _Server(config)
    try:
        asyncio.run(server.serve())
    finally:
        logger.info("HTTP server stopped; flushing spans")
        drained = shutdown(handle)
    return drained
