"""Error taxonomy for the tracing pipeline."""

from __future__ import annotations


class HoneytraceError(Exception):
    """Base class for all honeytrace errors."""


class ConfigError(HoneytraceError):
    """Missing or malformed startup configuration, or a second tracer install.

    Fatal: the process must not start serving traffic.
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class TransportError(HoneytraceError):
    """The exporter could not be constructed (bad metadata, TLS setup)."""


class ExportFailure(HoneytraceError):
    """A batch export failed at runtime. Contained by the batch processor."""

    def __init__(
        self,
        message: str,
        *,
        span_count: int = 0,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.span_count = span_count
        self.code = code


class ShutdownTimeout(HoneytraceError):
    """The pipeline did not drain before the shutdown deadline."""

    def __init__(self, message: str, *, unexported: int = 0) -> None:
        super().__init__(message)
        self.unexported = unexported
