"""honeytrace: OTLP/gRPC tracing shim for a small HTTP service."""

from __future__ import annotations

from honeytrace._bridge import (
    ConsoleLayer,
    SpanLayer,
    TracerHandle,
    get_handle,
    install,
    span,
)
from honeytrace._config import (
    Credential,
    Endpoint,
    HoneytraceConfig,
    load_env_file,
    resolve,
)
from honeytrace._errors import (
    ConfigError,
    ExportFailure,
    HoneytraceError,
    ShutdownTimeout,
    TransportError,
)
from honeytrace._exporter import OTLPExporter, build_exporter
from honeytrace._processor import BatchSpanProcessor, ProcessorState
from honeytrace._sdk import init
from honeytrace._shutdown import shutdown
from honeytrace._span import Span
from honeytrace._trace import trace
from honeytrace._types import Resource, SpanData, SpanKind, SpanStatus
from honeytrace._version import __version__

__all__ = [
    "BatchSpanProcessor",
    "ConfigError",
    "ConsoleLayer",
    "Credential",
    "Endpoint",
    "ExportFailure",
    "HoneytraceConfig",
    "HoneytraceError",
    "OTLPExporter",
    "ProcessorState",
    "Resource",
    "ShutdownTimeout",
    "Span",
    "SpanData",
    "SpanKind",
    "SpanLayer",
    "SpanStatus",
    "TracerHandle",
    "TransportError",
    "__version__",
    "build_exporter",
    "get_handle",
    "init",
    "install",
    "load_env_file",
    "resolve",
    "shutdown",
    "span",
    "trace",
]
