"""Process-wide tracer registration and span fan-out to observer layers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from honeytrace._errors import ConfigError, ShutdownTimeout
from honeytrace._span import Span
from honeytrace._types import AttributeValue, SpanData, SpanKind

if TYPE_CHECKING:
    from honeytrace._processor import BatchSpanProcessor

logger = logging.getLogger("honeytrace.bridge")

_installed: TracerHandle | None = None
_install_lock = threading.Lock()


class SpanLayer:
    """Observer of span events. Override either hook."""

    def on_start(self, span: Span) -> None:
        """Called when a span is entered."""

    def on_end(self, span_data: SpanData) -> None:
        """Called with the sealed snapshot when a span ends."""


class ConsoleLayer(SpanLayer):
    """Human-readable span lines through the ``honeytrace.spans`` logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._logger = logging.getLogger("honeytrace.spans")
        self._level = level

    def on_start(self, span: Span) -> None:
        self._logger.debug("-> %s [trace=%s span=%s]", span.name, span.trace_id, span.span_id)

    def on_end(self, span_data: SpanData) -> None:
        if not self._logger.isEnabledFor(self._level):
            return
        attrs = " ".join(f"{k}={v}" for k, v in span_data.attributes.items())
        self._logger.log(
            self._level,
            "%s %s %.2fms %s",
            span_data.name,
            span_data.status.value,
            span_data.duration_ms,
            attrs,
        )


class TracerHandle:
    """The installed pipeline. Passed explicitly into the HTTP middleware."""

    def __init__(
        self,
        processor: BatchSpanProcessor,
        *,
        layers: Iterable[SpanLayer] = (),
        shutdown_timeout_s: float = 5.0,
    ) -> None:
        self._processor = processor
        self._layers: tuple[SpanLayer, ...] = tuple(layers)
        self.shutdown_timeout_s = shutdown_timeout_s
        self._closed = False
        self._shutdown_lock = threading.Lock()
        self._shutdown_result: bool | None = None

    def span(
        self,
        name: str,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> Span:
        """Create a span context manager recorded by this pipeline."""
        return Span(name, recorder=self, kind=kind, attributes=attributes)

    def on_span_start(self, span: Span) -> None:
        for layer in self._layers:
            try:
                layer.on_start(span)
            except Exception:  # noqa: BLE001
                logger.exception("Layer %r failed on span start", layer)

    def record(self, span_data: SpanData) -> bool:
        """Fan a sealed span out to the layers, then to the batch processor.

        Returns ``False`` if the pipeline has been shut down.
        """
        if self._closed:
            logger.debug("Rejected span %r: tracer is shut down", span_data.name)
            return False
        for layer in self._layers:
            try:
                layer.on_end(span_data)
            except Exception:  # noqa: BLE001
                logger.exception("Layer %r failed on span end", layer)
        return self._processor.enqueue(span_data)

    def close(self, timeout_s: float | None = None) -> bool:
        """Stop accepting spans and drain the batch processor.

        Only the first call does any work; later calls return its result.
        A timeout is logged, not raised.
        """
        with self._shutdown_lock:
            if self._shutdown_result is not None:
                logger.debug("Tracer already shut down")
                return self._shutdown_result

            self._closed = True
            timeout = self.shutdown_timeout_s if timeout_s is None else timeout_s
            try:
                self._processor.shutdown(timeout)
            except ShutdownTimeout as exc:
                logger.warning("Tracer shutdown timed out: %s", exc)
                self._shutdown_result = False
            else:
                logger.info(
                    "Tracer shut down; %d spans exported, %d dropped",
                    self._processor.exported_count,
                    self._processor.dropped_span_count,
                )
                self._shutdown_result = True
            return self._shutdown_result

    @property
    def processor(self) -> BatchSpanProcessor:
        return self._processor

    @property
    def layers(self) -> tuple[SpanLayer, ...]:
        return self._layers

    @property
    def is_shut_down(self) -> bool:
        return self._closed


class _NoopRecorder:
    """Fallback used when no tracer is installed. Spans are silently discarded."""

    def on_span_start(self, span: Span) -> None:
        pass

    def record(self, span_data: SpanData) -> bool:
        return False


_noop = _NoopRecorder()


def install(
    processor: BatchSpanProcessor,
    *,
    layers: Iterable[SpanLayer] = (),
    shutdown_timeout_s: float = 5.0,
) -> TracerHandle:
    """Register the process-wide tracer.

    Raises:
        ConfigError: if a tracer is already installed.
    """
    global _installed  # noqa: PLW0603

    with _install_lock:
        if _installed is not None:
            raise ConfigError("a tracer is already installed for this process")
        handle = TracerHandle(
            processor, layers=layers, shutdown_timeout_s=shutdown_timeout_s
        )
        _installed = handle
    logger.debug("Tracer installed with %d layer(s)", len(handle.layers))
    return handle


def get_handle() -> TracerHandle | None:
    """Return the installed tracer handle, or None."""
    return _installed


def _get_recorder() -> TracerHandle | _NoopRecorder:
    if _installed is not None:
        return _installed
    return _noop


def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Mapping[str, AttributeValue] | None = None,
) -> Span:
    """Create a span on the installed tracer, or a discarded one if none is.

    Usage::

        with honeytrace.span("load-user") as s:
            s.set_attribute("user.id", 42)
    """
    return Span(name, recorder=_get_recorder(), kind=kind, attributes=attributes)
