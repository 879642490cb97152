"""Batch processor: buffers finished spans and exports them off the hot path."""

from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Protocol

from honeytrace._buffer import SpanBuffer
from honeytrace._errors import ExportFailure, ShutdownTimeout
from honeytrace._types import SpanData

logger = logging.getLogger("honeytrace.processor")


class SpanExporter(Protocol):
    def export(self, spans: list[SpanData]) -> None: ...

    def shutdown(self) -> None: ...


class ProcessorState(enum.Enum):
    """Lifecycle of a BatchSpanProcessor."""

    IDLE = "idle"
    ACCUMULATING = "accumulating"
    EXPORTING = "exporting"
    SHUTTING_DOWN = "shutting_down"
    DRAINED = "drained"


_TERMINAL = frozenset({ProcessorState.SHUTTING_DOWN, ProcessorState.DRAINED})


class BatchSpanProcessor:
    """Daemon thread that exports spans when a batch fills or the timer fires.

    ``enqueue`` only appends to the buffer. A single worker thread takes
    batches of up to ``batch_size`` spans and hands them to the exporter.
    Exports are serialised by ``_export_lock``, so at most one is in flight.
    A failed batch is logged and dropped.
    """

    def __init__(
        self,
        exporter: SpanExporter,
        *,
        batch_size: int = 512,
        flush_interval_ms: int = 5000,
        max_queue_size: int = 2048,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._exporter = exporter
        self._buffer = SpanBuffer(max_queue_size)
        self._batch_size = batch_size
        self._flush_interval_s = flush_interval_ms / 1000.0

        self._state = ProcessorState.IDLE
        self._state_lock = threading.Lock()
        self._export_lock = threading.Lock()
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._accepting = True

        self._exported_count = 0
        self._failed_count = 0

    def start(self) -> None:
        """Start the background export loop."""
        if self._thread is not None or not self._accepting:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="honeytrace-export", daemon=True
        )
        self._thread.start()

    def enqueue(self, span: SpanData) -> bool:
        """Hand a sealed span to the processor. Never blocks on export I/O.

        Returns ``False`` if the span was rejected because shutdown has begun.
        """
        if not self._accepting:
            logger.debug("Rejected span %r: processor is shut down", span.name)
            return False
        size = self._buffer.enqueue(span)
        if self._state is ProcessorState.IDLE:
            self._set_state(ProcessorState.ACCUMULATING)
        if size >= self._batch_size:
            self._wake.set()
        return True

    def force_flush(self, timeout_s: float | None = None) -> bool:
        """Export everything buffered now. Returns ``True`` if the buffer emptied."""
        deadline = None if timeout_s is None else time.monotonic() + timeout_s
        return self._drain_until(deadline)

    def shutdown(self, timeout_s: float = 5.0) -> None:
        """Stop accepting spans, drain the buffer and close the exporter.

        Raises:
            ShutdownTimeout: if spans were still buffered or an export was
                still in flight when the deadline passed.
        """
        with self._state_lock:
            if self._state in _TERMINAL:
                return
            self._accepting = False
            self._state = ProcessorState.SHUTTING_DOWN

        deadline = time.monotonic() + timeout_s
        self._stop_event.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout=max(0.0, deadline - time.monotonic()))
            self._thread = None

        self._drain_until(deadline)
        unexported = len(self._buffer)
        in_flight = self._export_lock.locked()

        try:
            self._exporter.shutdown()
        except Exception:  # noqa: BLE001
            logger.exception("Error closing exporter")

        with self._state_lock:
            self._state = ProcessorState.DRAINED

        if unexported or in_flight:
            raise ShutdownTimeout(
                f"drain did not finish within {timeout_s:.1f}s; "
                f"{unexported} spans unexported",
                unexported=unexported,
            )
        logger.debug("Processor drained; %d spans exported", self._exported_count)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            woken = self._wake.wait(timeout=self._flush_interval_s)
            self._wake.clear()
            if self._stop_event.is_set():
                break
            # A size wake-up only ships full batches; the timer ships partial ones
            if not woken or len(self._buffer) >= self._batch_size:
                self._export_one()
            while (
                len(self._buffer) >= self._batch_size
                and not self._stop_event.is_set()
            ):
                self._export_one()

    def _drain_until(self, deadline: float | None) -> bool:
        while len(self._buffer):
            if deadline is not None and time.monotonic() >= deadline:
                return False
            if not self._export_one(deadline):
                return False
        return True

    def _export_one(self, deadline: float | None = None) -> bool:
        """Take one batch and export it. ``False`` if the export lock timed out."""
        timeout = -1.0 if deadline is None else max(0.0, deadline - time.monotonic())
        if not self._export_lock.acquire(timeout=timeout):
            return False
        try:
            batch = self._buffer.drain(self._batch_size)
            if batch:
                self._export(batch)
        finally:
            self._export_lock.release()
        return True

    def _export(self, batch: list[SpanData]) -> None:
        self._set_state(ProcessorState.EXPORTING)
        try:
            self._exporter.export(batch)
            self._exported_count += len(batch)
        except ExportFailure as exc:
            self._failed_count += len(batch)
            logger.warning("Dropping batch of %d spans: %s", len(batch), exc)
        except Exception:  # noqa: BLE001
            self._failed_count += len(batch)
            logger.exception("Unexpected error exporting %d spans; batch dropped", len(batch))
        finally:
            self._set_state(
                ProcessorState.ACCUMULATING if len(self._buffer) else ProcessorState.IDLE
            )

    def _set_state(self, state: ProcessorState) -> None:
        with self._state_lock:
            if self._state not in _TERMINAL:
                self._state = state

    @property
    def state(self) -> ProcessorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def exported_count(self) -> int:
        """Spans successfully exported."""
        return self._exported_count

    @property
    def dropped_span_count(self) -> int:
        """Spans lost to failed exports or queue overflow."""
        return self._failed_count + self._buffer.drop_count

    def __len__(self) -> int:
        return len(self._buffer)
