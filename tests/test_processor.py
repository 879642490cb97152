"""Tests for _processor module."""

from __future__ import annotations

import threading
import time

import pytest

from honeytrace._errors import ExportFailure, ShutdownTimeout
from honeytrace._processor import BatchSpanProcessor, ProcessorState
from honeytrace._types import SpanData, SpanKind, SpanStatus


def _make_span(name: str = "test") -> SpanData:
    return SpanData(
        span_id="s1",
        trace_id="t1",
        name=name,
        kind=SpanKind.INTERNAL,
        status=SpanStatus.OK,
        start_time_ns=0,
        end_time_ns=1000,
        duration_ms=0.001,
    )


class RecordingExporter:
    """Collects batches and tracks how many exports overlap."""

    def __init__(self, *, fail_calls: int = 0, delay_s: float = 0.0) -> None:
        self.batches: list[list[SpanData]] = []
        self.shutdown_called = False
        self.max_in_flight = 0
        self._in_flight = 0
        self._fail_calls = fail_calls
        self._delay_s = delay_s
        self._lock = threading.Lock()

    def export(self, spans: list[SpanData]) -> None:
        with self._lock:
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self._delay_s:
                time.sleep(self._delay_s)
            with self._lock:
                if self._fail_calls > 0:
                    self._fail_calls -= 1
                    raise ExportFailure("collector unavailable", span_count=len(spans))
                self.batches.append(list(spans))
        finally:
            with self._lock:
                self._in_flight -= 1

    def shutdown(self) -> None:
        self.shutdown_called = True

    @property
    def exported(self) -> list[SpanData]:
        with self._lock:
            return [s for batch in self.batches for s in batch]


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_start_and_shutdown() -> None:
    proc = BatchSpanProcessor(RecordingExporter(), flush_interval_ms=50)
    proc.start()
    assert proc.is_running
    proc.shutdown()
    assert not proc.is_running
    assert proc.state is ProcessorState.DRAINED


def test_thread_is_daemon() -> None:
    proc = BatchSpanProcessor(RecordingExporter(), flush_interval_ms=50)
    proc.start()
    assert proc._thread is not None
    assert proc._thread.daemon is True
    proc.shutdown()


def test_double_start_is_idempotent() -> None:
    proc = BatchSpanProcessor(RecordingExporter(), flush_interval_ms=50)
    proc.start()
    thread1 = proc._thread
    proc.start()
    assert proc._thread is thread1
    proc.shutdown()


def test_state_transitions() -> None:
    proc = BatchSpanProcessor(RecordingExporter(), batch_size=10)
    assert proc.state is ProcessorState.IDLE
    proc.enqueue(_make_span())
    assert proc.state is ProcessorState.ACCUMULATING
    assert proc.force_flush()
    assert proc.state is ProcessorState.IDLE
    proc.shutdown()
    assert proc.state is ProcessorState.DRAINED


def test_size_threshold_exports_one_batch_in_order() -> None:
    exporter = RecordingExporter()
    proc = BatchSpanProcessor(exporter, batch_size=5, flush_interval_ms=10_000)
    proc.start()
    try:
        for i in range(5):
            assert proc.enqueue(_make_span(f"s{i}"))

        assert _wait_for(lambda: len(exporter.batches) >= 1)
        time.sleep(0.1)
        assert len(exporter.batches) == 1
        assert [s.name for s in exporter.batches[0]] == ["s0", "s1", "s2", "s3", "s4"]
    finally:
        proc.shutdown()


def test_size_threshold_beats_timer() -> None:
    exporter = RecordingExporter()
    proc = BatchSpanProcessor(exporter, batch_size=4, flush_interval_ms=10_000)
    proc.start()
    try:
        for i in range(9):
            proc.enqueue(_make_span(f"s{i}"))
        assert _wait_for(lambda: len(exporter.exported) >= 8)
        assert all(len(batch) == 4 for batch in exporter.batches)
        # Remainder below the threshold waits for the timer
        assert len(proc) == 1
    finally:
        proc.shutdown()


def test_timer_exports_partial_batch() -> None:
    exporter = RecordingExporter()
    proc = BatchSpanProcessor(exporter, batch_size=100, flush_interval_ms=50)
    proc.start()
    try:
        proc.enqueue(_make_span("a"))
        proc.enqueue(_make_span("b"))
        assert _wait_for(lambda: len(exporter.exported) == 2)
        assert [s.name for s in exporter.batches[0]] == ["a", "b"]
    finally:
        proc.shutdown()


def test_single_export_in_flight_under_concurrent_enqueue() -> None:
    exporter = RecordingExporter(delay_s=0.005)
    proc = BatchSpanProcessor(
        exporter, batch_size=10, flush_interval_ms=10, max_queue_size=10_000
    )
    proc.start()
    n_threads = 4
    n_per_thread = 200

    def producer() -> None:
        for i in range(n_per_thread):
            proc.enqueue(_make_span(f"s{i}"))

    threads = [threading.Thread(target=producer) for _ in range(n_threads)]
    for t in threads:
        t.start()
    # Concurrent force_flush calls must also queue behind the worker
    flusher = threading.Thread(target=proc.force_flush)
    flusher.start()
    for t in threads:
        t.join()
    flusher.join()
    proc.shutdown(timeout_s=10.0)

    assert exporter.max_in_flight == 1
    assert len(exporter.exported) == n_threads * n_per_thread
    assert all(len(batch) <= 10 for batch in exporter.batches)


def test_enqueue_never_blocks_on_export() -> None:
    release = threading.Event()

    class BlockingExporter(RecordingExporter):
        def export(self, spans: list[SpanData]) -> None:
            release.wait(timeout=5.0)
            super().export(spans)

    exporter = BlockingExporter()
    proc = BatchSpanProcessor(exporter, batch_size=1, flush_interval_ms=10_000)
    proc.start()
    try:
        proc.enqueue(_make_span("first"))
        assert _wait_for(lambda: proc.state is ProcessorState.EXPORTING)

        start = time.monotonic()
        for i in range(100):
            assert proc.enqueue(_make_span(f"later-{i}"))
        assert time.monotonic() - start < 0.5
    finally:
        release.set()
        proc.shutdown(timeout_s=5.0)
    assert len(exporter.exported) == 101


def test_export_failure_is_contained() -> None:
    exporter = RecordingExporter(fail_calls=1)
    proc = BatchSpanProcessor(exporter, batch_size=2, flush_interval_ms=10_000)
    proc.start()
    try:
        assert proc.enqueue(_make_span("lost-1"))
        assert proc.enqueue(_make_span("lost-2"))
        assert _wait_for(lambda: proc.dropped_span_count == 2)

        assert proc.enqueue(_make_span("kept-1"))
        assert proc.enqueue(_make_span("kept-2"))
        assert _wait_for(lambda: len(exporter.exported) == 2)
        assert [s.name for s in exporter.exported] == ["kept-1", "kept-2"]
        assert proc.is_running
    finally:
        proc.shutdown()
    assert proc.exported_count == 2


def test_unexpected_exporter_error_is_contained() -> None:
    class ExplodingExporter(RecordingExporter):
        def export(self, spans: list[SpanData]) -> None:
            raise RuntimeError("exporter exploded")

    proc = BatchSpanProcessor(ExplodingExporter(), batch_size=1, flush_interval_ms=50)
    proc.start()
    proc.enqueue(_make_span())
    assert _wait_for(lambda: proc.dropped_span_count == 1)
    assert proc.is_running
    proc.shutdown()


def test_export_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    proc = BatchSpanProcessor(RecordingExporter(fail_calls=1), batch_size=10)
    proc.enqueue(_make_span())
    with caplog.at_level("WARNING", logger="honeytrace.processor"):
        proc.force_flush()
    assert "Dropping batch of 1 spans" in caplog.text
    proc.shutdown()


def test_shutdown_drains_everything() -> None:
    exporter = RecordingExporter()
    proc = BatchSpanProcessor(exporter, batch_size=5, flush_interval_ms=10_000)
    proc.start()
    for i in range(12):
        proc.enqueue(_make_span(f"s{i}"))
    proc.shutdown(timeout_s=5.0)

    assert [s.name for s in exporter.exported] == [f"s{i}" for i in range(12)]
    assert all(len(batch) <= 5 for batch in exporter.batches)
    assert len(proc) == 0
    assert exporter.shutdown_called


def test_shutdown_without_start_still_drains() -> None:
    exporter = RecordingExporter()
    proc = BatchSpanProcessor(exporter, batch_size=5)
    for i in range(3):
        proc.enqueue(_make_span(f"s{i}"))
    proc.shutdown()
    assert len(exporter.exported) == 3


def test_enqueue_rejected_after_shutdown() -> None:
    exporter = RecordingExporter()
    proc = BatchSpanProcessor(exporter)
    proc.start()
    proc.shutdown()
    assert proc.enqueue(_make_span("late")) is False
    assert exporter.exported == []


def test_second_shutdown_is_noop() -> None:
    proc = BatchSpanProcessor(RecordingExporter())
    proc.start()
    proc.shutdown()
    proc.shutdown()
    assert proc.state is ProcessorState.DRAINED


def test_shutdown_times_out_on_wedged_exporter() -> None:
    release = threading.Event()

    class WedgedExporter(RecordingExporter):
        def export(self, spans: list[SpanData]) -> None:
            release.wait(timeout=5.0)

    proc = BatchSpanProcessor(WedgedExporter(), batch_size=1, flush_interval_ms=10_000)
    proc.start()
    try:
        proc.enqueue(_make_span("stuck"))
        assert _wait_for(lambda: proc.state is ProcessorState.EXPORTING)
        proc.enqueue(_make_span("waiting"))

        start = time.monotonic()
        with pytest.raises(ShutdownTimeout) as excinfo:
            proc.shutdown(timeout_s=0.2)
        assert time.monotonic() - start < 2.0
        assert excinfo.value.unexported == 1
        assert proc.state is ProcessorState.DRAINED
    finally:
        release.set()


def test_force_flush_exports_partial_batch() -> None:
    exporter = RecordingExporter()
    proc = BatchSpanProcessor(exporter, batch_size=100, flush_interval_ms=10_000)
    proc.enqueue(_make_span("a"))
    assert proc.force_flush(timeout_s=1.0)
    assert [s.name for s in exporter.exported] == ["a"]
    proc.shutdown()


def test_queue_overflow_counts_drops() -> None:
    proc = BatchSpanProcessor(RecordingExporter(), batch_size=100, max_queue_size=3)
    for i in range(5):
        assert proc.enqueue(_make_span(f"s{i}"))
    assert len(proc) == 3
    assert proc.dropped_span_count == 2
    proc.shutdown()


def test_invalid_batch_size() -> None:
    with pytest.raises(ValueError):
        BatchSpanProcessor(RecordingExporter(), batch_size=0)
