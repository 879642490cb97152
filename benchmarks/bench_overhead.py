#!/usr/bin/env python3
"""Request-path overhead benchmark.

Measures the cost a request handler pays for tracing:
  1. span buffer enqueue (lock + deque append)
  2. processor enqueue (rejection check + buffer + wake signal)
  3. full span lifecycle through the tracer handle (enter, attributes, exit)

No network I/O is involved: the exporter discards batches.

Usage:
    python benchmarks/bench_overhead.py
"""

from __future__ import annotations

import time

from honeytrace._buffer import SpanBuffer
from honeytrace._bridge import TracerHandle
from honeytrace._processor import BatchSpanProcessor
from honeytrace._types import SpanData, SpanKind, SpanStatus


class _DiscardExporter:
    def export(self, spans: list[SpanData]) -> None:
        pass

    def shutdown(self) -> None:
        pass


def _span_data() -> SpanData:
    return SpanData(
        span_id="abcdef0123456789",
        trace_id="0123456789abcdef0123456789abcdef",
        name="bench",
        kind=SpanKind.SERVER,
        status=SpanStatus.OK,
        start_time_ns=1000,
        end_time_ns=2000,
        duration_ms=0.001,
    )


def bench_buffer_enqueue(iterations: int = 500_000) -> float:
    """Benchmark: span buffer enqueue cost only."""
    buf = SpanBuffer(maxsize=iterations + 1000)
    sd = _span_data()

    # Warmup
    for _ in range(5000):
        buf.enqueue(sd)
    buf.drain(len(buf))

    start = time.perf_counter_ns()
    for _ in range(iterations):
        buf.enqueue(sd)
    elapsed = time.perf_counter_ns() - start

    return elapsed / iterations


def bench_processor_enqueue(iterations: int = 500_000) -> float:
    """Benchmark: processor enqueue with the export worker running."""
    proc = BatchSpanProcessor(
        _DiscardExporter(),
        batch_size=512,
        flush_interval_ms=100,
        max_queue_size=iterations + 1000,
    )
    proc.start()
    sd = _span_data()
    try:
        for _ in range(5000):
            proc.enqueue(sd)

        start = time.perf_counter_ns()
        for _ in range(iterations):
            proc.enqueue(sd)
        elapsed = time.perf_counter_ns() - start
    finally:
        proc.shutdown(timeout_s=10.0)

    return elapsed / iterations


def bench_span_lifecycle(iterations: int = 200_000) -> float:
    """Benchmark: handle.span enter -> two attributes -> exit -> enqueue."""
    proc = BatchSpanProcessor(
        _DiscardExporter(),
        batch_size=512,
        flush_interval_ms=100,
        max_queue_size=iterations + 1000,
    )
    proc.start()
    handle = TracerHandle(proc)
    try:
        for _ in range(1000):
            with handle.span("bench", kind=SpanKind.SERVER) as s:
                s.set_attribute("http.request.method", "GET")

        start = time.perf_counter_ns()
        for _ in range(iterations):
            with handle.span("bench", kind=SpanKind.SERVER) as s:
                s.set_attribute("http.request.method", "GET")
                s.set_attribute("http.response.status_code", 200)
        elapsed = time.perf_counter_ns() - start
    finally:
        proc.shutdown(timeout_s=10.0)

    return elapsed / iterations


def main() -> None:
    print("=" * 60)
    print("honeytrace Request-Path Overhead Benchmark")
    print("=" * 60)

    results: list[tuple[str, float, str]] = []

    ns = bench_buffer_enqueue()
    status = "PASS" if ns < 300 else "WARN" if ns < 1000 else "FAIL"
    results.append(("Span buffer enqueue", ns, f"{status} (target < 300ns)"))

    ns = bench_processor_enqueue()
    status = "PASS" if ns < 1000 else "WARN" if ns < 3000 else "FAIL"
    results.append(("Processor enqueue", ns, f"{status} (target < 1μs)"))

    ns = bench_span_lifecycle()
    status = "PASS" if ns < 10000 else "WARN" if ns < 20000 else "FAIL"
    results.append(("Span lifecycle via handle", ns, f"{status} (target < 10μs)"))

    print()
    for name, ns_val, note in results:
        if ns_val >= 1000:
            display = f"{ns_val / 1000:.2f}μs"
        else:
            display = f"{ns_val:.0f}ns"
        print(f"  {name:40s}  {display:>10s}   {note}")

    print()
    all_pass = all("PASS" in r[2] or "WARN" in r[2] for r in results)
    if all_pass:
        print("All benchmarks within acceptable range.")
    else:
        print("WARNING: Some benchmarks exceeded target. Review above.")


if __name__ == "__main__":
    main()
