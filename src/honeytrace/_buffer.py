"""Bounded span buffer shared by producers and the export worker."""

from __future__ import annotations

import threading
from collections import deque

from honeytrace._types import SpanData


class SpanBuffer:
    """Lock-guarded FIFO backed by collections.deque.

    The lock covers a single append or take and is never held across export
    I/O. When full, the oldest span is dropped.
    """

    def __init__(self, maxsize: int) -> None:
        self._buffer: deque[SpanData] = deque(maxlen=maxsize)
        self._lock = threading.Lock()
        self._drop_count: int = 0
        self._maxsize = maxsize

    def enqueue(self, span: SpanData) -> int:
        """Append a span and return the buffer length after the append."""
        with self._lock:
            if len(self._buffer) == self._maxsize:
                self._drop_count += 1
            self._buffer.append(span)
            return len(self._buffer)

    def drain(self, max_items: int) -> list[SpanData]:
        """Remove and return up to max_items spans in enqueue order."""
        with self._lock:
            count = min(max_items, len(self._buffer))
            return [self._buffer.popleft() for _ in range(count)]

    @property
    def drop_count(self) -> int:
        """Number of spans dropped due to buffer overflow."""
        return self._drop_count

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)
