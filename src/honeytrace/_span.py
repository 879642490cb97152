"""Span class: the core unit of tracing."""

from __future__ import annotations

import time
import uuid
from contextvars import Token
from types import TracebackType
from typing import TYPE_CHECKING, Protocol

from honeytrace._context import get_current_span, reset_current_span, set_current_span
from honeytrace._types import AttributeValue, SpanData, SpanKind, SpanStatus

if TYPE_CHECKING:
    from collections.abc import Mapping


class SpanRecorder(Protocol):
    """Receives span lifecycle events. Implemented by TracerHandle."""

    def on_span_start(self, span: Span) -> None: ...

    def record(self, span_data: SpanData) -> bool: ...


class Span:
    """A mutable span that is sealed into an immutable SpanData on exit.

    Used as a context manager::

        with handle.span("my-operation") as s:
            s.set_attribute("key", "value")

    A span with no recorder is timed and nested normally but discarded.
    """

    def __init__(
        self,
        name: str,
        *,
        recorder: SpanRecorder | None,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> None:
        self.name = name
        self.kind = kind
        self._recorder = recorder

        self.span_id: str = uuid.uuid4().hex[:16]
        self._status: SpanStatus = SpanStatus.UNSET
        self._error_message: str | None = None
        self._attributes: dict[str, AttributeValue] = dict(attributes or {})
        self._sealed = False

        # Parent/trace resolution
        parent = get_current_span()
        if parent is not None:
            self.trace_id: str = parent.trace_id
            self.parent_span_id: str | None = parent.span_id
        else:
            self.trace_id = uuid.uuid4().hex
            self.parent_span_id = None

        self._start_time_ns: int = 0
        self._end_time_ns: int = 0
        self._token: Token[Span | None] | None = None

    def __enter__(self) -> Span:
        self._start_time_ns = time.time_ns()
        self._token = set_current_span(self)
        if self._recorder is not None:
            self._recorder.on_span_start(self)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._end_time_ns = time.time_ns()

        if exc_type is not None:
            self._status = SpanStatus.ERROR
            self._error_message = str(exc_val) if exc_val else exc_type.__name__
        elif self._status == SpanStatus.UNSET:
            self._status = SpanStatus.OK

        # Restore parent context
        if self._token is not None:
            reset_current_span(self._token)
            self._token = None

        self._sealed = True
        if self._recorder is not None:
            self._recorder.record(self._to_span_data())
            self._recorder = None

    def set_attribute(self, key: str, value: AttributeValue) -> None:
        """Attach a key-value attribute. Ignored once the span has ended."""
        if self._sealed:
            return
        self._attributes[key] = value

    def set_status(self, status: SpanStatus, message: str | None = None) -> None:
        """Explicitly set span status."""
        if self._sealed:
            return
        self._status = status
        self._error_message = message

    @property
    def attributes(self) -> dict[str, AttributeValue]:
        return dict(self._attributes)

    @property
    def is_ended(self) -> bool:
        return self._sealed

    def _to_span_data(self) -> SpanData:
        duration_ms = (self._end_time_ns - self._start_time_ns) / 1_000_000
        return SpanData(
            span_id=self.span_id,
            trace_id=self.trace_id,
            name=self.name,
            kind=self.kind,
            status=self._status,
            start_time_ns=self._start_time_ns,
            end_time_ns=self._end_time_ns,
            duration_ms=duration_ms,
            attributes=dict(self._attributes),
            parent_span_id=self.parent_span_id,
            error_message=self._error_message,
        )
