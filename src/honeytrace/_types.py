"""Core types: enums, span snapshots and the resource block."""

from __future__ import annotations

import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from honeytrace._version import __version__

AttributeValue = str | int | float | bool


class SpanKind(enum.Enum):
    """Type of span operation."""

    INTERNAL = "internal"
    CLIENT = "client"
    SERVER = "server"


class SpanStatus(enum.Enum):
    """Status of a completed span."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class SpanData:
    """Immutable snapshot of a completed span, owned by the processor."""

    span_id: str
    trace_id: str
    name: str
    kind: SpanKind
    status: SpanStatus
    start_time_ns: int
    end_time_ns: int
    duration_ms: float
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict)
    parent_span_id: str | None = None
    error_message: str | None = None


class Resource(Mapping[str, AttributeValue]):
    """Read-only attributes describing the emitting service."""

    __slots__ = ("_attributes",)

    def __init__(self, attributes: Mapping[str, AttributeValue]) -> None:
        if not attributes.get("service.name"):
            raise ValueError("resource requires a non-empty 'service.name'")
        self._attributes: dict[str, AttributeValue] = dict(attributes)

    @classmethod
    def for_service(cls, service_name: str) -> Resource:
        return cls({
            "service.name": service_name,
            "telemetry.sdk.name": "honeytrace",
            "telemetry.sdk.language": "python",
            "telemetry.sdk.version": __version__,
        })

    def __getitem__(self, key: str) -> AttributeValue:
        return self._attributes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __repr__(self) -> str:
        return f"Resource({self._attributes!r})"
