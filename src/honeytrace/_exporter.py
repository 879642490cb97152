"""OTLP gRPC exporter: converts SpanData batches to protobuf and ships them."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import grpc
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import (
    ExportTraceServiceRequest,
)
from opentelemetry.proto.collector.trace.v1.trace_service_pb2_grpc import (
    TraceServiceStub,
)
from opentelemetry.proto.common.v1.common_pb2 import (
    AnyValue,
    InstrumentationScope,
    KeyValue,
)
from opentelemetry.proto.resource.v1.resource_pb2 import Resource as OtlpResource
from opentelemetry.proto.trace.v1.trace_pb2 import (
    ResourceSpans,
    ScopeSpans,
)
from opentelemetry.proto.trace.v1.trace_pb2 import (
    Span as OtlpSpan,
)
from opentelemetry.proto.trace.v1.trace_pb2 import (
    Status as OtlpStatus,
)

from honeytrace._errors import ExportFailure, TransportError
from honeytrace._types import AttributeValue, SpanKind, SpanStatus
from honeytrace._version import __version__

if TYPE_CHECKING:
    from collections.abc import Mapping

    from honeytrace._config import Credential, Endpoint
    from honeytrace._types import Resource, SpanData

logger = logging.getLogger("honeytrace.exporter")

AUTH_HEADER = "x-honeycomb-team"

_METADATA_KEY_RE = re.compile(r"^[0-9a-z_.\-]+$")

_KIND_MAP: dict[SpanKind, int] = {
    SpanKind.INTERNAL: OtlpSpan.SPAN_KIND_INTERNAL,
    SpanKind.SERVER: OtlpSpan.SPAN_KIND_SERVER,
    SpanKind.CLIENT: OtlpSpan.SPAN_KIND_CLIENT,
}

_STATUS_MAP: dict[SpanStatus, int] = {
    SpanStatus.UNSET: OtlpStatus.STATUS_CODE_UNSET,
    SpanStatus.OK: OtlpStatus.STATUS_CODE_OK,
    SpanStatus.ERROR: OtlpStatus.STATUS_CODE_ERROR,
}


def _make_attribute(key: str, value: AttributeValue) -> KeyValue:
    """Convert a Python key-value pair to an OTLP KeyValue protobuf."""
    if isinstance(value, bool):
        av = AnyValue(bool_value=value)
    elif isinstance(value, int):
        av = AnyValue(int_value=value)
    elif isinstance(value, float):
        av = AnyValue(double_value=value)
    else:
        av = AnyValue(string_value=str(value))
    return KeyValue(key=key, value=av)


def _span_data_to_otlp(sd: SpanData) -> OtlpSpan:
    """Convert a single SpanData to an OTLP Span protobuf."""
    attrs = [_make_attribute(k, v) for k, v in sd.attributes.items()]

    status = OtlpStatus(code=_STATUS_MAP[sd.status])  # type: ignore[arg-type]
    if sd.status == SpanStatus.ERROR and sd.error_message:
        status = OtlpStatus(code=_STATUS_MAP[sd.status], message=sd.error_message)  # type: ignore[arg-type]

    parent = bytes.fromhex(sd.parent_span_id) if sd.parent_span_id else b""

    return OtlpSpan(
        trace_id=bytes.fromhex(sd.trace_id),
        span_id=bytes.fromhex(sd.span_id),
        parent_span_id=parent,
        name=sd.name,
        kind=_KIND_MAP.get(sd.kind, OtlpSpan.SPAN_KIND_INTERNAL),  # type: ignore[arg-type]
        start_time_unix_nano=sd.start_time_ns,
        end_time_unix_nano=sd.end_time_ns,
        attributes=attrs,
        status=status,
    )


def _build_resource(attributes: Mapping[str, AttributeValue]) -> OtlpResource:
    """Build the OTLP resource block once, for reuse by every request."""
    return OtlpResource(
        attributes=[_make_attribute(k, v) for k, v in attributes.items()]
    )


def _build_export_request(
    spans: list[SpanData],
    resource: OtlpResource,
    scope: InstrumentationScope,
) -> ExportTraceServiceRequest:
    """Build an ExportTraceServiceRequest from a batch of SpanData."""
    otlp_spans = [_span_data_to_otlp(sd) for sd in spans]

    scope_spans = ScopeSpans(scope=scope, spans=otlp_spans)
    resource_spans = ResourceSpans(resource=resource, scope_spans=[scope_spans])

    return ExportTraceServiceRequest(resource_spans=[resource_spans])


def _validate_metadata(key: str, value: str) -> None:
    """Reject metadata gRPC would refuse to send as an ASCII header.

    Raises:
        TransportError: on an invalid key or value encoding. The value itself
            is never included in the message.
    """
    if not _METADATA_KEY_RE.match(key) or key.endswith("-bin"):
        raise TransportError(f"invalid metadata key {key!r}")
    if not value:
        raise TransportError(f"empty value for metadata key {key!r}")
    if any(not (0x20 <= ord(ch) <= 0x7E) for ch in value):
        raise TransportError(
            f"value for metadata key {key!r} must be printable ASCII"
        )
    if value != value.strip():
        raise TransportError(
            f"value for metadata key {key!r} has surrounding whitespace"
        )


class OTLPExporter:
    """Exports SpanData batches over gRPC using the OTLP trace protocol.

    Every export call carries the ``x-honeycomb-team`` metadata entry and the
    resource block bound at construction. Export errors are raised as
    ExportFailure for the batch processor to contain.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        credential: Credential,
        resource: Resource,
        *,
        timeout_s: float = 10.0,
        insecure: bool = False,
        root_certificates: bytes | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._target = endpoint.authority
        self._tls_server_name: str | None = None if insecure else endpoint.host

        token = credential.reveal()
        _validate_metadata(AUTH_HEADER, token)
        self._metadata: tuple[tuple[str, str], ...] = ((AUTH_HEADER, token),)

        self._resource = _build_resource(resource)
        self._scope = InstrumentationScope(name="honeytrace", version=__version__)

        try:
            if insecure:
                self._channel = grpc.insecure_channel(self._target)
            else:
                credentials = grpc.ssl_channel_credentials(
                    root_certificates=root_certificates
                )
                self._channel = grpc.secure_channel(
                    self._target,
                    credentials,
                    options=[("grpc.ssl_target_name_override", endpoint.host)],
                )
        except Exception as exc:
            raise TransportError(
                f"failed to set up channel to {self._target}: {exc}"
            ) from exc

        self._stub = TraceServiceStub(self._channel)  # type: ignore[no-untyped-call]
        self._closed = False

    @property
    def target(self) -> str:
        return self._target

    @property
    def tls_server_name(self) -> str | None:
        """Name the collector certificate is verified against."""
        return self._tls_server_name

    @property
    def metadata(self) -> tuple[tuple[str, str], ...]:
        return self._metadata

    def export(self, spans: list[SpanData]) -> None:
        """Export a batch of spans in a single call.

        Raises:
            ExportFailure: on any RPC error, or after shutdown.
        """
        if not spans:
            return
        if self._closed:
            raise ExportFailure("exporter is shut down", span_count=len(spans))
        request = _build_export_request(spans, self._resource, self._scope)
        try:
            self._stub.Export(request, timeout=self._timeout_s, metadata=self._metadata)
        except grpc.RpcError as exc:
            code = exc.code() if hasattr(exc, "code") else None
            code_name = code.name if code is not None else "UNKNOWN"
            raise ExportFailure(
                f"export of {len(spans)} spans to {self._target} failed: {code_name}",
                span_count=len(spans),
                code=code_name,
            ) from exc
        logger.debug("Exported %d spans to %s", len(spans), self._target)

    def shutdown(self) -> None:
        """Close the gRPC channel."""
        if self._closed:
            return
        self._closed = True
        self._channel.close()


def build_exporter(
    endpoint: Endpoint,
    credential: Credential,
    resource: Resource,
    *,
    timeout_s: float = 10.0,
    root_certificates: bytes | None = None,
) -> OTLPExporter:
    """Build a TLS exporter verifying the collector against the endpoint host.

    Raises:
        TransportError: if the metadata or channel cannot be set up.
    """
    exporter = OTLPExporter(
        endpoint,
        credential,
        resource,
        timeout_s=timeout_s,
        root_certificates=root_certificates,
    )
    logger.info(
        "OTLP exporter ready for %s (tls name %s)",
        exporter.target,
        exporter.tls_server_name,
    )
    return exporter
