"""Pipeline assembly: config -> exporter -> batch processor -> tracer handle."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from honeytrace._bridge import SpanLayer, TracerHandle, install
from honeytrace._config import HoneytraceConfig, resolve
from honeytrace._errors import ShutdownTimeout
from honeytrace._exporter import build_exporter
from honeytrace._processor import BatchSpanProcessor
from honeytrace._types import Resource

logger = logging.getLogger("honeytrace")


def init(
    config: HoneytraceConfig | None = None,
    *,
    layers: Iterable[SpanLayer] = (),
) -> TracerHandle:
    """Build the tracing pipeline and install it process-wide.

    Must be called once, before serving traffic. Pass the returned handle to
    the HTTP middleware and to ``honeytrace.shutdown`` on the way out.

    Raises:
        ConfigError: if configuration is missing or a tracer is already installed.
        TransportError: if the exporter cannot be constructed.
    """
    if config is None:
        config = resolve()

    resource = Resource.for_service(config.service_name)
    exporter = build_exporter(
        config.endpoint,
        config.credential,
        resource,
        timeout_s=config.export_timeout_ms / 1000.0,
    )
    processor = BatchSpanProcessor(
        exporter,
        batch_size=config.batch_size,
        flush_interval_ms=config.flush_interval_ms,
        max_queue_size=config.buffer_size,
    )
    processor.start()

    try:
        handle = install(
            processor,
            layers=layers,
            shutdown_timeout_s=config.shutdown_timeout_ms / 1000.0,
        )
    except Exception:
        try:
            processor.shutdown(timeout_s=0.0)
        except ShutdownTimeout as exc:
            logger.debug("Discarding unused processor: %s", exc)
        raise

    logger.info(
        "Tracing %s to %s (batch_size=%d, flush_interval_ms=%d)",
        config.service_name,
        config.endpoint.authority,
        config.batch_size,
        config.flush_interval_ms,
    )
    return handle
