"""Shutdown coordinator: flush the pipeline once, with a bounded wait."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from honeytrace._bridge import TracerHandle


def shutdown(handle: TracerHandle, *, timeout_s: float | None = None) -> bool:
    """Close the tracer and drain its batch processor.

    Blocks until every span recorded before the call is exported or the
    timeout elapses (the handle's ``shutdown_timeout_s`` by default). Never
    raises for a slow collector and never hangs.

    Returns ``True`` if the pipeline drained. Only the first call does any
    work; later calls return the first call's result.
    """
    return handle.close(timeout_s)
