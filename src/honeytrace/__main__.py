"""Process bootstrap: ``python -m honeytrace``."""

from __future__ import annotations

import logging
import os
import sys

from honeytrace._bridge import ConsoleLayer
from honeytrace._config import load_env_file, resolve
from honeytrace._errors import ConfigError, TransportError
from honeytrace._sdk import init
from honeytrace.app import DEFAULT_HOST, DEFAULT_PORT, serve

logger = logging.getLogger("honeytrace.app")

HOST_ENV = "HONEYTRACE_HOST"
PORT_ENV = "HONEYTRACE_PORT"


def main() -> int:
    """Resolve config, build the pipeline, serve, then flush. Returns an exit code.

    Configuration and exporter construction errors abort before any socket is
    bound.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_env_file()

    try:
        config = resolve()
        port = int(os.environ.get(PORT_ENV) or DEFAULT_PORT)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
    except ValueError:
        logger.error("Invalid configuration: %s must be an integer", PORT_ENV)
        return 1
    host = os.environ.get(HOST_ENV) or DEFAULT_HOST

    try:
        handle = init(config, layers=[ConsoleLayer()])
    except (ConfigError, TransportError) as exc:
        logger.error("Failed to start tracing pipeline: %s", exc)
        return 1

    serve(handle, host=host, port=port)
    print("Shutting down.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
