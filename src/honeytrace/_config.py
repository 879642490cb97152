"""Startup configuration resolved from the process environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from dotenv import load_dotenv

from honeytrace._errors import ConfigError

logger = logging.getLogger("honeytrace.config")

ENDPOINT_ENV = "OTLP_TONIC_ENDPOINT"
CREDENTIAL_ENV = "OTLP_TONIC_X_HONEYCOMB_TEAM"

SERVICE_NAME_ENV = "OTEL_SERVICE_NAME"
BATCH_SIZE_ENV = "OTEL_BSP_MAX_EXPORT_BATCH_SIZE"
FLUSH_INTERVAL_ENV = "OTEL_BSP_SCHEDULE_DELAY"
BUFFER_SIZE_ENV = "OTEL_BSP_MAX_QUEUE_SIZE"
EXPORT_TIMEOUT_ENV = "OTEL_BSP_EXPORT_TIMEOUT"
SHUTDOWN_TIMEOUT_ENV = "HONEYTRACE_SHUTDOWN_TIMEOUT"

DEFAULT_SERVICE_NAME = "lab_honeycomb_service"
DEFAULT_TLS_PORT = 443


@dataclass(frozen=True)
class Endpoint:
    """A validated collector URL."""

    url: str
    host: str
    port: int

    @property
    def authority(self) -> str:
        """gRPC dial target, ``host:port`` with IPv6 hosts bracketed."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @classmethod
    def parse(cls, value: str) -> Endpoint:
        """Parse an absolute URL with a non-empty host.

        Raises:
            ConfigError: if the value is not an absolute URL with a host.
        """
        parts = urlsplit(value.strip())
        if not parts.scheme or not parts.netloc:
            raise ConfigError(
                f"endpoint malformed: {ENDPOINT_ENV} must be an absolute URL",
                key=ENDPOINT_ENV,
            )
        if not parts.hostname:
            raise ConfigError(
                f"endpoint malformed: {ENDPOINT_ENV} has no host",
                key=ENDPOINT_ENV,
            )
        try:
            port = parts.port
        except ValueError as exc:
            raise ConfigError(
                f"endpoint malformed: {ENDPOINT_ENV} has an invalid port",
                key=ENDPOINT_ENV,
            ) from exc
        return cls(
            url=value.strip(),
            host=parts.hostname,
            port=port if port is not None else DEFAULT_TLS_PORT,
        )


class Credential:
    """Opaque collector token. Immutable, and masked in repr/str."""

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        object.__setattr__(self, "_value", value)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Credential is immutable")

    def reveal(self) -> str:
        """Return the raw token for use as a header value."""
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Credential):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return "Credential('***')"

    __str__ = __repr__


@dataclass(frozen=True)
class HoneytraceConfig:
    """Immutable pipeline configuration."""

    endpoint: Endpoint
    credential: Credential = field(repr=False)
    service_name: str = DEFAULT_SERVICE_NAME
    batch_size: int = 512
    flush_interval_ms: int = 5000
    buffer_size: int = 2048
    export_timeout_ms: int = 30000
    shutdown_timeout_ms: int = 5000


def load_env_file(path: str | os.PathLike[str] | None = None) -> bool:
    """Load a ``.env`` file into the process environment.

    Values already present in the environment are kept. Returns ``True`` if
    a file was found and loaded.
    """
    loaded = load_dotenv(path, override=False)
    if loaded:
        logger.debug("Loaded environment file %s", path or ".env")
    return loaded


def _require(environ: Mapping[str, str], key: str, what: str) -> str:
    value = environ.get(key)
    if not value:
        raise ConfigError(
            f"{what} missing: environment variable {key} is not set",
            key=key,
        )
    return value


def _positive_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}", key=key) from exc
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}", key=key)
    return value


def resolve(environ: Mapping[str, str] | None = None) -> HoneytraceConfig:
    """Read the pipeline configuration from the environment.

    The collector endpoint and credential are mandatory and never defaulted.

    Raises:
        ConfigError: naming the missing or malformed key.
    """
    env = os.environ if environ is None else environ

    endpoint = Endpoint.parse(_require(env, ENDPOINT_ENV, "endpoint"))
    credential = Credential(_require(env, CREDENTIAL_ENV, "credential"))

    config = HoneytraceConfig(
        endpoint=endpoint,
        credential=credential,
        service_name=env.get(SERVICE_NAME_ENV) or DEFAULT_SERVICE_NAME,
        batch_size=_positive_int(env, BATCH_SIZE_ENV, 512),
        flush_interval_ms=_positive_int(env, FLUSH_INTERVAL_ENV, 5000),
        buffer_size=_positive_int(env, BUFFER_SIZE_ENV, 2048),
        export_timeout_ms=_positive_int(env, EXPORT_TIMEOUT_ENV, 30000),
        shutdown_timeout_ms=_positive_int(env, SHUTDOWN_TIMEOUT_ENV, 5000),
    )
    if config.batch_size > config.buffer_size:
        raise ConfigError(
            f"{BATCH_SIZE_ENV} ({config.batch_size}) exceeds "
            f"{BUFFER_SIZE_ENV} ({config.buffer_size})",
            key=BATCH_SIZE_ENV,
        )
    logger.debug(
        "Resolved collector %s for service %s", endpoint.authority, config.service_name
    )
    return config
