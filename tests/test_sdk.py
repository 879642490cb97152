"""Tests for _sdk module."""

import pytest

import honeytrace
import honeytrace._bridge as bridge_mod
from honeytrace._config import CREDENTIAL_ENV, ENDPOINT_ENV, resolve
from honeytrace._errors import ConfigError, TransportError
from honeytrace._processor import ProcessorState

ENV = {
    ENDPOINT_ENV: "https://collector.example:4317",
    CREDENTIAL_ENV: "tok-123",
    "OTEL_SERVICE_NAME": "sdk-test",
    "OTEL_BSP_MAX_EXPORT_BATCH_SIZE": "16",
    "OTEL_BSP_SCHEDULE_DELAY": "60000",
}


def setup_function() -> None:
    """Reset the process-wide tracer before each test."""
    bridge_mod._installed = None


def teardown_function() -> None:
    handle = bridge_mod._installed
    if handle is not None:
        honeytrace.shutdown(handle, timeout_s=0.5)
    bridge_mod._installed = None


def test_init_installs_running_pipeline() -> None:
    handle = honeytrace.init(resolve(ENV))
    assert honeytrace.get_handle() is handle
    assert handle.processor.is_running
    assert handle.processor.state is ProcessorState.IDLE
    assert handle.shutdown_timeout_s == 5.0


def test_init_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in ENV.items():
        monkeypatch.setenv(key, value)
    handle = honeytrace.init()
    assert handle.processor._batch_size == 16


def test_init_missing_credential(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(ENDPOINT_ENV, "https://collector.example:4317")
    monkeypatch.delenv(CREDENTIAL_ENV, raising=False)
    with pytest.raises(ConfigError, match="credential missing"):
        honeytrace.init()
    assert honeytrace.get_handle() is None


def test_init_bad_credential_encoding() -> None:
    config = resolve({**ENV, CREDENTIAL_ENV: "tok\t123"})
    with pytest.raises(TransportError):
        honeytrace.init(config)
    assert honeytrace.get_handle() is None


def test_second_init_is_config_error() -> None:
    first = honeytrace.init(resolve(ENV))
    with pytest.raises(ConfigError, match="already installed"):
        honeytrace.init(resolve(ENV))
    assert honeytrace.get_handle() is first


def test_span_after_init_is_buffered() -> None:
    handle = honeytrace.init(resolve(ENV))
    with honeytrace.span("buffered") as s:
        s.set_attribute("key", "val")
    assert len(handle.processor) == 1


def test_layers_passed_through() -> None:
    layer = honeytrace.ConsoleLayer()
    handle = honeytrace.init(resolve(ENV), layers=[layer])
    assert handle.layers == (layer,)
