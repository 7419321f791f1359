"""Unit tests for BridgeEnv configuration parsing."""

from __future__ import annotations

import logging

import pydantic
import pytest

from dsc_bridge.structs import BridgeEnv

DSC_VARS = (
    "DSC_MQTT_HOST",
    "DSC_MQTT_PORT",
    "DSC_MQTT_USER",
    "DSC_MQTT_PASS",
    "DSC_MQTT_CLIENT_ID",
    "DSC_MQTT_KEEPALIVE",
    "DSC_TOPIC",
    "DSC_RECONNECT_INTERVAL_MS",
    "DSC_TICK_INTERVAL_MS",
    "DSC_AVAILABILITY_INTERVAL",
    "DSC_ACCESS_CODE",
    "DSC_DEFAULT_PARTITION",
    "DSC_DISABLED_PARTITIONS",
    "DSC_WRITE_QUEUE_SIZE",
    "DSC_METRICS_PORT",
    "DSC_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in DSC_VARS:
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    env = BridgeEnv()

    assert env.mqtt_port == 1883
    assert env.mqtt_keepalive == 60
    assert env.reconnect_interval_ms == 2000
    assert env.default_partition == 1
    assert env.availability_interval == 0
    assert env.write_queue_size == 8


def test_from_environ(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DSC_MQTT_HOST", "broker.lan")
    monkeypatch.setenv("DSC_MQTT_PORT", "8883")
    monkeypatch.setenv("DSC_MQTT_USER", "panel")
    monkeypatch.setenv("DSC_TOPIC", "house/alarm")
    monkeypatch.setenv("DSC_RECONNECT_INTERVAL_MS", "500")
    monkeypatch.setenv("DSC_ACCESS_CODE", "4321")
    monkeypatch.setenv("DSC_DEFAULT_PARTITION", "3")
    monkeypatch.setenv("DSC_DISABLED_PARTITIONS", "2, 5,x")

    env = BridgeEnv.from_environ()

    assert env.mqtt_host == "broker.lan"
    assert env.mqtt_port == 8883
    assert env.mqtt_user == "panel"
    assert env.mqtt_pass is None
    assert env.topic == "house/alarm"
    assert env.reconnect_interval_ms == 500
    assert env.access_code == "4321"
    assert env.default_partition == 3
    assert env.disabled_partitions == (2, 5)


def test_unset_vars_keep_defaults():
    env = BridgeEnv.from_environ()

    assert env == BridgeEnv()


@pytest.mark.parametrize(
    ("var", "value"),
    [
        ("DSC_DEFAULT_PARTITION", "9"),
        ("DSC_DEFAULT_PARTITION", "0"),
        ("DSC_MQTT_PORT", "not-a-port"),
        ("DSC_TICK_INTERVAL_MS", "0"),
        ("DSC_WRITE_QUEUE_SIZE", "0"),
    ],
)
def test_invalid_values_rejected(monkeypatch: pytest.MonkeyPatch, var: str, value: str):
    monkeypatch.setenv(var, value)

    with pytest.raises(pydantic.ValidationError):
        BridgeEnv.from_environ()


def test_disabled_partition_out_of_range(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DSC_DISABLED_PARTITIONS", "1,9")

    with pytest.raises(pydantic.ValidationError, match="out of range"):
        BridgeEnv.from_environ()


@pytest.mark.parametrize(("value", "expected"), [("yes", True), ("1", True), ("off", False)])
def test_debug_flag(monkeypatch: pytest.MonkeyPatch, value: str, expected: bool):
    monkeypatch.setenv("DSC_DEBUG", value)

    assert BridgeEnv.from_environ().debug is expected


def test_const_exports_resolve():
    from dsc_bridge import const

    missing = [name for name in const.__all__ if not hasattr(const, name)]

    assert missing == []
    assert all(not isinstance(getattr(const, name), logging.Formatter) for name in const.__all__)
