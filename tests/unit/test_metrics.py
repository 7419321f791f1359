"""Unit tests for the Prometheus metrics helpers."""

from __future__ import annotations

from unittest.mock import patch

from prometheus_client import REGISTRY

from dsc_bridge.metrics import registry


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_record_publish():
    labels = {"topic_kind": "zone", "outcome": "sent"}
    before = _sample("dsc_bridge_publish_total", labels)

    registry.record_publish("zone", "sent")

    assert _sample("dsc_bridge_publish_total", labels) == before + 1


def test_record_command():
    labels = {"command": "ARM_AWAY", "outcome": "not_ready"}
    before = _sample("dsc_bridge_command_total", labels)

    registry.record_command("ARM_AWAY", "not_ready")

    assert _sample("dsc_bridge_command_total", labels) == before + 1


def test_record_connect_and_overflow():
    connect_before = _sample("dsc_bridge_connect_total", {"outcome": "failed"})
    overflow_before = _sample("dsc_bridge_buffer_overflow_total")

    registry.record_connect("failed")
    registry.record_buffer_overflow()

    assert _sample("dsc_bridge_connect_total", {"outcome": "failed"}) == connect_before + 1
    assert _sample("dsc_bridge_buffer_overflow_total") == overflow_before + 1


def test_connection_state_is_one_hot():
    registry.record_connection_state("connected")

    assert _sample("dsc_bridge_connection_state", {"state": "connected"}) == 1
    assert _sample("dsc_bridge_connection_state", {"state": "disconnected"}) == 0


def test_metrics_server_started_once():
    with (
        patch("dsc_bridge.metrics.registry.start_http_server") as mock_start,
        patch.dict(registry._server_state, {"started": False}),
    ):
        registry.start_metrics_server(9400)
        registry.start_metrics_server(9400)

    mock_start.assert_called_once_with(9400)
