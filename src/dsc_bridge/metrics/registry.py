"""Prometheus metrics registry for the DSC bridge."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    start_http_server,
)

dsc_bridge_publish_total: Final = Counter(  # type: ignore[assignment]
    "dsc_bridge_publish_total",
    "Total status publishes attempted",
    ["topic_kind", "outcome"],
)

dsc_bridge_command_total: Final = Counter(  # type: ignore[assignment]
    "dsc_bridge_command_total",
    "Total inbound commands by decision",
    ["command", "outcome"],
)

dsc_bridge_connect_total: Final = Counter(  # type: ignore[assignment]
    "dsc_bridge_connect_total",
    "Total broker connect attempts",
    ["outcome"],
)

dsc_bridge_buffer_overflow_total: Final = Counter(  # type: ignore[assignment]
    "dsc_bridge_buffer_overflow_total",
    "Total Keybus buffer overflows reported by the decoder",
)

dsc_bridge_connection_state: Final = Gauge(  # type: ignore[assignment]
    "dsc_bridge_connection_state",
    "Current broker connection state",
    ["state"],
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_publish(topic_kind: str, outcome: str) -> None:
    """Record a status publish attempt."""
    dsc_bridge_publish_total.labels(topic_kind=topic_kind, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_command(command: str, outcome: str) -> None:
    """Record an inbound command decision."""
    dsc_bridge_command_total.labels(command=command, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_connect(outcome: str) -> None:
    """Record a broker connect attempt."""
    dsc_bridge_connect_total.labels(outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_buffer_overflow() -> None:
    """Record a decoder buffer overflow."""
    dsc_bridge_buffer_overflow_total.inc()  # type: ignore[no-untyped-call]


def record_connection_state(state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in ["disconnected", "connected"]:
        value = 1 if s == state else 0
        dsc_bridge_connection_state.labels(state=s).set(value)  # type: ignore[no-untyped-call]
