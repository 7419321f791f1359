"""Metrics module."""

from .registry import (
    record_buffer_overflow,
    record_command,
    record_connect,
    record_connection_state,
    record_publish,
    start_metrics_server,
)

__all__ = [
    "record_buffer_overflow",
    "record_command",
    "record_connect",
    "record_connection_state",
    "record_publish",
    "start_metrics_server",
]
