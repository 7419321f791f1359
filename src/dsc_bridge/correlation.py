"""
Trace labels that group log lines by bridge tick.

A tick's label reads ``t000042``; the n-th inbound command handled during that
tick gets ``t000042.c2``. The guard decision, the panel write and the rescan a
command causes therefore share a prefix in the logs.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager

__all__ = [
    "current_trace",
    "tick_label",
    "trace_scope",
]

_trace: contextvars.ContextVar[str | None] = contextvars.ContextVar("dsc_trace", default=None)


def current_trace() -> str | None:
    return _trace.get()


def tick_label(tick: int, command: int | None = None) -> str:
    label = f"t{tick:06d}"
    if command is None:
        return label
    return f"{label}.c{command}"


@contextmanager
def trace_scope(label: str) -> Iterator[str]:
    """Tag every log line emitted inside the block with ``label``; the outer label returns on exit."""
    token = _trace.set(label)
    try:
        yield label
    finally:
        _trace.reset(token)
