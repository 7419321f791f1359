"""
Timing for the status scan.

A scan slower than ``DSC_PERF_THRESHOLD_MS`` is logged at warning level, so a
stalled broker shows up without debug output. ``DSC_PERF_TRACKING=false``
turns timing off.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from dsc_bridge import const
from dsc_bridge.logging_abstraction import get_logger

__all__ = [
    "report_duration",
    "timed_async",
]

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def report_duration(operation: str, elapsed_ms: float, threshold_ms: int) -> bool:
    """Log one timing sample. Returns True when it went over ``threshold_ms``."""
    slow = elapsed_ms > threshold_ms
    logger.log(
        logging.WARNING if slow else logging.DEBUG,
        "%s took %.1f ms",
        operation,
        elapsed_ms,
        extra={"operation": operation, "duration_ms": round(elapsed_ms, 2), "threshold_ms": threshold_ms},
    )
    return slow


def timed_async(operation: str) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            if not const.DSC_PERF_TRACKING:
                return await func(*args, **kwargs)
            started = time.perf_counter_ns()
            try:
                return await func(*args, **kwargs)
            finally:
                _ = report_duration(operation, (time.perf_counter_ns() - started) / 1e6, const.DSC_PERF_THRESHOLD_MS)

        return wrapper

    return decorator
