"""Latency and outcome logging for core operations."""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def monitored(operation: str, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
    """Await ``func(*args, **kwargs)`` and log its duration and success.

    Failures are logged and re-raised unchanged.
    """
    started = time.perf_counter()
    try:
        result = await func(*args, **kwargs)
    except Exception as exc:
        logger.warning(
            "operation_failed",
            extra={
                "operation": operation,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "success": False,
                "error": str(exc),
            },
        )
        raise
    logger.info(
        "operation_completed",
        extra={
            "operation": operation,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "success": True,
        },
    )
    return result
