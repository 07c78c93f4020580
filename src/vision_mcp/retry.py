from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from .errors import ApiError, ToolExecutionError

log = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """True for failures worth another attempt: retryable model API errors.

    Orchestration wraps API errors in ToolExecutionError, so the chained
    cause is inspected too.  Validation and missing-file errors never are.
    """
    if isinstance(exc, ApiError):
        return exc.retryable
    if isinstance(exc, ToolExecutionError) and exc.code == "EXECUTION_ERROR":
        return isinstance(exc.__cause__, ApiError) and exc.__cause__.retryable
    return False


def with_retry(
    fn: Callable[..., Awaitable[T]],
    max_retries: int = 2,
    base_delay_ms: int = 1000,
    *,
    retry_on: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> Callable[..., Awaitable[T]]:
    """Wrap *fn* so it is attempted up to ``max_retries + 1`` times.

    The wait before retry *i* (0-based) is ``base_delay_ms * 2**i``; nothing
    waits after the final attempt, whose exception is re-raised as is.
    *retry_on* narrows which exceptions are retried (default: all).
    """
    pause = sleep or asyncio.sleep

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        attempt = 0
        while True:
            try:
                return await fn(*args, **kwargs)
            except Exception as exc:  # noqa: BLE001
                if attempt >= max_retries or (retry_on is not None and not retry_on(exc)):
                    if attempt:
                        log.warning(
                            "Retry exhausted",
                            extra={
                                "operation": getattr(fn, "__name__", "call"),
                                "attempts": attempt + 1,
                                "error_type": type(exc).__name__,
                            },
                        )
                    raise
                delay_ms = base_delay_ms * (2 ** attempt)
                log.info(
                    "Retrying after failure",
                    extra={
                        "operation": getattr(fn, "__name__", "call"),
                        "attempt": attempt + 1,
                        "max_attempts": max_retries + 1,
                        "retry_delay_ms": delay_ms,
                        "error_type": type(exc).__name__,
                        "error_message": str(exc),
                    },
                )
                await pause(delay_ms / 1000)
                attempt += 1

    return wrapper
