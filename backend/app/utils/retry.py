"""Bounded exponential-backoff retry and a non-cancelling timeout."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from app.config import settings
from app.utils.api_errors import UpstreamTimeout, normalize

logger = structlog.get_logger()

T = TypeVar("T")

TIMEOUT_MESSAGE = "API request timeout"

# Operations abandoned by with_timeout keep running; hold a reference so the
# event loop does not garbage-collect them mid-flight.
_orphaned_tasks: set[asyncio.Future[Any]] = set()


async def retry_api_call(
    call: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``call`` up to ``max_retries + 1`` times.

    Non-retryable failures and the failure of the final attempt re-raise the
    original exception. Between attempts waits ``base_delay * 2**attempt``.
    """
    attempt = 0
    while True:
        try:
            return await call()
        except Exception as exc:
            api_error = normalize(exc)
            if not api_error.retryable or attempt >= max_retries:
                raise
            delay = base_delay * (2**attempt)
            logger.warning(
                "api_call_retrying",
                attempt=attempt + 1,
                max_retries=max_retries,
                delay=delay,
                status_code=api_error.status_code,
                error=api_error.message[:200],
            )
            await sleep(delay)
            attempt += 1


def _log_late_result(task: asyncio.Future[Any]) -> None:
    _orphaned_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("timed_out_call_failed_late", error_type=type(exc).__name__)


async def with_timeout(awaitable: Awaitable[T], timeout: float = 10.0) -> T:
    """Race ``awaitable`` against a timer.

    On expiry raises ``UpstreamTimeout("API request timeout")``. The operation
    itself is not cancelled; its eventual result is dropped.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()
    _orphaned_tasks.add(task)
    task.add_done_callback(_log_late_result)
    logger.warning("api_call_timed_out", timeout=timeout)
    raise UpstreamTimeout(TIMEOUT_MESSAGE)


async def resilient_call(
    call: Callable[[], Awaitable[T]],
    *,
    timeout: float | None = None,
    max_retries: int | None = None,
    base_delay: float | None = None,
) -> T:
    """Retry ``call`` with each attempt bounded by ``with_timeout``.

    Defaults come from settings (UPSTREAM_TIMEOUT_SECONDS, RETRY_*).
    """
    limit = settings.upstream_timeout_seconds if timeout is None else timeout

    async def attempt() -> T:
        return await with_timeout(call(), limit)

    return await retry_api_call(
        attempt,
        max_retries=settings.retry_max_retries if max_retries is None else max_retries,
        base_delay=settings.retry_base_delay_seconds if base_delay is None else base_delay,
    )
