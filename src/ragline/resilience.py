"""Retry/timeout policies around unreliable network calls.

Built on tenacity.  Every policy accepts the run's cancellation event and
stops retrying as soon as it is set; the attempt in flight is never
interrupted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_none,
)
from tenacity.stop import stop_base

from ragline.errors import AuthorizationError, NeedsIngestionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

NEVER_RETRY: tuple[type[BaseException], ...] = (NeedsIngestionError, AuthorizationError)


def is_cancelled(cancel: asyncio.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


class stop_when_cancelled(stop_base):  # noqa: N801 - tenacity naming style
    """Stop retrying once the cancellation event is set."""

    def __init__(self, cancel: asyncio.Event | None) -> None:
        self._cancel = cancel

    def __call__(self, retry_state: RetryCallState) -> bool:
        return is_cancelled(self._cancel)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Attempt %d of %s failed: %r",
        retry_state.attempt_number,
        getattr(retry_state.fn, "__qualname__", "call"),
        exc,
    )


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    timeout: float | None = 7.0,
    cancel: asyncio.Event | None = None,
) -> T:
    """Await ``fn()`` with a per-attempt timeout, retrying failures.

    ``NeedsIngestionError`` and ``AuthorizationError`` propagate on the
    first occurrence.  When retries are exhausted the last error is raised.
    """
    retrying = AsyncRetrying(
        retry=retry_if_not_exception_type(NEVER_RETRY),
        stop=stop_after_attempt(max(1, attempts)) | stop_when_cancelled(cancel),
        wait=wait_none(),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            if timeout is None:
                return await fn()
            async with asyncio.timeout(timeout):
                return await fn()
    raise AssertionError("unreachable")  # pragma: no cover
