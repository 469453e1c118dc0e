"""Embedding of chunk text through an external provider.

Calls are wrapped in two retry layers (tenacity):

* inner: exponential backoff for :class:`TransientServiceError`
  (service busy / rate limited).  Every retry posts a "system busy"
  progress snapshot through the sink passed to the call.
* outer: immediate retries for any other failure except
  :class:`NeedsIngestionError`, :class:`AuthorizationError` and an
  exhausted transient error.
"""

from __future__ import annotations

import asyncio
import logging

from langchain_core.embeddings import Embeddings
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_none,
)

from ragline.config import settings
from ragline.errors import (
    AuthorizationError,
    NeedsIngestionError,
    TransientServiceError,
    classify_provider_error,
)
from ragline.ingestion.progress import ProgressSink, report
from ragline.resilience import stop_when_cancelled
from ragline.retrieval.models import TextChunk

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "System busy, delaying a few seconds..."


def get_embedding_provider() -> Embeddings:
    """Return the configured sentence-transformer embedding function."""
    from langchain_huggingface import HuggingFaceEmbeddings

    return HuggingFaceEmbeddings(model_name=settings.embedding_model)


class Embedder:
    """Resilient wrapper around a LangChain :class:`Embeddings` provider.

    Parameters
    ----------
    provider:
        Anything implementing ``aembed_query``.
    backoff_seconds:
        Base delay of the exponential backoff for transient failures.
    max_attempts:
        Total attempts (first call included) for transient failures.
    outer_attempts:
        Total attempts for other retriable failures.
    """

    def __init__(
        self,
        provider: Embeddings,
        *,
        backoff_seconds: float = settings.embed_backoff_seconds,
        max_attempts: int = settings.embed_max_attempts,
        outer_attempts: int = settings.embed_outer_attempts,
    ) -> None:
        self._provider = provider
        self._backoff_seconds = backoff_seconds
        self._max_attempts = max(1, max_attempts)
        self._outer_attempts = max(1, outer_attempts)

    async def embed(
        self,
        text: str,
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[float]:
        """Return the embedding vector for *text*."""
        try:
            return await self._embed_with_retry(text, progress, cancel)
        except AuthorizationError:
            logger.error(
                "Embedding provider rejected the request. "
                "Please check credentials and exception details for more info.",
                exc_info=True,
            )
            raise

    async def embed_chunks(
        self,
        chunks: list[TextChunk],
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[TextChunk]:
        """Return copies of *chunks* with their ``embedding`` populated."""
        total = len(chunks)
        plural = "" if total == 1 else "s"
        embedded: list[TextChunk] = []
        for count, chunk in enumerate(chunks, 1):
            report(progress, f"Processing {count} of {total} chunk{plural}")
            vector = await self.embed(chunk.content, progress, cancel)
            embedded.append(chunk.model_copy(update={"embedding": vector}))
        return embedded

    # -- internals ------------------------------------------------------------

    async def _embed_with_retry(
        self, text: str, progress: ProgressSink | None, cancel: asyncio.Event | None
    ) -> list[float]:
        retrying = AsyncRetrying(
            retry=retry_if_not_exception_type(
                (NeedsIngestionError, AuthorizationError, TransientServiceError)
            ),
            stop=stop_after_attempt(self._outer_attempts) | stop_when_cancelled(cancel),
            wait=wait_none(),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._embed_with_backoff(text, progress, cancel)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _embed_with_backoff(
        self, text: str, progress: ProgressSink | None, cancel: asyncio.Event | None
    ) -> list[float]:
        def _on_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                "Embedding service busy (attempt %d of %d)",
                retry_state.attempt_number,
                self._max_attempts,
            )
            report(progress, BUSY_MESSAGE)

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientServiceError),
            stop=stop_after_attempt(self._max_attempts) | stop_when_cancelled(cancel),
            wait=wait_exponential(multiplier=self._backoff_seconds),
            before_sleep=_on_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._call_provider(text)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _call_provider(self, text: str) -> list[float]:
        try:
            vector = await self._provider.aembed_query(text)
        except Exception as exc:
            err = classify_provider_error(exc)
            if err is exc:
                raise
            raise err from exc
        return [float(value) for value in vector]
