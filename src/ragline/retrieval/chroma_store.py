"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import chromadb

from ragline.config import settings
from ragline.errors import AuthorizationError, classify_provider_error
from ragline.resilience import call_with_retry
from ragline.retrieval.base import VectorStoreBase
from ragline.retrieval.models import SearchOutcome, TextChunk

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PAGE_SIZE = 1000


def _chunk_metadata(chunk: TextChunk) -> dict[str, Any]:
    return {
        "document_reference": chunk.document_reference,
        "source_reference": chunk.source_reference,
        "order": chunk.order,
    }


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    attempts:
        Attempts per store call (see :func:`ragline.resilience.call_with_retry`).
    timeout:
        Per-attempt timeout in seconds.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        attempts: int = settings.store_max_attempts,
        timeout: float | None = settings.store_timeout_seconds,
    ) -> None:
        super().__init__(collection_name)
        self._host = host
        self._port = port
        self._attempts = attempts
        self._timeout = timeout
        self._client: Any = None
        self._collection: Any = None

    # -- internals ------------------------------------------------------------

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = await chromadb.AsyncHttpClient(host=self._host, port=self._port)
        return self._client

    async def _call(self, fn: Callable[[], Awaitable[T]], cancel: asyncio.Event | None) -> T:
        async def classified() -> T:
            try:
                return await fn()
            except Exception as exc:
                err = classify_provider_error(exc)
                if err is exc:
                    raise
                raise err from exc

        try:
            return await call_with_retry(
                classified, attempts=self._attempts, timeout=self._timeout, cancel=cancel
            )
        except AuthorizationError:
            logger.error("Please check credentials and exception details for more info.", exc_info=True)
            raise

    async def _get_collection(self, cancel: asyncio.Event | None) -> Any:
        if self._collection is None:
            client = await self._get_client()
            self._collection = await self._call(
                lambda: client.get_collection(self.collection_name), cancel
            )
        return self._collection

    # -- VectorStoreBase overrides --------------------------------------------

    async def does_index_exist(self, cancel: asyncio.Event | None = None) -> bool:
        if self._collection is not None:
            return True
        client = await self._get_client()
        collections = await self._call(client.list_collections, cancel)
        # Older clients return Collection objects, newer ones plain names.
        names = {getattr(c, "name", c) for c in collections}
        return self.collection_name in names

    async def create_index(self, cancel: asyncio.Event | None = None) -> None:
        if self._collection is not None:
            return
        client = await self._get_client()
        self._collection = await self._call(
            lambda: client.get_or_create_collection(
                self.collection_name, metadata={"hnsw:space": "cosine"}
            ),
            cancel,
        )
        logger.info("Vector index %r ready", self.collection_name)

    async def upsert(self, chunks: list[TextChunk], cancel: asyncio.Event | None = None) -> None:
        if not chunks:
            return
        missing = [c.id for c in chunks if c.embedding is None]
        if missing:
            raise ValueError(f"Chunks without embeddings: {missing}")

        collection = await self._get_collection(cancel)
        await self._call(
            lambda: collection.upsert(
                ids=[c.id for c in chunks],
                embeddings=[c.embedding for c in chunks],
                documents=[c.content for c in chunks],
                metadatas=[_chunk_metadata(c) for c in chunks],
            ),
            cancel,
        )

    async def search(
        self,
        embedding: list[float],
        *,
        k: int = 3,
        cancel: asyncio.Event | None = None,
    ) -> SearchOutcome:
        try:
            if not await self.does_index_exist(cancel):
                return SearchOutcome.index_missing()
            collection = await self._get_collection(cancel)
            results = await self._call(
                lambda: collection.query(
                    query_embeddings=[embedding],
                    n_results=k,
                    include=["documents", "metadatas"],
                ),
                cancel,
            )
        except AuthorizationError:
            raise
        except Exception as exc:
            logger.warning("Vector search failed", exc_info=True)
            return SearchOutcome.failed(str(exc))

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]

        chunks: list[TextChunk] = []
        for chunk_id, content, meta in zip(ids, docs, metas):
            meta = meta or {}
            chunks.append(
                TextChunk(
                    id=chunk_id,
                    document_reference=meta.get("document_reference", ""),
                    source_reference=meta.get("source_reference", ""),
                    content=content or "",
                    order=meta.get("order", 0),
                )
            )
        return SearchOutcome.found(chunks)

    async def get_references_by_prefix(
        self, prefix: str, cancel: asyncio.Event | None = None
    ) -> list[TextChunk]:
        if not await self.does_index_exist(cancel):
            return []
        collection = await self._get_collection(cancel)

        chunks: list[TextChunk] = []
        offset = 0
        while True:
            page = await self._call(
                lambda: collection.get(
                    where={"source_reference": prefix},
                    include=["metadatas"],
                    limit=_PAGE_SIZE,
                    offset=offset,
                ),
                cancel,
            )
            ids = page.get("ids") or []
            metas = page.get("metadatas") or []
            for chunk_id, meta in zip(ids, metas):
                chunks.append(
                    TextChunk(
                        id=chunk_id,
                        document_reference=(meta or {}).get("document_reference", ""),
                    )
                )
            if len(ids) < _PAGE_SIZE:
                break
            offset += _PAGE_SIZE
        return chunks

    async def delete_by_ids(self, ids: list[str], cancel: asyncio.Event | None = None) -> None:
        if not ids:
            return
        collection = await self._get_collection(cancel)
        await self._call(lambda: collection.delete(ids=ids), cancel)

    async def health_check(self) -> bool:
        try:
            client = await self._get_client()
            await client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
