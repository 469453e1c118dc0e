"""In-process vector store using brute-force cosine similarity.

Useful for local runs and tests; nothing is persisted.
"""

from __future__ import annotations

import asyncio
import math

from ragline.retrieval.base import VectorStoreBase
from ragline.retrieval.models import SearchOutcome, TextChunk


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore(VectorStoreBase):
    def __init__(self, collection_name: str = "ragline") -> None:
        super().__init__(collection_name)
        self._chunks: dict[str, TextChunk] | None = None

    async def does_index_exist(self, cancel: asyncio.Event | None = None) -> bool:
        return self._chunks is not None

    async def create_index(self, cancel: asyncio.Event | None = None) -> None:
        if self._chunks is None:
            self._chunks = {}

    async def upsert(self, chunks: list[TextChunk], cancel: asyncio.Event | None = None) -> None:
        if self._chunks is None:
            raise RuntimeError(f"Collection {self.collection_name!r} has not been created")
        for chunk in chunks:
            if chunk.embedding is None:
                raise ValueError(f"Chunk {chunk.id} has no embedding")
            self._chunks[chunk.id] = chunk

    async def search(
        self,
        embedding: list[float],
        *,
        k: int = 3,
        cancel: asyncio.Event | None = None,
    ) -> SearchOutcome:
        if self._chunks is None:
            return SearchOutcome.index_missing()

        ranked = sorted(
            self._chunks.values(),
            key=lambda chunk: _cosine(embedding, chunk.embedding or []),
            reverse=True,
        )
        return SearchOutcome.found(ranked[: max(1, k)])

    async def get_references_by_prefix(
        self, prefix: str, cancel: asyncio.Event | None = None
    ) -> list[TextChunk]:
        if self._chunks is None:
            return []
        return [
            TextChunk(id=chunk.id, document_reference=chunk.document_reference)
            for chunk in self._chunks.values()
            if chunk.source_reference == prefix
        ]

    async def delete_by_ids(self, ids: list[str], cancel: asyncio.Event | None = None) -> None:
        if self._chunks is None:
            return
        for chunk_id in ids:
            self._chunks.pop(chunk_id, None)
