"""Abstract base class for vector-store backends.

Adding a new backend (Qdrant, Pinecone, Weaviate …) only requires
subclassing :class:`VectorStoreBase` and implementing the abstract
methods.  The ingestion and query layers are backend-agnostic.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from ragline.retrieval.models import SearchOutcome, TextChunk


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def does_index_exist(self, cancel: asyncio.Event | None = None) -> bool:
        """Return ``True`` once the collection has been created."""
        ...

    @abstractmethod
    async def create_index(self, cancel: asyncio.Event | None = None) -> None:
        """Create the collection.  A no-op when it already exists."""
        ...

    @abstractmethod
    async def upsert(self, chunks: list[TextChunk], cancel: asyncio.Event | None = None) -> None:
        """Insert or replace *chunks* by ID.  Every chunk must carry an embedding."""
        ...

    @abstractmethod
    async def search(
        self,
        embedding: list[float],
        *,
        k: int = 3,
        cancel: asyncio.Event | None = None,
    ) -> SearchOutcome:
        """Return the top-*k* nearest chunks to *embedding*.

        A missing index is reported as
        :attr:`~ragline.retrieval.models.SearchStatus.INDEX_MISSING`,
        never raised.
        """
        ...

    @abstractmethod
    async def get_references_by_prefix(
        self, prefix: str, cancel: asyncio.Event | None = None
    ) -> list[TextChunk]:
        """Return ``id`` + ``document_reference`` projections of every chunk
        whose ``source_reference`` equals *prefix*."""
        ...

    @abstractmethod
    async def delete_by_ids(self, ids: list[str], cancel: asyncio.Event | None = None) -> None:
        """Delete chunks by their IDs."""
        ...

    # -- optional overrides ---------------------------------------------------

    async def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        return True
