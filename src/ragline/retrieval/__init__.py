"""
Retrieval: the vector index behind a narrow, backend-agnostic interface.

Public surface
--------------
- :class:`VectorStoreBase`: abstract backend (subclass for Qdrant, etc.).
- :class:`ChromaVectorStore`: default Chroma backend.
- :class:`InMemoryVectorStore`: in-process backend for local runs and tests.
- :class:`TextChunk`, :class:`SearchOutcome`, :class:`SearchStatus`: data models.
"""

from ragline.retrieval.base import VectorStoreBase
from ragline.retrieval.memory_store import InMemoryVectorStore
from ragline.retrieval.models import (
    SearchOutcome,
    SearchStatus,
    TextChunk,
    make_chunk_id,
    split_document_reference,
)

__all__ = [
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "SearchOutcome",
    "SearchStatus",
    "TextChunk",
    "VectorStoreBase",
    "make_chunk_id",
    "split_document_reference",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from ragline.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
