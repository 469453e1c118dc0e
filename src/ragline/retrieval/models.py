"""Domain models for indexed chunks and search outcomes."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field

REFERENCE_SEPARATOR = "@"


def split_document_reference(document_reference: str) -> tuple[str, str]:
    """Split ``prefix@path`` into ``(prefix, path)``.

    Raises
    ------
    ValueError
        When *document_reference* has no ``@`` separator.
    """
    prefix, separator, path = document_reference.partition(REFERENCE_SEPARATOR)
    if not separator:
        raise ValueError(
            f"Document reference {document_reference!r} must have the form 'prefix@path'"
        )
    return prefix, path


def make_chunk_id(document_reference: str, order: int) -> str:
    """Deterministic chunk ID, unique per ``(document_reference, order)``."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{document_reference}#{order}"))


class TextChunk(BaseModel):
    """One window of a document's text, the unit of embedding and indexing.

    Attributes
    ----------
    id:
        Index-wide unique identifier (see :func:`make_chunk_id`).
    document_reference:
        ``prefix@path`` of the parent document.
    source_reference:
        The source prefix, used for scoped queries and deletes.
    content:
        Exact substring of the parent document's text.
    embedding:
        Vector for ``content``; ``None`` until the embedder has run.
    order:
        0-based position of the chunk in the parent document.
    """

    id: str
    document_reference: str
    source_reference: str = ""
    content: str = ""
    embedding: list[float] | None = None
    order: int = 0

    def without_embedding(self) -> TextChunk:
        return self.model_copy(update={"embedding": None})


class SearchStatus(str, Enum):
    FOUND = "found"
    INDEX_MISSING = "index_missing"
    FAILED = "failed"


class SearchOutcome(BaseModel):
    """Result of a vector search, branching on status instead of exceptions."""

    status: SearchStatus
    chunks: list[TextChunk] = Field(default_factory=list)
    reason: str = ""

    @classmethod
    def found(cls, chunks: list[TextChunk]) -> SearchOutcome:
        return cls(status=SearchStatus.FOUND, chunks=chunks)

    @classmethod
    def index_missing(cls) -> SearchOutcome:
        return cls(status=SearchStatus.INDEX_MISSING, reason="index does not exist")

    @classmethod
    def failed(cls, reason: str) -> SearchOutcome:
        return cls(status=SearchStatus.FAILED, reason=reason)
