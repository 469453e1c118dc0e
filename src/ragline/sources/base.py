"""Document-source abstraction shared by every backing store."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import BinaryIO

from ragline.documents.types import DocumentType
from ragline.retrieval.models import REFERENCE_SEPARATOR


@dataclass(frozen=True)
class DocumentInfo:
    """Everything the pipeline needs to ingest one document.

    Attributes
    ----------
    source_prefix:
        Namespace of the source that produced the document.
    content:
        Binary stream with the document data.  Closed by the consumer
        once the text has been extracted.
    document_type:
        Handler used to extract text from ``content``.
    path:
        Full path / URL of the document within its source.
    source_description:
        Description of the configured location the document came from.
    """

    source_prefix: str
    content: BinaryIO
    document_type: DocumentType
    path: str
    source_description: str = ""
    document_reference: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "document_reference", f"{self.source_prefix}{REFERENCE_SEPARATOR}{self.path}"
        )


class DocumentSource(ABC):
    """Produces a lazy, cancellable stream of documents.

    ``prefix`` namespaces everything the source contributes to the index,
    so reconciliation can scope deletions to one source.
    """

    description: str = ""

    @property
    @abstractmethod
    def prefix(self) -> str: ...

    @abstractmethod
    def get_documents(self, cancel: asyncio.Event | None = None) -> AsyncIterator[DocumentInfo]:
        """Yield documents until exhausted or *cancel* is set."""
        ...
