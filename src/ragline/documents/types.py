"""Document types and the extension → type registry.

The registry is a closed table built at import time.  Anything that is
not listed resolves to :class:`Unknown`, which the ingestion pipeline
skips without attempting extraction.
"""

from __future__ import annotations

import asyncio
from pathlib import PurePosixPath
from typing import BinaryIO

from bs4 import BeautifulSoup


class DocumentType:
    """A kind of document the pipeline can turn into plain text."""

    supported_extensions: tuple[str, ...] = ()
    can_process: bool = True

    async def extract_text(self, stream: BinaryIO, file_name: str) -> str:
        raise NotImplementedError(f"{type(self).__name__} cannot extract text")

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Text(DocumentType):
    supported_extensions = (".txt",)

    async def extract_text(self, stream: BinaryIO, file_name: str) -> str:
        data = await asyncio.to_thread(stream.read)
        return data.decode("utf-8", errors="replace")


class Csv(Text):
    supported_extensions = (".csv",)


class Tsv(Text):
    supported_extensions = (".tsv",)


class Markdown(Text):
    supported_extensions = (".markdown", ".mdown", ".mkdn", ".mkd", ".mdwn", ".md")


class AsciiDoc(Text):
    supported_extensions = (".adoc", ".asc", ".asciidoc")


class Html(DocumentType):
    supported_extensions = (".html", ".htm")

    async def extract_text(self, stream: BinaryIO, file_name: str) -> str:
        data = await asyncio.to_thread(stream.read)
        soup = BeautifulSoup(data, "html.parser")
        # Strip boiler-plate tags
        for tag in soup(["script", "style", "noscript", "iframe"]):
            tag.decompose()
        return soup.get_text(separator="\n", strip=True)


class Unknown(DocumentType):
    can_process = False


_DOCUMENT_TYPES: tuple[type[DocumentType], ...] = (Text, Csv, Tsv, Markdown, AsciiDoc, Html)

DOCUMENT_TYPES: dict[str, type[DocumentType]] = {
    extension: doc_type
    for doc_type in _DOCUMENT_TYPES
    if doc_type.can_process
    for extension in doc_type.supported_extensions
}
"""Mapping of lower-case file extension → document type class."""


def get_document_type(file_name: str) -> DocumentType:
    """Return the document type for *file_name* based on its extension."""
    extension = PurePosixPath(file_name).suffix.lower()
    return DOCUMENT_TYPES.get(extension, Unknown)()


def supported_extensions() -> list[str]:
    return sorted(DOCUMENT_TYPES)
