"""
Documents: turning raw document bytes into plain text, keyed by file extension.
"""

from ragline.documents.types import (
    DOCUMENT_TYPES,
    DocumentType,
    Html,
    Text,
    Unknown,
    get_document_type,
    supported_extensions,
)

__all__ = [
    "DOCUMENT_TYPES",
    "DocumentType",
    "Html",
    "Text",
    "Unknown",
    "get_document_type",
    "supported_extensions",
]
