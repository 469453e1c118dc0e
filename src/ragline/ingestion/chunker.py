"""Fixed-window text chunking with overlap."""

from __future__ import annotations

from ragline.retrieval.models import TextChunk, make_chunk_id, split_document_reference

DEFAULT_CHUNK_SIZE = 5000
DEFAULT_OVERLAP = 100


def chunk_text(
    text: str,
    document_reference: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[TextChunk]:
    """Split *text* into windows of *chunk_size* characters.

    Consecutive windows share *overlap* characters; the last window may be
    shorter.  *chunk_size* is clamped to ``[0, len(text)]`` and *overlap*
    falls back to ``0`` when it is not smaller than the clamped size.

    Parameters
    ----------
    text:
        Full document text.
    document_reference:
        ``prefix@path`` of the document.  The prefix becomes each chunk's
        ``source_reference``.
    chunk_size:
        Maximum number of characters per chunk.
    overlap:
        Number of characters repeated from the end of one chunk at the
        start of the next.

    Returns
    -------
    list[TextChunk]
        Chunks in text order, without embeddings.

    Raises
    ------
    ValueError
        If *document_reference* lacks the ``@`` separator.
    """
    source_reference, _ = split_document_reference(document_reference)

    text_length = len(text)
    chunk_size = max(0, min(chunk_size, text_length))
    if overlap >= chunk_size or overlap < 0:
        overlap = 0
    step = chunk_size - overlap

    chunks: list[TextChunk] = []
    if step <= 0:
        return chunks

    for order, start in enumerate(range(0, text_length, step)):
        end = min(start + chunk_size, text_length)
        chunks.append(
            TextChunk(
                id=make_chunk_id(document_reference, order),
                document_reference=document_reference,
                source_reference=source_reference,
                content=text[start:end],
                order=order,
            )
        )
        if end >= text_length:
            break
    return chunks
