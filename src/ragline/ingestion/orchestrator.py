"""One ingestion pass over every configured document source.

Per source the pass is:

1. enumerate documents lazily, extracting text from each,
2. skip documents whose content hash did not change,
3. chunk, embed and upsert the rest,
4. reconcile the source's prefix so deleted documents leave the index.

Documents are processed one at a time.  Failures that concern a single
document (extraction, embedding, upsert) are logged and the pass moves on.
A source whose enumeration fails part way is logged, left unreconciled and
followed by the next source.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from ragline.config import settings
from ragline.ingestion.change_tracker import ChangeTracker
from ragline.ingestion.chunker import chunk_text
from ragline.ingestion.embedder import Embedder
from ragline.ingestion.progress import ProgressSink, report
from ragline.ingestion.reconciler import Reconciler
from ragline.resilience import is_cancelled
from ragline.retrieval.base import VectorStoreBase
from ragline.sources.base import DocumentInfo, DocumentSource

logger = logging.getLogger(__name__)


@dataclass
class IngestionSummary:
    """Counters for one :meth:`IngestionOrchestrator.ingest` call."""

    scanned: int = 0
    ingested: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    stale_removed: int = 0
    cancelled: bool = False


def _validate(document: DocumentInfo) -> None:
    if document is None:
        raise ValueError("document is required")
    if document.content is None:
        raise ValueError(f"{document.path!r} has no content stream")
    if document.document_type is None:
        raise ValueError(f"{document.path!r} has no document type")
    if not document.path:
        raise ValueError("document path is required")
    if not document.document_reference:
        raise ValueError("document reference is required")


class IngestionOrchestrator:
    """Drives sources through change detection, embedding, indexing and reconciliation.

    Parameters
    ----------
    sources:
        Document sources, processed in order.
    change_tracker:
        Decides which documents changed since the last pass.
    embedder:
        Produces chunk embeddings.
    vector_store:
        Index receiving the chunks.
    reconciler:
        Removes documents that vanished from a source.
    chunk_size, overlap:
        Chunking parameters.
    """

    def __init__(
        self,
        sources: Sequence[DocumentSource],
        change_tracker: ChangeTracker,
        embedder: Embedder,
        vector_store: VectorStoreBase,
        reconciler: Reconciler,
        *,
        chunk_size: int = settings.chunk_size,
        overlap: int = settings.chunk_overlap,
    ) -> None:
        self._sources = list(sources)
        self._change_tracker = change_tracker
        self._embedder = embedder
        self._vector_store = vector_store
        self._reconciler = reconciler
        self._chunk_size = chunk_size
        self._overlap = overlap

    async def ingest(
        self,
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> IngestionSummary:
        summary = IngestionSummary()

        report(progress, "Processing document sources...")

        for source in self._sources:
            report(progress, f"Starting on the {source.description} Document Source")

            try:
                seen = await self._ingest_source(source, summary, progress, cancel)
            except ValueError:
                raise
            except Exception:
                # Seen set is incomplete; reconciling would drop live documents.
                logger.error(
                    "The %s Document Source stopped early; skipping reconciliation of %s",
                    source.description,
                    source.prefix,
                    exc_info=True,
                )
                summary.failed += 1
            else:
                result = await self._reconciler.reconcile(source.prefix, seen, cancel)
                summary.stale_removed += len(result.stale_references)

            report(progress, f"Completed the {source.description} Document Source")
            report(progress, "")

            if is_cancelled(cancel):
                summary.cancelled = True
                logger.info("Ingestion cancelled after %s", source.description)
                break

        report(
            progress,
            f"Ingestion is complete. Total documents processed for this job: {summary.ingested}",
            summary.ingested,
        )
        logger.info("Ingestion finished: %s", summary)
        return summary

    async def _ingest_source(
        self,
        source: DocumentSource,
        summary: IngestionSummary,
        progress: ProgressSink | None,
        cancel: asyncio.Event | None,
    ) -> set[str]:
        seen: set[str] = set()

        async for document in source.get_documents(cancel):
            _validate(document)
            summary.scanned += 1

            try:
                if not document.document_type.can_process:
                    summary.skipped += 1
                    continue

                seen.add(document.document_reference)

                try:
                    full_text = await document.document_type.extract_text(document.content, document.path)
                except Exception:
                    logger.warning("Unable to process file: %s", document.path, exc_info=True)
                    summary.failed += 1
                    continue
            finally:
                document.content.close()

            if not full_text.strip():
                seen.discard(document.document_reference)

            if await self._change_tracker.is_unchanged(document.document_reference, full_text):
                summary.unchanged += 1
                continue

            summary.ingested += 1
            report(progress, f"Ingesting {document.document_reference}", summary.ingested)

            try:
                await self._index(document, full_text, progress, cancel)
            except Exception:
                logger.error("Unable to index %s", document.document_reference, exc_info=True)
                await self._change_tracker.forget(document.document_reference)
                summary.ingested -= 1
                summary.failed += 1

            if is_cancelled(cancel):
                break

        return seen

    async def _index(
        self,
        document: DocumentInfo,
        full_text: str,
        progress: ProgressSink | None,
        cancel: asyncio.Event | None,
    ) -> None:
        chunks = chunk_text(full_text, document.document_reference, self._chunk_size, self._overlap)
        embedded = await self._embedder.embed_chunks(chunks, progress, cancel)
        await self._vector_store.create_index(cancel)
        await self._vector_store.upsert(embedded, cancel)
        await self._remove_leftover_chunks(document, {chunk.id for chunk in embedded}, cancel)

    async def _remove_leftover_chunks(
        self,
        document: DocumentInfo,
        current_ids: set[str],
        cancel: asyncio.Event | None,
    ) -> None:
        """Drop chunks of *document* that the new version no longer produces."""
        indexed = await self._vector_store.get_references_by_prefix(document.source_prefix, cancel)
        leftover = [
            chunk.id
            for chunk in indexed
            if chunk.document_reference == document.document_reference and chunk.id not in current_ids
        ]
        if leftover:
            logger.debug("Removing %d outdated chunk(s) of %s", len(leftover), document.document_reference)
            await self._vector_store.delete_by_ids(leftover, cancel)
