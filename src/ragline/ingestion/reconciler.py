"""Removal of documents that disappeared from their source.

After a source has been fully enumerated, every reference still present
in the index under that source's prefix but not seen during the pass is
stale.  Its chunks are deleted from the vector store and its hash row
from the hash store.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ragline.ingestion.hash_store import HashStore
from ragline.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    stale_references: list[str] = field(default_factory=list)
    deleted_chunk_ids: list[str] = field(default_factory=list)
    index_deleted: bool = False
    hashes_deleted: bool = False


class Reconciler:
    def __init__(self, vector_store: VectorStoreBase, hash_store: HashStore) -> None:
        self._vector_store = vector_store
        self._hash_store = hash_store

    async def reconcile(
        self,
        source_prefix: str,
        current_references: set[str],
        cancel: asyncio.Event | None = None,
    ) -> ReconcileResult:
        """Delete index chunks and hash rows for references not in *current_references*."""
        result = ReconcileResult()

        try:
            if not await self._vector_store.does_index_exist(cancel):
                return result
            indexed = await self._vector_store.get_references_by_prefix(source_prefix, cancel)
        except Exception:
            logger.error("Unable to list indexed documents for %s", source_prefix, exc_info=True)
            return result

        stale = sorted({chunk.document_reference for chunk in indexed} - set(current_references))
        if not stale:
            logger.info("No deleted documents to remove for %s", source_prefix)
            return result

        stale_set = set(stale)
        result.stale_references = stale
        result.deleted_chunk_ids = [chunk.id for chunk in indexed if chunk.document_reference in stale_set]

        try:
            await self._vector_store.delete_by_ids(result.deleted_chunk_ids, cancel)
            result.index_deleted = True
        except Exception:
            logger.error(
                "Unable to delete %d chunk(s) for %s from the index",
                len(result.deleted_chunk_ids),
                source_prefix,
                exc_info=True,
            )

        try:
            await self._hash_store.delete(stale)
            result.hashes_deleted = True
        except Exception:
            logger.error("Unable to delete doc hashes - %s", ", ".join(stale), exc_info=True)

        logger.info("Removed %d deleted document(s) from %s", len(stale), source_prefix)
        return result
