"""Hash-based change detection for documents.

This is an optimization so unchanged documents are not re-chunked and
re-embedded.  Store mutations are best-effort: a failing write is logged
and the verdict is still returned, so the ingestion pass keeps going.
"""

from __future__ import annotations

import hashlib
import logging

from ragline.ingestion.hash_store import HashStore

logger = logging.getLogger(__name__)


def compute_sha256_hash(text: str) -> str:
    """Hex SHA-256 digest of the UTF-8 encoding of *text*."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ChangeTracker:
    def __init__(self, hash_store: HashStore) -> None:
        self._store = hash_store

    async def is_unchanged(self, document_reference: str, full_text: str) -> bool:
        """Return ``True`` when the document can be skipped.

        * blank text with a stored hash: the row is deleted, skip
        * blank text and nothing stored: skip, no mutation
        * unknown reference: insert, process
        * different hash: update, process
        * same hash: skip
        """
        new_hash = compute_sha256_hash(full_text)

        try:
            stored_hash = await self._store.get_hash(document_reference)
        except Exception:
            logger.error("Unable to read doc hash - %s", document_reference, exc_info=True)
            stored_hash = None

        if not full_text.strip():
            if stored_hash is None:
                logger.info("%s has no text and no stored hash; skipping", document_reference)
                return True
            try:
                await self._store.delete([document_reference])
                logger.info("%s has no text; deleted from hash table", document_reference)
            except Exception:
                logger.error("Unable to delete doc hash - %s", document_reference, exc_info=True)
            return True

        if stored_hash is None:
            try:
                await self._store.insert(document_reference, new_hash)
                logger.info("%s inserted into hash table", document_reference)
            except Exception:
                logger.error(
                    "Unable to insert doc hash - %s, %s", document_reference, new_hash, exc_info=True
                )
            return False

        if stored_hash != new_hash:
            try:
                await self._store.update(document_reference, new_hash)
                logger.info("%s updated in hash table", document_reference)
            except Exception:
                logger.error(
                    "Unable to update doc hash - %s, %s", document_reference, new_hash, exc_info=True
                )
            return False

        return True

    async def forget(self, document_reference: str) -> None:
        """Drop the stored hash so the next pass treats the document as new."""
        try:
            await self._store.delete([document_reference])
        except Exception:
            logger.error("Unable to delete doc hash - %s", document_reference, exc_info=True)
