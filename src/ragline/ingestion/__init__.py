"""
Ingestion: turning source documents into embedded chunks in the vector index.

Public surface
--------------
- :class:`IngestionOrchestrator`: one pass over all sources.
- :class:`ChangeTracker` / :class:`SqlHashStore`: content-hash change detection.
- :class:`Embedder`: resilient embedding of chunk text.
- :class:`Reconciler`: removal of documents deleted at their source.
- :func:`chunk_text`: fixed-size, overlapping chunking.
"""

from ragline.ingestion.change_tracker import ChangeTracker, compute_sha256_hash
from ragline.ingestion.chunker import chunk_text
from ragline.ingestion.embedder import BUSY_MESSAGE, Embedder, get_embedding_provider
from ragline.ingestion.hash_store import HashStore, SqlHashStore
from ragline.ingestion.orchestrator import IngestionOrchestrator, IngestionSummary
from ragline.ingestion.progress import IngestionProgress, ProgressSink
from ragline.ingestion.reconciler import Reconciler, ReconcileResult

__all__ = [
    "BUSY_MESSAGE",
    "ChangeTracker",
    "Embedder",
    "HashStore",
    "IngestionOrchestrator",
    "IngestionProgress",
    "IngestionSummary",
    "ProgressSink",
    "ReconcileResult",
    "Reconciler",
    "SqlHashStore",
    "chunk_text",
    "compute_sha256_hash",
    "get_embedding_provider",
]
