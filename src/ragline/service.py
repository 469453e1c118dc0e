"""Wiring of the ingestion and query pipelines from :class:`~ragline.config.Settings`."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from ragline.config import Settings, settings
from ragline.ingestion.change_tracker import ChangeTracker
from ragline.ingestion.embedder import Embedder, get_embedding_provider
from ragline.ingestion.hash_store import HashStore, SqlHashStore
from ragline.ingestion.orchestrator import IngestionOrchestrator, IngestionSummary
from ragline.ingestion.progress import ProgressSink
from ragline.ingestion.reconciler import Reconciler
from ragline.query.llm import LangChainLlm, LlmProvider, get_llm
from ragline.query.rag import ChatHistory, QueryDetails, RagQuery, RagQueryBuilder
from ragline.retrieval.base import VectorStoreBase
from ragline.retrieval.memory_store import InMemoryVectorStore
from ragline.sources.base import DocumentSource
from ragline.sources.cloud_drive import CloudDriveSource, GraphDriveClient
from ragline.sources.filesystem import FileSystemSource
from ragline.sources.specs import PathProvider
from ragline.sources.website import WebsiteSource

logger = logging.getLogger(__name__)


def build_vector_store(cfg: Settings = settings) -> VectorStoreBase:
    if cfg.vector_backend == "memory":
        return InMemoryVectorStore(cfg.chroma_collection)
    if cfg.vector_backend == "chroma":
        from ragline.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore(
            cfg.chroma_collection,
            host=cfg.chroma_host,
            port=cfg.chroma_port,
            attempts=cfg.store_max_attempts,
            timeout=cfg.store_timeout_seconds,
        )
    raise ValueError(f"Unknown vector backend: {cfg.vector_backend!r}")


def build_sources(cfg: Settings = settings, path_provider: PathProvider | None = None) -> list[DocumentSource]:
    """Instantiate the sources named in ``cfg.enabled_sources``, in that order."""
    path_provider = path_provider or PathProvider(cfg.config_dir, cfg.excluded_paths)
    sources: list[DocumentSource] = []
    for name in cfg.enabled_sources:
        key = name.strip().lower()
        if key == "filesystem":
            sources.append(FileSystemSource(path_provider))
        elif key == "website":
            sources.append(
                WebsiteSource(path_provider, max_pages=cfg.crawl_max_pages, timeout=cfg.http_timeout_seconds)
            )
        elif key == "cloud_drive":
            client = GraphDriveClient(
                cfg.graph_access_token,
                base_url=cfg.graph_base_url,
                timeout=cfg.http_timeout_seconds,
            )
            sources.append(CloudDriveSource(path_provider, client))
        else:
            raise ValueError(f"Unknown document source: {name!r}")
    return sources


class RaglineService:
    """Owns one configured ingestion pipeline and one query pipeline.

    Only one ingestion run executes at a time; a second :meth:`ingest`
    call waits for the first to finish.
    """

    def __init__(
        self,
        *,
        sources: Sequence[DocumentSource],
        hash_store: HashStore,
        vector_store: VectorStoreBase,
        embedder: Embedder,
        llm: LlmProvider,
        chunk_size: int = settings.chunk_size,
        overlap: int = settings.chunk_overlap,
        top_k: int = settings.search_top_k,
        history_size: int = settings.chat_history_size,
    ) -> None:
        self.hash_store = hash_store
        self.vector_store = vector_store
        self.orchestrator = IngestionOrchestrator(
            sources,
            ChangeTracker(hash_store),
            embedder,
            vector_store,
            Reconciler(vector_store, hash_store),
            chunk_size=chunk_size,
            overlap=overlap,
        )
        self.query = RagQuery(
            RagQueryBuilder(llm, embedder, vector_store, top_k=top_k, history_size=history_size),
            llm,
        )
        self._ingest_lock = asyncio.Lock()
        self._ingest_requested = False

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> RaglineService:
        embedder = Embedder(
            get_embedding_provider(),
            backoff_seconds=cfg.embed_backoff_seconds,
            max_attempts=cfg.embed_max_attempts,
            outer_attempts=cfg.embed_outer_attempts,
        )
        return cls(
            sources=build_sources(cfg),
            hash_store=SqlHashStore(cfg.hash_db_url),
            vector_store=build_vector_store(cfg),
            embedder=embedder,
            llm=LangChainLlm(get_llm(), attempts=cfg.store_max_attempts),
            chunk_size=cfg.chunk_size,
            overlap=cfg.chunk_overlap,
            top_k=cfg.search_top_k,
            history_size=cfg.chat_history_size,
        )

    async def startup(self) -> None:
        if isinstance(self.hash_store, SqlHashStore):
            await self.hash_store.init_schema()

    async def shutdown(self) -> None:
        if isinstance(self.hash_store, SqlHashStore):
            await self.hash_store.dispose()

    @property
    def ingesting(self) -> bool:
        return self._ingest_requested or self._ingest_lock.locked()

    def request_ingestion(self) -> bool:
        """Reserve the next ingestion run; ``False`` while one is pending or running."""
        if self.ingesting:
            return False
        self._ingest_requested = True
        return True

    async def ingest(
        self,
        progress: ProgressSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> IngestionSummary:
        try:
            async with self._ingest_lock:
                return await self.orchestrator.ingest(progress, cancel)
        finally:
            self._ingest_requested = False

    async def ask(
        self,
        user_text: str,
        chat_history: ChatHistory,
        cancel: asyncio.Event | None = None,
    ) -> QueryDetails:
        return await self.query.prompt(user_text, chat_history, cancel)
