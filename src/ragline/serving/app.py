"""FastAPI application exposing ingestion and retrieval-augmented querying."""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, status
from pydantic import BaseModel, Field

from ragline.config import configure_logging, settings
from ragline.errors import AuthorizationError, NeedsIngestionError
from ragline.ingestion.progress import IngestionProgress
from ragline.query.rag import ChatHistory
from ragline.service import RaglineService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_service() -> RaglineService:
    return RaglineService.from_settings()


_histories: OrderedDict[str, ChatHistory] = OrderedDict()


def get_chat_history(session_id: str) -> ChatHistory:
    """History for *session_id*; least recently used sessions beyond ``chat_sessions_max`` are dropped."""
    history = _histories.get(session_id)
    if history is not None:
        _histories.move_to_end(session_id)
        return history

    history = _histories[session_id] = deque()
    while len(_histories) > settings.chat_sessions_max:
        _histories.popitem(last=False)
    return history


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    service = app.dependency_overrides.get(get_service, get_service)()
    await service.startup()
    yield
    await service.shutdown()


app = FastAPI(
    title="Ragline API",
    version="0.1.0",
    description="Document ingestion and retrieval-augmented question answering.",
    lifespan=lifespan,
)


# ── Request / Response schemas ────────────────────────────────────────
class QueryRequest(BaseModel):
    """Incoming question from the user."""

    query: str = Field(min_length=1)
    session_id: str = "default"


class QueryResponse(BaseModel):
    """Answer plus the references of the chunks used as context."""

    answer: str
    intent: str = ""
    sources: list[str] = []


class IngestResponse(BaseModel):
    status: str


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health(service: RaglineService = Depends(get_service)) -> dict[str, str]:
    """Liveness probe."""
    reachable = await service.vector_store.health_check()
    return {"status": "ok" if reachable else "degraded"}


@app.post("/query", response_model=QueryResponse)
async def query(request: QueryRequest, service: RaglineService = Depends(get_service)) -> QueryResponse:
    """Answer a question using context retrieved from the index."""
    try:
        details = await service.ask(request.query, get_chat_history(request.session_id))
    except NeedsIngestionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    answer = details.response.text if details.response else ""
    intent = details.intent_response.text if details.intent_response else ""
    sources = list(dict.fromkeys(chunk.document_reference for chunk in details.chunks))
    return QueryResponse(answer=answer, intent=intent, sources=sources)


def _log_progress(progress: IngestionProgress) -> None:
    if progress.message:
        logger.info("%s (%d)", progress.message, progress.current_count)


async def _run_ingestion(service: RaglineService) -> None:
    try:
        await service.ingest(_log_progress)
    except Exception:
        logger.exception("Ingestion run failed")


@app.post("/ingest", response_model=IngestResponse, status_code=status.HTTP_202_ACCEPTED)
async def ingest(
    background_tasks: BackgroundTasks,
    service: RaglineService = Depends(get_service),
) -> IngestResponse:
    """Start an ingestion run in the background."""
    if not service.request_ingestion():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ingestion is already running")
    background_tasks.add_task(_run_ingestion, service)
    return IngestResponse(status="started")
