"""Retrieval-augmented query construction.

Given the user's text and the conversation so far, :class:`RagQueryBuilder`

1. asks the LLM what the user actually wants (the *intent*),
2. embeds the intent and pulls the nearest chunks from the index,
3. fences the chunk contents into the system message,
4. appends the user's message to the bounded chat history.

:class:`RagQuery` sends the built request to the LLM.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field

from langchain_core.messages import BaseMessage, HumanMessage

from ragline.config import settings
from ragline.errors import NeedsIngestionError, RaglineError
from ragline.ingestion.embedder import Embedder
from ragline.query.llm import ChatRequest, ChatResponse, LlmProvider
from ragline.query.prompts import SYSTEM_MESSAGE, build_answer_prompt, build_intent_prompt
from ragline.retrieval.base import VectorStoreBase
from ragline.retrieval.models import SearchOutcome, SearchStatus, TextChunk

logger = logging.getLogger(__name__)

ChatHistory = deque[BaseMessage]


@dataclass
class QueryDetails:
    """Everything that went into (and came out of) one query.

    Attributes
    ----------
    request:
        The final request: system message with context, then the user message.
    chunks:
        Retrieved chunks, embeddings stripped.
    intent_request, intent_response:
        The intent-summarisation round trip.
    response:
        The LLM's answer; set by :meth:`RagQuery.prompt`.
    """

    request: ChatRequest
    chunks: list[TextChunk] = field(default_factory=list)
    intent_request: ChatRequest | None = None
    intent_response: ChatResponse | None = None
    response: ChatResponse | None = None


def manage_chat_history(chat_history: ChatHistory, message: BaseMessage, window: int) -> None:
    """Append *message*, evicting the oldest entries so at most *window* remain."""
    window = max(1, window)
    while len(chat_history) >= window:
        chat_history.popleft()
    chat_history.append(message)


class RagQueryBuilder:
    """Builds the LLM request for a user query.

    Parameters
    ----------
    llm:
        Used for intent summarisation.
    embedder:
        Embeds the summarised intent.
    vector_store:
        Index searched for context.
    top_k:
        Number of chunks placed in the context.
    history_size:
        Chat-history window.
    """

    def __init__(
        self,
        llm: LlmProvider,
        embedder: Embedder,
        vector_store: VectorStoreBase,
        *,
        top_k: int = settings.search_top_k,
        history_size: int = settings.chat_history_size,
        system_message: str = SYSTEM_MESSAGE,
    ) -> None:
        self._llm = llm
        self._embedder = embedder
        self._vector_store = vector_store
        self.top_k = top_k
        self.history_size = history_size
        self.system_message = system_message

    async def summarize_user_intent(
        self,
        user_text: str,
        chat_history: ChatHistory,
        cancel: asyncio.Event | None = None,
    ) -> tuple[ChatRequest, ChatResponse]:
        request = ChatRequest(messages=build_intent_prompt(user_text, chat_history))
        response = await self._llm.prompt(request, cancel)
        if response is None:
            response = ChatResponse()
        response.text = response.text or ""
        return request, response

    async def search(self, text: str, cancel: asyncio.Event | None = None) -> SearchOutcome:
        """Embed *text* and return the nearest chunks without their embeddings."""
        embedding = await self._embedder.embed(text, cancel=cancel)
        outcome = await self._vector_store.search(embedding, k=self.top_k, cancel=cancel)
        if outcome.status is SearchStatus.FOUND:
            outcome = SearchOutcome.found([chunk.without_embedding() for chunk in outcome.chunks])
        return outcome

    async def build_request(
        self,
        user_text: str,
        chat_history: ChatHistory,
        cancel: asyncio.Event | None = None,
    ) -> QueryDetails:
        """Build the answer request and record *user_text* in *chat_history*.

        Raises
        ------
        NeedsIngestionError
            The index has not been created yet.
        RaglineError
            The search failed for another reason.
        """
        if not user_text or not user_text.strip():
            raise ValueError("user_text must not be empty")

        intent_request, intent_response = await self.summarize_user_intent(user_text, chat_history, cancel)
        intent = intent_response.text
        logger.debug("Summarised intent: %s", intent)

        outcome = await self.search(intent or user_text, cancel)
        if outcome.status is SearchStatus.INDEX_MISSING:
            raise NeedsIngestionError()
        if outcome.status is SearchStatus.FAILED:
            raise RaglineError(f"Search failed: {outcome.reason}")

        user_message = HumanMessage(content=user_text)
        request = ChatRequest(
            messages=build_answer_prompt(
                user_message,
                (chunk.content for chunk in outcome.chunks),
                self.system_message,
            )
        )

        manage_chat_history(chat_history, user_message, self.history_size)

        return QueryDetails(
            request=request,
            chunks=outcome.chunks,
            intent_request=intent_request,
            intent_response=intent_response,
        )


class RagQuery:
    """Answers user questions against the index."""

    def __init__(self, builder: RagQueryBuilder, llm: LlmProvider) -> None:
        self._builder = builder
        self._llm = llm

    async def prompt(
        self,
        user_text: str,
        chat_history: ChatHistory,
        cancel: asyncio.Event | None = None,
    ) -> QueryDetails:
        details = await self._builder.build_request(user_text, chat_history, cancel)
        details.response = await self._llm.prompt(details.request, cancel)
        return details

    async def ask(
        self,
        user_text: str,
        chat_history: ChatHistory | None = None,
        cancel: asyncio.Event | None = None,
    ) -> str:
        history: ChatHistory = chat_history if chat_history is not None else deque()
        details = await self.prompt(user_text, history, cancel)
        return details.response.text if details.response else ""
