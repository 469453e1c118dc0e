"""Unit tests for the retrieval-augmented query path."""

from __future__ import annotations

import asyncio
from collections import deque

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from ragline.errors import NeedsIngestionError, RaglineError
from ragline.ingestion.embedder import Embedder
from ragline.query.llm import ChatRequest, ChatResponse, LangChainLlm
from ragline.query.prompts import CONTEXT_MESSAGE, SYSTEM_MESSAGE, build_context, render_chat_history
from ragline.query.rag import RagQuery, RagQueryBuilder, manage_chat_history
from ragline.retrieval.memory_store import InMemoryVectorStore
from ragline.retrieval.models import SearchOutcome, TextChunk


class KeywordEmbeddings(Embeddings):
    """Vectors counting two keywords, enough to rank the fixtures."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count("kettle")) + 0.01, float(lowered.count("garden")) + 0.01]


class ScriptedLlm:
    """Returns queued answers and records every request."""

    def __init__(self, *answers: str) -> None:
        self.answers = list(answers)
        self.requests: list[ChatRequest] = []

    async def prompt(self, request: ChatRequest, cancel: asyncio.Event | None = None) -> ChatResponse:
        self.requests.append(request)
        return ChatResponse(text=self.answers.pop(0) if self.answers else "")


async def populated_store() -> InMemoryVectorStore:
    store = InMemoryVectorStore()
    await store.create_index()
    embeddings = KeywordEmbeddings()
    for order, content in enumerate(["Descale the kettle monthly.", "Water the garden at dawn."]):
        await store.upsert(
            [
                TextChunk(
                    id=f"c{order}",
                    document_reference=f"src@doc{order}.txt",
                    source_reference="src",
                    content=content,
                    embedding=embeddings.embed_query(content),
                )
            ]
        )
    return store


def builder(llm: ScriptedLlm, store: InMemoryVectorStore, **kwargs: int) -> RagQueryBuilder:
    embedder = Embedder(KeywordEmbeddings(), backoff_seconds=0, max_attempts=1, outer_attempts=1)
    return RagQueryBuilder(llm, embedder, store, **kwargs)


# ── Chat history ───────────────────────────────────────────────────────


def test_history_never_exceeds_window_and_evicts_oldest() -> None:
    history: deque = deque()
    for turn in range(12):
        manage_chat_history(history, HumanMessage(content=f"q{turn}"), window=5)
        assert len(history) <= 5

    assert [m.content for m in history] == ["q7", "q8", "q9", "q10", "q11"]


def test_render_chat_history_uses_role_names() -> None:
    rendered = render_chat_history([HumanMessage(content="hi"), AIMessage(content="hello")])
    assert rendered == "user: hi\n\nassistant: hello\n\n"


def test_build_context_fences_contents() -> None:
    assert build_context(["one", "two"]) == "\nContext: \n\n```one\n\ntwo```\n"


# ── Builder ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_build_request_structure() -> None:
    llm = ScriptedLlm("how to descale a kettle")
    store = await populated_store()
    history: deque = deque([HumanMessage(content="I have a kettle")])

    details = await builder(llm, store, top_k=1).build_request("How often?", history)

    intent_prompt = llm.requests[0].messages[0]
    assert isinstance(intent_prompt, SystemMessage)
    assert intent_prompt.content == (
        CONTEXT_MESSAGE + "\n\nChat History: user: I have a kettle\n\n" + "\n\nUser's query: How often?"
    )
    assert details.intent_response.text == "how to descale a kettle"

    system, user = details.request.messages
    assert isinstance(system, SystemMessage)
    assert system.content == SYSTEM_MESSAGE + build_context(["Descale the kettle monthly."])
    assert isinstance(user, HumanMessage)
    assert user.content == "How often?"

    assert [c.content for c in details.chunks] == ["Descale the kettle monthly."]
    assert all(c.embedding is None for c in details.chunks)
    assert [m.content for m in history] == ["I have a kettle", "How often?"]


@pytest.mark.asyncio
async def test_missing_index_raises_needs_ingestion() -> None:
    llm = ScriptedLlm("anything")
    history: deque = deque()

    with pytest.raises(NeedsIngestionError):
        await builder(llm, InMemoryVectorStore()).build_request("hello", history)
    assert len(history) == 0


@pytest.mark.asyncio
async def test_failed_search_raises() -> None:
    store = InMemoryVectorStore()

    async def failing_search(*args, **kwargs) -> SearchOutcome:  # noqa: ANN002, ANN003
        return SearchOutcome.failed("timeout")

    store.search = failing_search  # type: ignore[method-assign]

    with pytest.raises(RaglineError, match="timeout"):
        await builder(ScriptedLlm("x"), store).build_request("hello", deque())


@pytest.mark.asyncio
async def test_empty_intent_falls_back_to_user_text() -> None:
    llm = ScriptedLlm("")
    store = await populated_store()

    details = await builder(llm, store, top_k=1).build_request("my garden is dry", deque())

    assert details.intent_response.text == ""
    assert [c.content for c in details.chunks] == ["Water the garden at dawn."]


@pytest.mark.asyncio
async def test_blank_user_text_is_rejected() -> None:
    with pytest.raises(ValueError):
        await builder(ScriptedLlm(), InMemoryVectorStore()).build_request("  ", deque())


# ── Query ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ask_returns_answer_text() -> None:
    llm = ScriptedLlm("kettle care", "Once a month.")
    store = await populated_store()
    query = RagQuery(builder(llm, store), llm)

    assert await query.ask("How often should I descale?") == "Once a month."
    assert len(llm.requests) == 2


@pytest.mark.asyncio
async def test_prompt_attaches_response() -> None:
    llm = ScriptedLlm("kettle care", "Once a month.")
    store = await populated_store()
    history: deque = deque()

    details = await RagQuery(builder(llm, store), llm).prompt("How often?", history)

    assert details.response.text == "Once a month."
    assert len(history) == 1


# ── LangChain adapter ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_langchain_llm_returns_message_content() -> None:
    llm = LangChainLlm(FakeListChatModel(responses=["forty-two"]), attempts=1)

    response = await llm.prompt(ChatRequest(messages=[HumanMessage(content="answer?")]))

    assert response.text == "forty-two"


@pytest.mark.asyncio
async def test_langchain_llm_rejects_empty_request() -> None:
    llm = LangChainLlm(FakeListChatModel(responses=["x"]), attempts=1)
    with pytest.raises(ValueError):
        await llm.prompt(ChatRequest(messages=[]))
