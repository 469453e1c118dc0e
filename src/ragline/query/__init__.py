"""
Query: answering questions with context retrieved from the index.

Public surface
--------------
- :class:`RagQuery`: build the request, send it, return the answer.
- :class:`RagQueryBuilder`: intent summarisation, search, request construction.
- :class:`LangChainLlm` / :func:`get_llm`: the default LLM provider.
"""

from ragline.query.llm import ChatRequest, ChatResponse, LangChainLlm, LlmProvider, get_llm
from ragline.query.rag import ChatHistory, QueryDetails, RagQuery, RagQueryBuilder, manage_chat_history

__all__ = [
    "ChatHistory",
    "ChatRequest",
    "ChatResponse",
    "LangChainLlm",
    "LlmProvider",
    "QueryDetails",
    "RagQuery",
    "RagQueryBuilder",
    "get_llm",
    "manage_chat_history",
]
