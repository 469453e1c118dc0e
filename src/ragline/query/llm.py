"""LLM access: one request/response shape, one place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default): set ``RAGLINE_OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint**: set ``RAGLINE_LLM_BASE_URL`` (vLLM,
   Ollama, Azure OpenAI proxy ...).  ``ChatOpenAI`` works unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI

from ragline.config import settings
from ragline.errors import AuthorizationError, classify_provider_error
from ragline.resilience import call_with_retry

logger = logging.getLogger(__name__)


@dataclass
class ChatRequest:
    """Messages plus model options (``temperature``, ``max_tokens`` ...)."""

    messages: list[BaseMessage]
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatResponse:
    text: str = ""
    raw: Any = None


class LlmProvider(Protocol):
    async def prompt(self, request: ChatRequest, cancel: asyncio.Event | None = None) -> ChatResponse: ...


def get_llm(temperature: float = 0.0) -> ChatOpenAI:
    """Return the configured chat model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    OpenAI-compatible endpoint.  A dummy API key (``"EMPTY"``) is used
    when none is configured, since such servers often need none.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": temperature,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)


class LangChainLlm:
    """:class:`LlmProvider` adapting any LangChain chat model.

    Parameters
    ----------
    chat_model:
        Model to invoke; ``request.options`` are bound onto it per call.
    attempts:
        Total attempts per prompt.  Authorization failures are not retried.
    """

    def __init__(
        self,
        chat_model: BaseChatModel,
        *,
        attempts: int = settings.store_max_attempts,
        timeout: float | None = None,
    ) -> None:
        self._chat_model = chat_model
        self._attempts = attempts
        self._timeout = timeout

    async def prompt(self, request: ChatRequest, cancel: asyncio.Event | None = None) -> ChatResponse:
        if not request.messages:
            raise ValueError("request.messages must not be empty")

        model = self._chat_model.bind(**request.options) if request.options else self._chat_model

        async def invoke() -> Any:
            try:
                return await model.ainvoke(request.messages)
            except Exception as exc:
                err = classify_provider_error(exc)
                if err is exc:
                    raise
                raise err from exc

        try:
            result = await call_with_retry(
                invoke, attempts=self._attempts, timeout=self._timeout, cancel=cancel
            )
        except AuthorizationError:
            logger.error("Please check credentials and exception details for more info.", exc_info=True)
            raise

        content = getattr(result, "content", result)
        return ChatResponse(text=content if isinstance(content, str) else "", raw=result)
