"""Prompt text and builders for the query path.

Both LLM calls (intent summarisation and the final answer) take their
wording from this module so it can be reviewed in one place.
"""

from __future__ import annotations

from collections.abc import Iterable

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

# ── 1. Intent summarisation ───────────────────────────────────────────

CONTEXT_MESSAGE = (
    "You're an AI assistant reading the transcript of a conversation "
    "between a user and an assistant. Given the chat history and "
    "user's query, infer the user's real intent."
)

_ROLE_NAMES = {"human": "user", "ai": "assistant", "system": "system", "tool": "tool"}


def render_chat_history(chat_history: Iterable[BaseMessage]) -> str:
    """One ``"<role>: <content>"`` paragraph per message, oldest first."""
    return "".join(
        f"{_ROLE_NAMES.get(message.type, message.type)}: {message.content}\n\n"
        for message in chat_history
    )


def build_intent_prompt(user_text: str, chat_history: Iterable[BaseMessage]) -> list[BaseMessage]:
    """Build the single system message asking the model for the user's intent."""
    return [
        SystemMessage(
            content=(
                CONTEXT_MESSAGE
                + f"\n\nChat History: {render_chat_history(chat_history)}"
                + f"\n\nUser's query: {user_text}"
            )
        )
    ]


# ── 2. Answer ─────────────────────────────────────────────────────────

SYSTEM_MESSAGE = (
    "You are a professional AI bot that returns accurate content for busy workers.\n"
    "Please answer the user's question using only information you can find in the context.\n"
    "If the user's question is unrelated to the information in the context, say you don't know.\n"
)


def build_context(contents: Iterable[str]) -> str:
    """Fence retrieved chunk contents into the context block of the system message."""
    return "\nContext: \n\n```" + "\n\n".join(contents) + "```\n"


def build_answer_prompt(
    user_message: HumanMessage,
    contents: Iterable[str],
    system_message: str = SYSTEM_MESSAGE,
) -> list[BaseMessage]:
    return [
        SystemMessage(content=system_message + build_context(contents)),
        user_message,
    ]
