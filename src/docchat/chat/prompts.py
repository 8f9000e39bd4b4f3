"""System preambles and prompt assembly for chat turns."""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from docchat.models import MessageRole

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from docchat.models import Message
    from docchat.retrieval.models import RetrievalResult

# ── Preambles ─────────────────────────────────────────────────────────

PLAIN_SYSTEM = "You are a helpful AI assistant."

GROUNDED_SYSTEM = """\
You are a helpful AI assistant. Use the following documents as context to \
answer the user's question. If the documents don't contain relevant \
information, you can use your general knowledge but mention that the \
information isn't from the provided documents.

Documents:
{context}"""


def format_context(results: list[RetrievalResult]) -> str:
    """Label each passage with its source file."""
    return "\n\n".join(f"[Source: {r.filename}]\n{r.content}" for r in results)


def build_system_prompt(results: list[RetrievalResult] | None) -> str:
    if not results:
        return PLAIN_SYSTEM
    return GROUNDED_SYSTEM.format(context=format_context(results))


# ── Prompt assembly ───────────────────────────────────────────────────

_ROLE_TO_MESSAGE = {
    MessageRole.SYSTEM: SystemMessage,
    MessageRole.USER: HumanMessage,
    MessageRole.ASSISTANT: AIMessage,
}


def build_prompt(
    question: str,
    history: list[Message],
    results: list[RetrievalResult] | None = None,
) -> list[BaseMessage]:
    """Assemble ``[system, *history, user]`` for one turn.

    Parameters
    ----------
    question:
        The user's new message.
    history:
        Prior messages of the conversation in creation order.
    results:
        Retrieved passages; when non-empty the grounded preamble is used.
    """
    messages: list[BaseMessage] = [SystemMessage(content=build_system_prompt(results))]
    messages.extend(_ROLE_TO_MESSAGE[m.role](content=m.content) for m in history)
    messages.append(HumanMessage(content=question))
    return messages
