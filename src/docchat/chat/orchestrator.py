"""Chat orchestration: context assembly, streamed generation, transcript persistence.

A turn moves through ``ASSEMBLING → GENERATING → PERSISTING → DONE``.
Generation failures end in ``FAILED`` and a consumer that stops reading
ends the turn in ``CANCELLED``; in both cases the assistant reply is
discarded whole and only the user message remains in the transcript.

Usage::

    orchestrator = ChatOrchestrator(repository, retrieval, ModelBackendFactory())
    async for event in orchestrator.run_turn(TurnRequest(owner_id="u1", message="Hi", model="openai/gpt-4o-mini")):
        print(event.payload())
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum

from langchain_core.messages import BaseMessage
from pydantic import BaseModel

from docchat.chat.events import ChatEvent, ChunkEvent, DoneEvent, ErrorEvent
from docchat.chat.llm import ModelBackend, ModelBackendFactory
from docchat.chat.prompts import build_prompt
from docchat.config import settings
from docchat.errors import ConversationNotFound, ModelBackendError
from docchat.models import Citation, Conversation, Message, MessageRole
from docchat.retrieval.retriever import RetrievalService
from docchat.store.base import Repository

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50


class TurnState(str, Enum):
    ASSEMBLING = "assembling"
    GENERATING = "generating"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TurnRequest(BaseModel):
    """One user message to answer.

    Attributes
    ----------
    owner_id:
        The caller; scopes conversation lookup and retrieval.
    message:
        The user's text.
    model:
        Registry id of the model to answer with.
    conversation_id:
        Conversation to continue; a new one is created when omitted.
    use_documents:
        Ground the answer in the caller's indexed documents.
    """

    owner_id: str
    message: str
    model: str = settings.default_model
    conversation_id: str | None = None
    use_documents: bool = False


@dataclass
class Turn:
    """Observable state of one chat turn."""

    request: TurnRequest
    state: TurnState = TurnState.ASSEMBLING
    conversation_id: str | None = None
    user_message_id: str | None = None
    assistant_message_id: str | None = None
    citations: list[Citation] = field(default_factory=list)
    prompt: list[BaseMessage] = field(default_factory=list, repr=False)
    backend: ModelBackend | None = field(default=None, repr=False)


class ChatOrchestrator:
    """Runs chat turns against the configured model backends.

    Parameters
    ----------
    repository:
        Conversation and message persistence.
    retrieval:
        Retrieval service used for grounded turns.
    backends:
        Resolves model ids to streaming backends.
    timeout_s:
        Upper bound on generation for a whole turn; ``0`` disables it.
    """

    def __init__(
        self,
        repository: Repository,
        retrieval: RetrievalService,
        backends: ModelBackendFactory,
        *,
        timeout_s: float = settings.generation_timeout_s,
    ) -> None:
        self._repository = repository
        self._retrieval = retrieval
        self._backends = backends
        self.timeout_s = timeout_s

    async def run_turn(self, request: TurnRequest) -> AsyncIterator[ChatEvent]:
        """Answer *request*, yielding chunk events then one done or error event.

        Raises
        ------
        UnknownModel
            Before any event, if ``request.model`` is not registered.
        ConversationNotFound
            Before any event, if the conversation is not the caller's.
        """
        turn = await self.start_turn(request)
        events = self.stream_turn(turn)
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()

    async def start_turn(self, request: TurnRequest) -> Turn:
        """Assemble the prompt and store the user message.

        Everything that can be rejected is checked here, so an HTTP
        caller can answer 4xx before committing to a stream.
        """
        turn = Turn(request=request)
        turn.backend = self._backends.get(request.model)

        conversation = self._resolve_conversation(request)
        turn.conversation_id = conversation.id
        history = self._repository.list_messages(conversation.id)

        results = []
        if request.use_documents:
            results = await self._retrieval.retrieve(request.message, request.owner_id)
        turn.citations = [r.to_citation() for r in results]
        turn.prompt = build_prompt(request.message, history, results)

        user_message = self._repository.add_message(
            Message(conversation_id=conversation.id, role=MessageRole.USER, content=request.message)
        )
        turn.user_message_id = user_message.id
        logger.info(
            "Turn started in conversation %s (model=%s, history=%d, grounded=%d)",
            conversation.id,
            request.model,
            len(history),
            len(results),
        )
        return turn

    async def stream_turn(self, turn: Turn) -> AsyncIterator[ChatEvent]:
        """Drive generation for a started turn and persist the reply."""
        if turn.backend is None or turn.conversation_id is None:
            raise RuntimeError("stream_turn() needs a turn from start_turn()")

        turn.state = TurnState.GENERATING
        parts: list[str] = []
        fragments = turn.backend.stream(turn.prompt)
        deadline = asyncio.get_running_loop().time() + self.timeout_s if self.timeout_s > 0 else None
        try:
            while True:
                try:
                    text = await self._next_fragment(fragments, deadline)
                except StopAsyncIteration:
                    break
                citations = turn.citations if not parts and turn.citations else None
                parts.append(text)
                yield ChunkEvent(chunk=text, citations=citations)
        except (asyncio.CancelledError, GeneratorExit):
            turn.state = TurnState.CANCELLED
            logger.info("Turn in conversation %s cancelled; discarding partial reply", turn.conversation_id)
            raise
        except Exception:
            turn.state = TurnState.FAILED
            logger.exception("Generation failed in conversation %s", turn.conversation_id)
            yield ErrorEvent()
            return
        finally:
            await fragments.aclose()

        turn.state = TurnState.PERSISTING
        content = "".join(parts)
        if content:
            metadata = {"citations": [c.model_dump() for c in turn.citations]} if turn.citations else None
            try:
                message = self._repository.add_message(
                    Message(
                        conversation_id=turn.conversation_id,
                        role=MessageRole.ASSISTANT,
                        content=content,
                        metadata=metadata,
                    )
                )
            except Exception:
                turn.state = TurnState.FAILED
                logger.exception("Could not store reply in conversation %s", turn.conversation_id)
                yield ErrorEvent()
                return
            turn.assistant_message_id = message.id

        turn.state = TurnState.DONE
        yield DoneEvent(conversation_id=turn.conversation_id, message_id=turn.assistant_message_id)

    # -- internals ------------------------------------------------------------

    def _resolve_conversation(self, request: TurnRequest) -> Conversation:
        if request.conversation_id:
            conversation = self._repository.get_conversation(request.conversation_id, request.owner_id)
            if conversation is None:
                raise ConversationNotFound(request.conversation_id)
            return conversation
        title = request.message.strip()[:TITLE_LENGTH] or Conversation.model_fields["title"].default
        return self._repository.create_conversation(Conversation(owner_id=request.owner_id, title=title))

    @staticmethod
    async def _next_fragment(fragments: AsyncIterator[str], deadline: float | None) -> str:
        if deadline is None:
            return await fragments.__anext__()
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise ModelBackendError("Generation timed out")
        try:
            return await asyncio.wait_for(fragments.__anext__(), timeout=remaining)
        except asyncio.TimeoutError as exc:
            raise ModelBackendError("Generation timed out") from exc
