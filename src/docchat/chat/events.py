"""Events emitted by a chat turn and their ``text/event-stream`` framing."""

from __future__ import annotations

import json
from typing import Any, Union

from pydantic import BaseModel

from docchat.models import Citation

GENERATION_FAILED = "Failed to generate response"


class ChunkEvent(BaseModel):
    """A text fragment; citations ride on the first fragment of a grounded turn."""

    chunk: str
    citations: list[Citation] | None = None

    def payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {"chunk": self.chunk}
        if self.citations is not None:
            data["citations"] = [c.model_dump() for c in self.citations]
        return data


class DoneEvent(BaseModel):
    conversation_id: str
    message_id: str | None = None

    def payload(self) -> dict[str, Any]:
        return {"done": True, "conversationId": self.conversation_id, "messageId": self.message_id}


class ErrorEvent(BaseModel):
    error: str = GENERATION_FAILED

    def payload(self) -> dict[str, Any]:
        return {"error": self.error}


ChatEvent = Union[ChunkEvent, DoneEvent, ErrorEvent]


def to_sse(event: ChatEvent) -> bytes:
    """Frame *event* as one server-sent event: ``data: <json>\\n\\n``."""
    return f"data: {json.dumps(event.payload(), ensure_ascii=False)}\n\n".encode("utf-8")
