"""Request / response schemas for the HTTP API (camelCase on the wire)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docchat.config import settings
from docchat.models import Citation


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ── Requests ──────────────────────────────────────────────────────────


class ChatRequest(_Schema):
    """Incoming chat message."""

    message: str
    conversation_id: str | None = None
    model: str = settings.default_model
    use_documents: bool = False


class CreateConversationRequest(_Schema):
    title: str | None = None


# ── Responses ─────────────────────────────────────────────────────────


class DocumentOut(_Schema):
    id: str
    filename: str
    mime_type: str
    size: int
    status: str
    chunk_count: int | None = None
    error: str | None = None
    created_at: datetime
    processed_at: datetime | None = None


class UploadOutcomeOut(_Schema):
    id: str | None = None
    filename: str
    status: str
    error: str | None = None


class UploadResponse(_Schema):
    documents: list[UploadOutcomeOut]


class MessageOut(_Schema):
    id: str
    role: str
    content: str
    citations: list[Citation] = Field(default_factory=list)
    created_at: datetime


class ConversationOut(_Schema):
    id: str
    title: str
    created_at: datetime
    updated_at: datetime


class ConversationDetail(ConversationOut):
    messages: list[MessageOut] = Field(default_factory=list)


class ModelOut(_Schema):
    id: str
    name: str
    description: str
    provider: str


class SuccessResponse(_Schema):
    success: bool = True
