"""Domain models shared by ingestion, retrieval, chat and persistence."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# Payload keys stored next to every vector. ``ownerId`` is the tenant key
# that retrieval filters on.
PAYLOAD_DOCUMENT_ID = "documentId"
PAYLOAD_OWNER_ID = "ownerId"
PAYLOAD_FILENAME = "filename"
PAYLOAD_CHUNK_INDEX = "chunkIndex"
PAYLOAD_START_CHAR = "startChar"
PAYLOAD_END_CHAR = "endChar"


def _new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.FAILED)


class Document(BaseModel):
    """An uploaded file and its ingestion lifecycle.

    Attributes
    ----------
    id:
        Opaque identifier, also stored in every vector payload.
    owner_id:
        The user who uploaded the file.
    filename:
        Original file name as uploaded.
    mime_type:
        Declared content type; selects the text extractor.
    size:
        Size of the upload in bytes.
    status:
        ``processing`` from upload acceptance until the ingestion pipeline
        moves it to ``completed`` or ``failed``.
    chunk_count:
        Number of chunks upserted; set only when ``status`` is ``completed``.
    error:
        Why ingestion failed, when it did.
    created_at / processed_at:
        UTC timestamps of acceptance and of successful completion.
    """

    id: str = Field(default_factory=_new_id)
    owner_id: str
    filename: str
    mime_type: str
    size: int = 0
    status: DocumentStatus = DocumentStatus.PROCESSING
    chunk_count: int | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    processed_at: datetime | None = None


class Chunk(BaseModel):
    """A bounded substring of a document's normalised text.

    ``start_char``/``end_char`` index into the normalised text, so
    ``text[start_char:end_char] == content`` always holds.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    document_id: str
    owner_id: str
    content: str
    index: int
    start_char: int
    end_char: int

    def payload(self, filename: str) -> dict[str, Any]:
        """Metadata stored alongside the chunk's vector."""
        return {
            PAYLOAD_DOCUMENT_ID: self.document_id,
            PAYLOAD_OWNER_ID: self.owner_id,
            PAYLOAD_FILENAME: filename,
            PAYLOAD_CHUNK_INDEX: self.index,
            PAYLOAD_START_CHAR: self.start_char,
            PAYLOAD_END_CHAR: self.end_char,
        }


class VectorRecord(BaseModel):
    """One-to-one image of a :class:`Chunk` inside the vector index."""

    id: str
    embedding: list[float]
    content: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: list[float], filename: str) -> VectorRecord:
        return cls(
            id=chunk.id,
            embedding=embedding,
            content=chunk.content,
            payload=chunk.payload(filename),
        )


class Citation(BaseModel):
    """Which file contributed to an answer, and how relevant it was."""

    filename: str
    score: float


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    id: str = Field(default_factory=_new_id)
    conversation_id: str
    role: MessageRole
    content: str
    metadata: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def citations(self) -> list[Citation]:
        if not self.metadata:
            return []
        return [Citation(**c) for c in self.metadata.get("citations", [])]


class Conversation(BaseModel):
    id: str = Field(default_factory=_new_id)
    owner_id: str
    title: str = "New Conversation"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
