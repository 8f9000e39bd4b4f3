"""Error taxonomy for the ingestion, retrieval and generation core.

Only the serving layer maps these to HTTP status codes; the core raises
them (wrapping the provider exception with ``raise ... from exc``) and
decides per pipeline whether they are terminal, swallowed or surfaced.
"""

from __future__ import annotations


class DocChatError(Exception):
    """Base class for every error raised by :mod:`docchat`."""


class UnsupportedFormat(DocChatError):
    """The uploaded bytes cannot be turned into text for the declared mime type."""

    def __init__(self, mime_type: str, detail: str = "") -> None:
        self.mime_type = mime_type
        message = f"Unsupported file type: {mime_type!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class EmbeddingProviderError(DocChatError):
    """The embedding backend failed; the whole batch is void."""


class VectorIndexError(DocChatError):
    """The vector index rejected or failed an operation."""


class ModelBackendError(DocChatError):
    """The chat model failed while streaming a turn."""


class UnknownModel(DocChatError):
    """A model identifier that is not in the static registry."""

    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"Model {model_id!r} not found")


class DocumentNotFound(DocChatError):
    """No document with this id is owned by the caller."""


class ConversationNotFound(DocChatError):
    """No conversation with this id is owned by the caller."""
