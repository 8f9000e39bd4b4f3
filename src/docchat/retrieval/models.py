"""Query-side models: payload filters, raw index hits and retrieval results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from docchat.models import Citation


class MetadataFilter(BaseModel):
    """Equality filter over one vector payload field.

    Attributes
    ----------
    field:
        The payload key to filter on (e.g. ``"ownerId"``).
    value:
        The value the field must equal.
    """

    field: str
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, value=value)

    def matches(self, payload: dict[str, Any]) -> bool:
        return payload.get(self.field) == self.value


class SearchHit(BaseModel):
    """One nearest-neighbour match as returned by a vector store."""

    id: str
    content: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    score: float


class RetrievalResult(BaseModel):
    """A retrieved passage, ready to be put in front of the model."""

    content: str
    filename: str
    score: float
    document_id: str | None = None
    chunk_index: int | None = None

    def to_citation(self) -> Citation:
        return Citation(filename=self.filename, score=self.score)
