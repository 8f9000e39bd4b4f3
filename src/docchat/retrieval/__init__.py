"""
Retrieval — vector index backends and owner-scoped semantic search.

Public surface
--------------
- :class:`RetrievalService` — embeds a question and ranks the caller's chunks.
- :class:`VectorStoreBase` — abstract backend.
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`InMemoryVectorStore` — in-process backend for development and tests.
- :class:`MetadataFilter`, :class:`SearchHit`, :class:`RetrievalResult` — data models.
- :func:`build_vector_store` — settings-driven backend factory.
"""

from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.memory_store import InMemoryVectorStore
from docchat.retrieval.models import MetadataFilter, RetrievalResult, SearchHit
from docchat.retrieval.retriever import RetrievalService, build_vector_store

__all__ = [
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "MetadataFilter",
    "RetrievalResult",
    "RetrievalService",
    "SearchHit",
    "VectorStoreBase",
    "build_vector_store",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from docchat.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
