"""Retrieval service: owner-scoped semantic search over indexed chunks.

Usage::

    from docchat.retrieval.retriever import RetrievalService

    service = RetrievalService(store, embedder)
    results = await service.retrieve("What is the refund policy?", owner_id="u1")
    for r in results:
        print(r.filename, round(r.score, 3), r.content[:80])
"""

from __future__ import annotations

import asyncio
import logging

from docchat.config import settings
from docchat.ingestion.embedder import Embedder, TaskType
from docchat.models import PAYLOAD_CHUNK_INDEX, PAYLOAD_DOCUMENT_ID, PAYLOAD_FILENAME, PAYLOAD_OWNER_ID
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import MetadataFilter, RetrievalResult, SearchHit

logger = logging.getLogger(__name__)


class RetrievalService:
    """Embeds a question and ranks the caller's chunks against it.

    Retrieval degrades rather than fails: embedding or index errors are
    logged and produce an empty result, so a chat turn can still be
    answered without grounding.

    Parameters
    ----------
    store:
        The shared vector-store backend.
    embedder:
        Embedder used with :attr:`TaskType.QUERY`.
    default_k:
        Number of results when the caller does not pass *k*.
    score_threshold:
        Minimum similarity score; results below this are discarded.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        default_k: int = settings.retrieval_k,
        score_threshold: float | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.default_k = default_k
        self.score_threshold = score_threshold

    async def retrieve(self, query: str, owner_id: str, k: int | None = None) -> list[RetrievalResult]:
        """Return up to *k* of *owner_id*'s chunks most similar to *query*.

        Results are ordered by descending score and every one belongs to
        *owner_id*. Never raises for backend failures.
        """
        if not query or not query.strip():
            return []
        k = k or self.default_k

        try:
            vector = await self._embedder.embed(query, TaskType.QUERY)
            hits = await asyncio.to_thread(
                self._store.search,
                vector,
                k=k,
                filters=[MetadataFilter.equals(PAYLOAD_OWNER_ID, owner_id)],
            )
        except Exception:
            logger.warning("Retrieval failed for owner %s; continuing without context", owner_id, exc_info=True)
            return []

        results = self._to_results(hits, owner_id)
        logger.debug("Retrieved %d chunk(s) for owner %s", len(results), owner_id)
        return results

    # -- internals ------------------------------------------------------------

    def _to_results(self, hits: list[SearchHit], owner_id: str) -> list[RetrievalResult]:
        results: list[RetrievalResult] = []
        for hit in hits:
            if hit.payload.get(PAYLOAD_OWNER_ID) != owner_id:
                logger.warning("Dropping hit %s: owner mismatch despite owner filter", hit.id)
                continue
            if self.score_threshold is not None and hit.score < self.score_threshold:
                continue
            results.append(
                RetrievalResult(
                    content=hit.content,
                    filename=hit.payload.get(PAYLOAD_FILENAME, "unknown"),
                    score=hit.score,
                    document_id=hit.payload.get(PAYLOAD_DOCUMENT_ID),
                    chunk_index=hit.payload.get(PAYLOAD_CHUNK_INDEX),
                )
            )
        results.sort(key=lambda r: r.score, reverse=True)
        return results


def build_vector_store(backend: str | None = None) -> VectorStoreBase:
    """Construct the process-wide vector store selected by ``settings.vector_backend``."""
    backend = backend or settings.vector_backend
    if backend == "chroma":
        from docchat.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore()
    if backend == "memory":
        from docchat.retrieval.memory_store import InMemoryVectorStore

        return InMemoryVectorStore(settings.chroma_collection)
    raise ValueError(f"Unsupported vector backend: {backend!r}")
