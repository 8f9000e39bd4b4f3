"""Embedding with an explicit indexing/retrieval task type."""

from __future__ import annotations

import logging
from enum import Enum

from langchain_core.embeddings import Embeddings

from docchat.config import settings
from docchat.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)


class TaskType(str, Enum):
    """What an embedding is for; providers may embed the two differently."""

    DOCUMENT = "document"
    QUERY = "query"


def get_embedding_function(provider: str | None = None, model: str | None = None) -> Embeddings:
    """Return the configured LangChain embedding backend.

    ``huggingface`` runs a sentence-transformer locally; ``openai`` calls
    the OpenAI embeddings API.
    """
    provider = provider or settings.embedding_provider
    model = model or settings.embedding_model

    if provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(
            model_name=model,
            encode_kwargs={"normalize_embeddings": True},
        )
    if provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(model=model, api_key=settings.openai_api_key or None)

    raise ValueError(f"Unsupported embedding provider: {provider!r}")


class Embedder:
    """Async facade over a LangChain :class:`Embeddings` backend.

    Parameters
    ----------
    embeddings:
        Backend to call. When *None*, :func:`get_embedding_function` builds
        one from the global settings.
    batch_size:
        Number of texts sent to the backend per call.
    """

    def __init__(self, embeddings: Embeddings | None = None, *, batch_size: int | None = None) -> None:
        self._embeddings = embeddings if embeddings is not None else get_embedding_function()
        self.batch_size = batch_size or settings.embedding_batch_size

    async def embed(self, text: str, task_type: TaskType) -> list[float]:
        """Embed a single text for *task_type*."""
        vectors = await self.embed_many([text], task_type)
        return vectors[0]

    async def embed_many(self, texts: list[str], task_type: TaskType) -> list[list[float]]:
        """Embed *texts*, preserving order and count.

        The call is all-or-nothing: a failure in any batch raises
        :class:`EmbeddingProviderError` and no vectors are returned.
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                if task_type is TaskType.QUERY:
                    result = [await self._embeddings.aembed_query(t) for t in batch]
                else:
                    result = await self._embeddings.aembed_documents(batch)
            except Exception as exc:
                raise EmbeddingProviderError(
                    f"Embedding batch {start}-{start + len(batch)} of {len(texts)} failed: {exc}"
                ) from exc

            if len(result) != len(batch):
                raise EmbeddingProviderError(
                    f"Embedding backend returned {len(result)} vectors for {len(batch)} texts"
                )
            vectors.extend([list(v) for v in result])

        logger.debug("Embedded %d text(s) for %s", len(vectors), task_type.value)
        return vectors
