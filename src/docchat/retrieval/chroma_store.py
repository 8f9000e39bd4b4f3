"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from docchat.config import settings
from docchat.errors import VectorIndexError
from docchat.models import VectorRecord
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import MetadataFilter, SearchHit

logger = logging.getLogger(__name__)


def _build_chroma_where(filters: list[MetadataFilter] | None) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses = [{f.field: {"$eq": f.value}} for f in filters]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _flatten_payload(payload: dict[str, Any]) -> dict[str, Any]:
    # Chroma metadata values must be flat str/int/float/bool
    return {k: v for k, v in payload.items() if isinstance(v, (str, int, float, bool))}


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store using cosine distance.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host / port:
        Chroma server address; ignored when *client* is given.
    client:
        Pre-built chromadb client (e.g. an ``EphemeralClient`` in tests).
    upsert_batch_size:
        Max records per upsert call.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        client: Any = None,
        upsert_batch_size: int = 5000,
    ) -> None:
        super().__init__(collection_name)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection: Any = None
        self.upsert_batch_size = upsert_batch_size

    # -- VectorStoreBase overrides --------------------------------------------

    def _create_collection(self) -> None:
        metadata = {"hnsw:space": "cosine"}
        try:
            self._collection = self._client.get_or_create_collection(self.collection_name, metadata=metadata)
        except Exception as exc:
            # Two processes racing on first use: the loser sees a
            # uniqueness error, but the collection is there.
            if "already exists" not in str(exc).lower():
                raise VectorIndexError(f"Could not create collection {self.collection_name!r}: {exc}") from exc
            logger.info("Collection %r created concurrently; reusing it", self.collection_name)
            try:
                self._collection = self._client.get_collection(self.collection_name)
            except Exception as get_exc:
                raise VectorIndexError(f"Could not open collection {self.collection_name!r}: {get_exc}") from get_exc

    def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        self.ensure_collection()
        try:
            for start in range(0, len(records), self.upsert_batch_size):
                batch = records[start : start + self.upsert_batch_size]
                self._collection.upsert(
                    ids=[r.id for r in batch],
                    embeddings=[r.embedding for r in batch],
                    documents=[r.content for r in batch],
                    metadatas=[_flatten_payload(r.payload) for r in batch],
                )
        except Exception as exc:
            raise VectorIndexError(f"Upsert of {len(records)} record(s) failed: {exc}") from exc

    def search(
        self,
        query_vector: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        self.ensure_collection()
        where = _build_chroma_where(filters)
        try:
            results = self._collection.query(
                query_embeddings=[query_vector],
                n_results=k,
                where=where,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise VectorIndexError(f"Search failed: {exc}") from exc

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits = [
            # Cosine distance is in [0, 2]; flip it so higher means closer.
            SearchHit(id=doc_id, content=content or "", payload=dict(meta or {}), score=1.0 - dist)
            for doc_id, content, meta, dist in zip(ids, docs, metas, distances)
        ]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits

    def delete(self, filters: list[MetadataFilter]) -> None:
        if not filters:
            raise ValueError("Refusing to delete without a filter")
        self.ensure_collection()
        try:
            self._collection.delete(where=_build_chroma_where(filters))
        except Exception as exc:
            raise VectorIndexError(f"Delete failed: {exc}") from exc

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
