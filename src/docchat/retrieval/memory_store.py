"""In-process vector store for development and tests."""

from __future__ import annotations

import math
import threading

from docchat.models import VectorRecord
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import MetadataFilter, SearchHit


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorStore(VectorStoreBase):
    """Dict-backed store with brute-force cosine ranking.

    All operations take an internal lock, so one instance can be shared
    by concurrent ingestions and chat turns.
    """

    def __init__(self, collection_name: str = "documents") -> None:
        super().__init__(collection_name)
        self._records: dict[str, VectorRecord] = {}
        self._lock = threading.Lock()

    def _create_collection(self) -> None:
        # Nothing to provision.
        return None

    def upsert(self, records: list[VectorRecord]) -> None:
        self.ensure_collection()
        with self._lock:
            for record in records:
                self._records[record.id] = record

    def search(
        self,
        query_vector: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        self.ensure_collection()
        with self._lock:
            candidates = list(self._records.values())

        hits = [
            SearchHit(
                id=r.id,
                content=r.content,
                payload=dict(r.payload),
                score=_cosine(query_vector, r.embedding),
            )
            for r in candidates
            if all(f.matches(r.payload) for f in filters or [])
        ]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:k]

    def delete(self, filters: list[MetadataFilter]) -> None:
        if not filters:
            raise ValueError("Refusing to delete without a filter")
        with self._lock:
            doomed = [rid for rid, r in self._records.items() if all(f.matches(r.payload) for f in filters)]
            for rid in doomed:
                del self._records[rid]

    def health_check(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
