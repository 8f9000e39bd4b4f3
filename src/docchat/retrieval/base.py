"""Abstract base class for vector-index backends.

Adding a backend only requires subclassing :class:`VectorStoreBase` and
implementing the abstract methods. First-use collection creation is
handled here once for every backend.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from docchat.models import VectorRecord
from docchat.retrieval.models import MetadataFilter, SearchHit

logger = logging.getLogger(__name__)


class VectorStoreBase(ABC):
    """Backend-agnostic vector-index interface.

    Implementations must be safe to share between concurrent ingestions
    and chat turns; callers add no locking of their own.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name
        self._init_lock = threading.Lock()
        self._initialized = False

    def ensure_collection(self) -> None:
        """Create the collection if it does not exist yet.

        Runs :meth:`_create_collection` at most once per instance, even
        when called from many threads at the same time. A failed attempt
        leaves the store uninitialised so the next call retries.
        """
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            self._create_collection()
            self._initialized = True
            logger.info("Vector collection %r ready", self.collection_name)

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def _create_collection(self) -> None:
        """Create-if-absent; "already exists" must not raise."""
        ...

    @abstractmethod
    def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or replace *records* by id."""
        ...

    @abstractmethod
    def search(
        self,
        query_vector: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        """Return the top-*k* hits for *query_vector*, highest score first.

        Parameters
        ----------
        query_vector:
            Dense vector for the query.
        k:
            Number of results to return.
        filters:
            Payload filters applied by the backend before ranking.
        """
        ...

    @abstractmethod
    def delete(self, filters: list[MetadataFilter]) -> None:
        """Remove every record whose payload matches all *filters*.

        An empty filter list is rejected rather than treated as "all".
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...
