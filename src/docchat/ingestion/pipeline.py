"""Document ingestion: extract → chunk → embed → index.

One document is processed strictly in sequence. The
:class:`IngestionWorker` runs each ingestion as its own asyncio task so
uploads return immediately and independent documents proceed in
parallel.

Usage::

    pipeline = IngestionPipeline(repository, store, Embedder())
    worker = IngestionWorker(pipeline)
    job = worker.submit(data, "report.pdf", "application/pdf", doc.id, owner_id)
    document = await job.wait()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from docchat.config import settings
from docchat.errors import DocumentNotFound
from docchat.ingestion.chunker import chunk_with_offsets
from docchat.ingestion.embedder import Embedder, TaskType
from docchat.ingestion.extractor import extract
from docchat.models import (
    PAYLOAD_DOCUMENT_ID,
    PAYLOAD_OWNER_ID,
    Chunk,
    Document,
    DocumentStatus,
    VectorRecord,
    utcnow,
)
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.models import MetadataFilter
from docchat.store.base import Repository

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Turns one uploaded file into indexed chunks and a terminal Document status.

    Parameters
    ----------
    repository:
        Persistence for the Document row being ingested.
    store:
        Shared vector-store backend.
    embedder:
        Embedder used with :attr:`TaskType.DOCUMENT`.
    chunk_size / chunk_overlap:
        Chunker parameters in characters.
    """

    def __init__(
        self,
        repository: Repository,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
    ) -> None:
        self._repository = repository
        self._store = store
        self._embedder = embedder
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    async def ingest(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        document_id: str,
        owner_id: str,
    ) -> Document:
        """Ingest one document and return it in its terminal state.

        Every failure is recorded on the Document (``status=failed`` and
        ``error``) instead of being raised; there is no retry.
        Cancellation also marks the document failed, then propagates.
        """
        logger.info("Ingesting %s (%s, %d bytes) as document %s", filename, mime_type, len(data), document_id)
        indexing: asyncio.Task | None = None
        try:
            chunks = await asyncio.to_thread(self._prepare_chunks, data, mime_type, document_id, owner_id)
            if chunks:
                vectors = await self._embedder.embed_many([c.content for c in chunks], TaskType.DOCUMENT)
                records = [VectorRecord.from_chunk(c, v, filename) for c, v in zip(chunks, vectors)]
                # Cancelling the await does not stop the thread, so keep a handle on it.
                indexing = asyncio.create_task(asyncio.to_thread(self._index, records))
                await asyncio.shield(indexing)
        except asyncio.CancelledError:
            self.mark_failed(document_id, "Ingestion cancelled")
            if indexing is not None:
                await self._discard_indexed(indexing, document_id, owner_id)
            raise
        except Exception as exc:
            logger.exception("Ingestion of document %s failed", document_id)
            return self.mark_failed(document_id, str(exc) or type(exc).__name__)

        try:
            document = self._repository.update_document(
                document_id,
                status=DocumentStatus.COMPLETED,
                chunk_count=len(chunks),
                processed_at=utcnow(),
                error=None,
            )
        except DocumentNotFound:
            # Deleted while we were indexing; don't leave its vectors behind.
            logger.info("Document %s was deleted during ingestion; removing its vectors", document_id)
            await asyncio.to_thread(self._store.delete, document_filters(document_id, owner_id))
            raise

        logger.info("Document %s completed with %d chunk(s)", document_id, len(chunks))
        return document

    def mark_failed(self, document_id: str, reason: str) -> Document | None:
        """Move the document to ``failed``; ``None`` if it no longer exists."""
        try:
            return self._repository.update_document(
                document_id,
                status=DocumentStatus.FAILED,
                chunk_count=None,
                error=reason,
            )
        except DocumentNotFound:
            logger.info("Document %s vanished before it could be marked failed", document_id)
            return None

    # -- internals ------------------------------------------------------------

    def _prepare_chunks(self, data: bytes, mime_type: str, document_id: str, owner_id: str) -> list[Chunk]:
        text = extract(data, mime_type)
        return [
            Chunk(
                document_id=document_id,
                owner_id=owner_id,
                content=span.text,
                index=span.index,
                start_char=span.start,
                end_char=span.end,
            )
            for span in chunk_with_offsets(text, self.chunk_size, self.chunk_overlap)
        ]

    def _index(self, records: list[VectorRecord]) -> None:
        self._store.ensure_collection()
        self._store.upsert(records)

    async def _discard_indexed(self, indexing: asyncio.Task, document_id: str, owner_id: str) -> None:
        """Let an in-flight upsert land, then remove what it wrote."""
        try:
            await indexing
        except Exception:
            logger.warning("Indexing of cancelled document %s failed", document_id, exc_info=True)
        logger.info("Removing vectors of cancelled document %s", document_id)
        await asyncio.to_thread(self._store.delete, document_filters(document_id, owner_id))


def document_filters(document_id: str, owner_id: str) -> list[MetadataFilter]:
    return [
        MetadataFilter.equals(PAYLOAD_DOCUMENT_ID, document_id),
        MetadataFilter.equals(PAYLOAD_OWNER_ID, owner_id),
    ]


@dataclass
class IngestionJob:
    """Handle on one background ingestion."""

    document_id: str
    owner_id: str
    task: asyncio.Task = field(repr=False)

    def done(self) -> bool:
        return self.task.done()

    def cancel(self) -> bool:
        return self.task.cancel()

    async def wait(self) -> Document | None:
        """Wait for the ingestion; ``None`` if it was cancelled.

        Cancelling the waiter does not cancel the ingestion.
        """
        try:
            return await asyncio.shield(self.task)
        except asyncio.CancelledError:
            if self.task.cancelled():
                return None
            raise


class IngestionWorker:
    """Runs ingestions detached from the request that submitted them.

    Parameters
    ----------
    pipeline:
        The pipeline each job runs.
    max_concurrency:
        Upper bound on ingestions running at once. Jobs beyond it wait
        in no particular order.
    """

    def __init__(self, pipeline: IngestionPipeline, *, max_concurrency: int = settings.max_concurrent_ingestions) -> None:
        self._pipeline = pipeline
        self._max_concurrency = max_concurrency
        self._semaphore: asyncio.Semaphore | None = None
        self._jobs: dict[str, IngestionJob] = {}

    @property
    def pipeline(self) -> IngestionPipeline:
        return self._pipeline

    def submit(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        document_id: str,
        owner_id: str,
    ) -> IngestionJob:
        """Schedule ingestion on the running event loop and return its handle."""
        task = asyncio.create_task(
            self._run(data, filename, mime_type, document_id, owner_id),
            name=f"ingest-{document_id}",
        )
        job = IngestionJob(document_id=document_id, owner_id=owner_id, task=task)
        self._jobs[document_id] = job
        task.add_done_callback(lambda t: self._on_done(document_id, t))
        return job

    def get_job(self, document_id: str) -> IngestionJob | None:
        return self._jobs.get(document_id)

    def cancel(self, document_id: str) -> IngestionJob | None:
        """Cancel the in-flight job for *document_id*, if any."""
        job = self._jobs.get(document_id)
        if job is not None:
            job.cancel()
        return job

    @property
    def pending(self) -> int:
        return len(self._jobs)

    async def wait_all(self) -> None:
        """Wait until every outstanding job has finished."""
        while self._jobs:
            await asyncio.gather(*(j.task for j in list(self._jobs.values())), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs and wait for them to unwind."""
        jobs = list(self._jobs.values())
        if not jobs:
            return
        logger.info("Cancelling %d outstanding ingestion(s)", len(jobs))
        for job in jobs:
            job.cancel()
        await asyncio.gather(*(j.task for j in jobs), return_exceptions=True)

    # -- internals ------------------------------------------------------------

    async def _run(self, data: bytes, filename: str, mime_type: str, document_id: str, owner_id: str) -> Document:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
        try:
            async with self._semaphore:
                return await self._pipeline.ingest(data, filename, mime_type, document_id, owner_id)
        except asyncio.CancelledError:
            # Covers cancellation while still queued on the semaphore.
            self._pipeline.mark_failed(document_id, "Ingestion cancelled")
            raise

    def _on_done(self, document_id: str, task: asyncio.Task) -> None:
        if self._jobs.get(document_id) is not None and self._jobs[document_id].task is task:
            del self._jobs[document_id]
        if task.cancelled():
            logger.info("Ingestion of document %s cancelled", document_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Ingestion of document %s crashed", document_id, exc_info=exc)
            return
        document = task.result()
        logger.info("Ingestion of document %s finished: %s", document_id, document.status.value)
