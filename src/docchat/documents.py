"""Document lifecycle: upload, listing and cascading deletion."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pydantic import BaseModel

from docchat.config import settings
from docchat.errors import DocumentNotFound
from docchat.ingestion.pipeline import IngestionWorker, document_filters
from docchat.models import Document
from docchat.retrieval.base import VectorStoreBase
from docchat.store.base import Repository

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class UploadedFile:
    """A file as received from the upload boundary."""

    filename: str
    content_type: str | None
    data: bytes


class UploadOutcome(BaseModel):
    """Per-file result of an upload request."""

    id: str | None = None
    filename: str
    status: str
    error: str | None = None


class DocumentService:
    """Owns the Document rows and keeps the vector index consistent with them.

    Parameters
    ----------
    repository:
        Document persistence.
    store:
        Shared vector-store backend, used for cascading deletes.
    worker:
        Background ingestion worker.
    max_upload_bytes:
        Files larger than this are refused per file.
    """

    def __init__(
        self,
        repository: Repository,
        store: VectorStoreBase,
        worker: IngestionWorker,
        *,
        max_upload_bytes: int = settings.max_upload_bytes,
    ) -> None:
        self._repository = repository
        self._store = store
        self._worker = worker
        self.max_upload_bytes = max_upload_bytes

    async def upload(self, owner_id: str, files: list[UploadedFile]) -> list[UploadOutcome]:
        """Accept *files* and start ingesting each in the background.

        A file that cannot be accepted gets a ``failed`` outcome; the
        others are unaffected.
        """
        outcomes: list[UploadOutcome] = []
        for f in files:
            if len(f.data) > self.max_upload_bytes:
                logger.warning("Refusing %s: %d bytes exceeds limit", f.filename, len(f.data))
                outcomes.append(UploadOutcome(filename=f.filename, status="failed", error="File too large"))
                continue
            try:
                document = self._repository.create_document(
                    Document(
                        owner_id=owner_id,
                        filename=f.filename,
                        mime_type=f.content_type or DEFAULT_MIME_TYPE,
                        size=len(f.data),
                    )
                )
            except Exception:
                logger.exception("Could not create document record for %s", f.filename)
                outcomes.append(UploadOutcome(filename=f.filename, status="failed", error="Processing failed"))
                continue

            self._worker.submit(f.data, document.filename, document.mime_type, document.id, owner_id)
            outcomes.append(UploadOutcome(id=document.id, filename=document.filename, status=document.status.value))
        return outcomes

    def list_documents(self, owner_id: str) -> list[Document]:
        return self._repository.list_documents(owner_id)

    def get_document(self, owner_id: str, document_id: str) -> Document:
        document = self._repository.get_document(document_id, owner_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    async def delete_document(self, owner_id: str, document_id: str) -> None:
        """Delete a document and every vector derived from it.

        Vectors go first; if that fails the row stays and
        :class:`~docchat.errors.VectorIndexError` propagates.
        """
        self.get_document(owner_id, document_id)

        job = self._worker.cancel(document_id)
        if job is not None:
            try:
                await job.wait()
            except Exception:
                logger.warning("Cancelled ingestion of %s ended with an error", document_id, exc_info=True)

        await asyncio.to_thread(self._store.delete, document_filters(document_id, owner_id))
        self._repository.delete_document(document_id)
        logger.info("Deleted document %s and its vectors", document_id)
