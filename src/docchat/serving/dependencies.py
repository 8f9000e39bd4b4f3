"""Service wiring and per-request dependencies."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Header, HTTPException, Request, status

from docchat.chat.llm import ModelBackendFactory
from docchat.chat.orchestrator import ChatOrchestrator
from docchat.documents import DocumentService
from docchat.ingestion.embedder import Embedder
from docchat.ingestion.pipeline import IngestionPipeline, IngestionWorker
from docchat.retrieval.base import VectorStoreBase
from docchat.retrieval.retriever import RetrievalService, build_vector_store
from docchat.store.base import Repository
from docchat.store.memory import InMemoryRepository

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide collaborators, built once at startup."""

    repository: Repository
    store: VectorStoreBase
    embedder: Embedder
    retrieval: RetrievalService
    worker: IngestionWorker
    documents: DocumentService
    orchestrator: ChatOrchestrator
    backends: ModelBackendFactory


def build_services(
    *,
    repository: Repository | None = None,
    store: VectorStoreBase | None = None,
    embedder: Embedder | None = None,
    backends: ModelBackendFactory | None = None,
) -> Services:
    """Wire the application; anything not passed is built from settings."""
    repository = repository if repository is not None else InMemoryRepository()
    store = store if store is not None else build_vector_store()
    embedder = embedder if embedder is not None else Embedder()
    backends = backends if backends is not None else ModelBackendFactory()

    retrieval = RetrievalService(store, embedder)
    worker = IngestionWorker(IngestionPipeline(repository, store, embedder))
    logger.info("Services ready (vector store: %s)", type(store).__name__)
    return Services(
        repository=repository,
        store=store,
        embedder=embedder,
        retrieval=retrieval,
        worker=worker,
        documents=DocumentService(repository, store, worker),
        orchestrator=ChatOrchestrator(repository, retrieval, backends),
        backends=backends,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_owner_id(x_user_id: str | None = Header(default=None)) -> str:
    """Resolve the caller from the ``X-User-Id`` header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return x_user_id.strip()
