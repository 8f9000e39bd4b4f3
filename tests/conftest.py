"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import string
import threading
from collections.abc import AsyncIterator
from typing import Any

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessageChunk

from docchat.chat.llm import ModelBackendFactory, ModelBinding
from docchat.ingestion.embedder import Embedder
from docchat.models import VectorRecord
from docchat.retrieval.memory_store import InMemoryVectorStore
from docchat.store.memory import InMemoryRepository


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake embeddings ─────────────────────────────────────────────────────


class LetterEmbeddings(Embeddings):
    """Deterministic embeddings: letter frequencies plus a constant bias term.

    Texts sharing vocabulary land close together, which is enough to make
    ranking assertions meaningful without a real model.
    """

    def __init__(self, fail_on_call: int | None = None) -> None:
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []
        self.fail_on_call = fail_on_call

    @staticmethod
    def vector(text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(c)) for c in string.ascii_lowercase] + [1.0]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        if self.fail_on_call is not None and len(self.document_calls) == self.fail_on_call:
            raise RuntimeError("embedding provider unavailable")
        return [self.vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self.vector(text)


class GatedEmbeddings(LetterEmbeddings):
    """Blocks every document batch until :attr:`gate` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()
        self.active = 0
        self.max_active = 0

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.gate.wait()
            return self.embed_documents(texts)
        finally:
            self.active -= 1


# ── Fake vector store ───────────────────────────────────────────────────


class SlowUpsertStore(InMemoryVectorStore):
    """Holds every upsert in its worker thread until :attr:`release` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def upsert(self, records: list[VectorRecord]) -> None:
        self.started.set()
        self.release.wait(timeout=5)
        super().upsert(records)


# ── Fake chat model ─────────────────────────────────────────────────────


class ScriptedChatModel:
    """Chat model stand-in whose ``astream`` yields a fixed list of fragments.

    Parameters
    ----------
    fragments:
        Text pieces streamed in order.
    error:
        Raised after the fragments, when given.
    delay:
        Seconds to sleep before each fragment.
    """

    def __init__(self, fragments: list[str], error: Exception | None = None, delay: float = 0.0) -> None:
        self.fragments = fragments
        self.error = error
        self.delay = delay
        self.calls: list[list[Any]] = []
        self.closed = False

    async def astream(self, messages: list[Any]) -> AsyncIterator[AIMessageChunk]:
        self.calls.append(list(messages))
        try:
            for fragment in self.fragments:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield AIMessageChunk(content=fragment)
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


def scripted_backends(model: ScriptedChatModel) -> ModelBackendFactory:
    """A backend factory whose every registered model is *model*."""

    def build(binding: ModelBinding) -> ScriptedChatModel:
        return model

    return ModelBackendFactory(chat_model_builder=build)


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def letter_embeddings() -> LetterEmbeddings:
    return LetterEmbeddings()


@pytest.fixture()
def embedder(letter_embeddings: LetterEmbeddings) -> Embedder:
    return Embedder(letter_embeddings, batch_size=8)


@pytest.fixture()
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore("test-collection")


@pytest.fixture()
def repository() -> InMemoryRepository:
    return InMemoryRepository()
