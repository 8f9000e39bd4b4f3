"""Unit tests for the serving layer."""

from __future__ import annotations

import json
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from docchat.errors import VectorIndexError
from docchat.ingestion.embedder import Embedder
from docchat.retrieval.memory_store import InMemoryVectorStore
from docchat.retrieval.models import MetadataFilter
from docchat.serving.app import create_app
from docchat.serving.dependencies import Services, build_services
from docchat.store.memory import InMemoryRepository

from conftest import LetterEmbeddings, ScriptedChatModel, scripted_backends

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}
MODEL = "openai/gpt-4o-mini"


class FlakyDeleteStore(InMemoryVectorStore):
    fail_delete = False

    def delete(self, filters: list[MetadataFilter]) -> None:
        if self.fail_delete:
            raise VectorIndexError("index unreachable")
        super().delete(filters)


@pytest.fixture()
def chat_model() -> ScriptedChatModel:
    return ScriptedChatModel(["Hel", "lo"])


@pytest.fixture()
def services(chat_model: ScriptedChatModel) -> Services:
    return build_services(
        repository=InMemoryRepository(),
        store=FlakyDeleteStore(),
        embedder=Embedder(LetterEmbeddings()),
        backends=scripted_backends(chat_model),
    )


@pytest.fixture()
def client(services: Services) -> Iterator[TestClient]:
    with TestClient(create_app(services)) as c:
        yield c


def _events(body: str) -> list[dict]:
    frames = [f for f in body.split("\n\n") if f]
    assert all(f.startswith("data: ") for f in frames)
    return [json.loads(f[len("data: ") :]) for f in frames]


def _upload(client: TestClient, services: Services, *files: tuple[str, bytes, str]) -> list[dict]:
    response = client.post("/documents", headers=ALICE, files=[("files", f) for f in files])
    assert response.status_code == 200
    client.portal.call(services.worker.wait_all)
    return response.json()["documents"]


# ── Probes & catalogue ─────────────────────────────────────────────────


def test_health_endpoint(client: TestClient) -> None:
    """GET /health should return 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_models_endpoint(client: TestClient) -> None:
    models = client.get("/models").json()
    assert MODEL in [m["id"] for m in models]
    assert set(models[0]) == {"id", "name", "description", "provider"}


@pytest.mark.parametrize(
    ("method", "path"),
    [("get", "/documents"), ("get", "/conversations"), ("post", "/conversations"), ("delete", "/documents/x")],
)
def test_missing_identity_is_unauthorized(client: TestClient, method: str, path: str) -> None:
    response = client.request(method.upper(), path)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


# ── Documents ──────────────────────────────────────────────────────────


def test_upload_list_and_delete(client: TestClient, services: Services) -> None:
    outcomes = _upload(
        client,
        services,
        ("notes.txt", b"Launch moves to March.", "text/plain"),
        ("page.html", b"<p>Budget approved.</p>", "text/html"),
    )
    assert [o["status"] for o in outcomes] == ["processing", "processing"]

    listed = client.get("/documents", headers=ALICE).json()
    assert {d["filename"] for d in listed} == {"notes.txt", "page.html"}
    assert all(d["status"] == "completed" and d["chunkCount"] == 1 for d in listed)
    assert client.get("/documents", headers=BOB).json() == []

    doc_id = outcomes[0]["id"]
    assert client.get(f"/documents/{doc_id}", headers=BOB).status_code == 404
    assert client.delete(f"/documents/{doc_id}", headers=BOB).status_code == 404

    response = client.delete(f"/documents/{doc_id}", headers=ALICE)
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get(f"/documents/{doc_id}", headers=ALICE).status_code == 404


def test_upload_without_files(client: TestClient) -> None:
    response = client.post("/documents", headers=ALICE)
    assert response.status_code == 400
    assert response.json() == {"error": "No files provided"}


def test_unsupported_upload_is_marked_failed(client: TestClient, services: Services) -> None:
    (outcome,) = _upload(client, services, ("image.png", b"\x89PNG", "image/png"))
    document = client.get(f"/documents/{outcome['id']}", headers=ALICE).json()
    assert document["status"] == "failed"
    assert document["chunkCount"] is None
    assert "image/png" in document["error"]


def test_delete_index_failure_is_bad_gateway(client: TestClient, services: Services) -> None:
    (outcome,) = _upload(client, services, ("notes.txt", b"Launch moves to March.", "text/plain"))
    services.store.fail_delete = True

    response = client.delete(f"/documents/{outcome['id']}", headers=ALICE)

    assert response.status_code == 502
    assert client.get(f"/documents/{outcome['id']}", headers=ALICE).status_code == 200


# ── Conversations ──────────────────────────────────────────────────────


def test_conversation_crud(client: TestClient) -> None:
    created = client.post("/conversations", headers=ALICE, json={"title": "Research"}).json()
    default = client.post("/conversations", headers=ALICE).json()
    assert created["title"] == "Research"
    assert default["title"] == "New Conversation"

    listed = client.get("/conversations", headers=ALICE).json()
    assert {c["id"] for c in listed} == {created["id"], default["id"]}

    detail = client.get(f"/conversations/{created['id']}", headers=ALICE).json()
    assert detail["messages"] == []
    assert client.get(f"/conversations/{created['id']}", headers=BOB).status_code == 404
    assert client.delete(f"/conversations/{created['id']}", headers=BOB).status_code == 404

    assert client.delete(f"/conversations/{created['id']}", headers=ALICE).json() == {"success": True}
    assert client.get(f"/conversations/{created['id']}", headers=ALICE).status_code == 404


# ── Chat ───────────────────────────────────────────────────────────────


def test_chat_streams_and_persists(client: TestClient) -> None:
    response = client.post("/chat", headers=ALICE, json={"message": "Say hello", "model": MODEL})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-accel-buffering"] == "no"

    events = _events(response.text)
    assert events[:2] == [{"chunk": "Hel"}, {"chunk": "lo"}]
    assert events[-1]["done"] is True

    conversation_id = events[-1]["conversationId"]
    detail = client.get(f"/conversations/{conversation_id}", headers=ALICE).json()
    assert detail["title"] == "Say hello"
    assert [(m["role"], m["content"]) for m in detail["messages"]] == [("user", "Say hello"), ("assistant", "Hello")]
    assert detail["messages"][1]["id"] == events[-1]["messageId"]


def test_chat_with_documents_sends_citations(client: TestClient, services: Services) -> None:
    _upload(client, services, ("launch.txt", b"The product launch moves to March.", "text/plain"))

    response = client.post(
        "/chat",
        headers=ALICE,
        json={"message": "When is the launch?", "model": MODEL, "useDocuments": True},
    )

    events = _events(response.text)
    assert [c["filename"] for c in events[0]["citations"]] == ["launch.txt"]
    assert "citations" not in events[1]
    detail = client.get(f"/conversations/{events[-1]['conversationId']}", headers=ALICE).json()
    assert [c["filename"] for c in detail["messages"][1]["citations"]] == ["launch.txt"]


def test_chat_generation_failure_emits_error(client: TestClient, chat_model: ScriptedChatModel) -> None:
    chat_model.fragments = ["Hel"]
    chat_model.error = RuntimeError("provider down")

    events = _events(client.post("/chat", headers=ALICE, json={"message": "hi", "model": MODEL}).text)

    assert events == [{"chunk": "Hel"}, {"error": "Failed to generate response"}]
    (conversation,) = client.get("/conversations", headers=ALICE).json()
    detail = client.get(f"/conversations/{conversation['id']}", headers=ALICE).json()
    assert [m["role"] for m in detail["messages"]] == ["user"]


def test_chat_unknown_model_is_bad_request(client: TestClient) -> None:
    response = client.post("/chat", headers=ALICE, json={"message": "hi", "model": "nope"})
    assert response.status_code == 400
    assert "nope" in response.json()["error"]
    assert client.get("/conversations", headers=ALICE).json() == []


def test_chat_foreign_conversation_is_not_found(client: TestClient) -> None:
    conversation = client.post("/conversations", headers=BOB).json()
    response = client.post(
        "/chat", headers=ALICE, json={"message": "hi", "model": MODEL, "conversationId": conversation["id"]}
    )
    assert response.status_code == 404


def test_chat_requires_message(client: TestClient) -> None:
    assert client.post("/chat", headers=ALICE, json={"message": "  ", "model": MODEL}).status_code == 400
