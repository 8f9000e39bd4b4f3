"""Thread-safe in-memory :class:`Repository`."""

from __future__ import annotations

import threading
from typing import Any

from docchat.errors import ConversationNotFound, DocumentNotFound
from docchat.models import Conversation, Document, Message, utcnow
from docchat.store.base import Repository


class InMemoryRepository(Repository):
    """Dict-backed repository; models are copied in and out so callers
    cannot mutate stored state behind the lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[str, Document] = {}
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}

    # -- documents ------------------------------------------------------------

    def create_document(self, document: Document) -> Document:
        with self._lock:
            self._documents[document.id] = document.model_copy()
        return document

    def get_document(self, document_id: str, owner_id: str | None = None) -> Document | None:
        with self._lock:
            doc = self._documents.get(document_id)
        if doc is None or (owner_id is not None and doc.owner_id != owner_id):
            return None
        return doc.model_copy()

    def list_documents(self, owner_id: str) -> list[Document]:
        with self._lock:
            docs = [d.model_copy() for d in self._documents.values() if d.owner_id == owner_id]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    def update_document(self, document_id: str, **changes: Any) -> Document:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None:
                raise DocumentNotFound(document_id)
            updated = doc.model_copy(update=changes)
            self._documents[document_id] = updated
        return updated.model_copy()

    def delete_document(self, document_id: str) -> None:
        with self._lock:
            self._documents.pop(document_id, None)

    # -- conversations --------------------------------------------------------

    def create_conversation(self, conversation: Conversation) -> Conversation:
        with self._lock:
            self._conversations[conversation.id] = conversation.model_copy()
            self._messages.setdefault(conversation.id, [])
        return conversation

    def get_conversation(self, conversation_id: str, owner_id: str) -> Conversation | None:
        with self._lock:
            conv = self._conversations.get(conversation_id)
        if conv is None or conv.owner_id != owner_id:
            return None
        return conv.model_copy()

    def list_conversations(self, owner_id: str) -> list[Conversation]:
        with self._lock:
            convs = [c.model_copy() for c in self._conversations.values() if c.owner_id == owner_id]
        return sorted(convs, key=lambda c: c.updated_at, reverse=True)

    def delete_conversation(self, conversation_id: str, owner_id: str) -> bool:
        with self._lock:
            conv = self._conversations.get(conversation_id)
            if conv is None or conv.owner_id != owner_id:
                return False
            self._messages.pop(conversation_id, None)
            del self._conversations[conversation_id]
        return True

    # -- messages -------------------------------------------------------------

    def add_message(self, message: Message) -> Message:
        with self._lock:
            conv = self._conversations.get(message.conversation_id)
            if conv is None:
                raise ConversationNotFound(message.conversation_id)
            self._messages.setdefault(message.conversation_id, []).append(message.model_copy())
            self._conversations[conv.id] = conv.model_copy(update={"updated_at": utcnow()})
        return message

    def list_messages(self, conversation_id: str) -> list[Message]:
        with self._lock:
            return [m.model_copy() for m in self._messages.get(conversation_id, [])]
