"""Abstract persistence contract.

Implementations must be safe to call from concurrent chat turns and
ingestion tasks. Owner scoping is enforced here: lookups that take an
``owner_id`` return ``None`` for rows owned by someone else.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docchat.models import Conversation, Document, Message


class Repository(ABC):
    """Relational-style store for documents, conversations and messages."""

    # -- documents ------------------------------------------------------------

    @abstractmethod
    def create_document(self, document: Document) -> Document: ...

    @abstractmethod
    def get_document(self, document_id: str, owner_id: str | None = None) -> Document | None:
        """Return the document, or ``None`` if absent or not owned by *owner_id*."""
        ...

    @abstractmethod
    def list_documents(self, owner_id: str) -> list[Document]:
        """Return *owner_id*'s documents, newest first."""
        ...

    @abstractmethod
    def update_document(self, document_id: str, **changes: Any) -> Document:
        """Apply *changes* to the document and return the updated copy.

        Raises
        ------
        DocumentNotFound
            If the document no longer exists.
        """
        ...

    @abstractmethod
    def delete_document(self, document_id: str) -> None: ...

    # -- conversations --------------------------------------------------------

    @abstractmethod
    def create_conversation(self, conversation: Conversation) -> Conversation: ...

    @abstractmethod
    def get_conversation(self, conversation_id: str, owner_id: str) -> Conversation | None: ...

    @abstractmethod
    def list_conversations(self, owner_id: str) -> list[Conversation]:
        """Return *owner_id*'s conversations, most recently updated first."""
        ...

    @abstractmethod
    def delete_conversation(self, conversation_id: str, owner_id: str) -> bool:
        """Delete the conversation and its messages; ``False`` if not found."""
        ...

    # -- messages -------------------------------------------------------------

    @abstractmethod
    def add_message(self, message: Message) -> Message:
        """Append *message* and bump the conversation's ``updated_at``."""
        ...

    @abstractmethod
    def list_messages(self, conversation_id: str) -> list[Message]:
        """Return the conversation's messages in creation order."""
        ...
