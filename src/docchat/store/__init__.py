"""
Persistence collaborator for documents, conversations and messages.

The core depends only on :class:`Repository`; :class:`InMemoryRepository`
is the implementation used in development and tests.
"""

from docchat.store.base import Repository
from docchat.store.memory import InMemoryRepository

__all__ = ["InMemoryRepository", "Repository"]
