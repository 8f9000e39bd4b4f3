"""
Chat — model registry, prompt assembly and streamed, persisted chat turns.

Public surface
--------------
- :class:`ChatOrchestrator` — runs one turn end to end.
- :class:`TurnRequest`, :class:`Turn`, :class:`TurnState` — turn input and state.
- :class:`ChunkEvent`, :class:`DoneEvent`, :class:`ErrorEvent` — stream events.
- :class:`ModelBackendFactory`, :data:`MODEL_REGISTRY` — model binding.
"""

from docchat.chat.events import ChatEvent, ChunkEvent, DoneEvent, ErrorEvent, to_sse
from docchat.chat.llm import MODEL_REGISTRY, ModelBackend, ModelBackendFactory, ModelBinding, ProviderKind
from docchat.chat.orchestrator import ChatOrchestrator, Turn, TurnRequest, TurnState

__all__ = [
    "MODEL_REGISTRY",
    "ChatEvent",
    "ChatOrchestrator",
    "ChunkEvent",
    "DoneEvent",
    "ErrorEvent",
    "ModelBackend",
    "ModelBackendFactory",
    "ModelBinding",
    "ProviderKind",
    "Turn",
    "TurnRequest",
    "TurnState",
    "to_sse",
]
