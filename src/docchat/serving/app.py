"""FastAPI application exposing document upload and streaming chat.

Run with::

    uvicorn --factory docchat.serving.app:create_app
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docchat.chat.events import to_sse
from docchat.chat.llm import list_models
from docchat.chat.orchestrator import TurnRequest
from docchat.config import settings
from docchat.documents import UploadedFile
from docchat.errors import ConversationNotFound, DocumentNotFound, UnknownModel, UnsupportedFormat, VectorIndexError
from docchat.models import Conversation, Document, Message
from docchat.serving.dependencies import Services, build_services, get_owner_id, get_services
from docchat.serving.schemas import (
    ChatRequest,
    ConversationDetail,
    ConversationOut,
    CreateConversationRequest,
    DocumentOut,
    MessageOut,
    ModelOut,
    SuccessResponse,
    UploadOutcomeOut,
    UploadResponse,
)

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# ── Response mapping ──────────────────────────────────────────────────


def _document_out(d: Document) -> DocumentOut:
    return DocumentOut(
        id=d.id,
        filename=d.filename,
        mime_type=d.mime_type,
        size=d.size,
        status=d.status.value,
        chunk_count=d.chunk_count,
        error=d.error,
        created_at=d.created_at,
        processed_at=d.processed_at,
    )


def _conversation_out(c: Conversation) -> ConversationOut:
    return ConversationOut(id=c.id, title=c.title, created_at=c.created_at, updated_at=c.updated_at)


def _message_out(m: Message) -> MessageOut:
    return MessageOut(id=m.id, role=m.role.value, content=m.content, citations=m.citations, created_at=m.created_at)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(services: Services | None = None) -> FastAPI:
    """Build the application.

    Parameters
    ----------
    services:
        Pre-wired collaborators (tests pass fakes); built from settings
        when omitted.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.services.worker.shutdown()

    app = FastAPI(
        title="DocChat API",
        version="0.1.0",
        description="Upload documents and chat with a model grounded in them.",
        lifespan=lifespan,
    )
    app.state.services = services if services is not None else build_services()

    # ── Error mapping ─────────────────────────────────────────────────
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(DocumentNotFound)
    async def document_not_found(request: Request, exc: DocumentNotFound) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "Document not found")

    @app.exception_handler(ConversationNotFound)
    async def conversation_not_found(request: Request, exc: ConversationNotFound) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "Conversation not found")

    @app.exception_handler(UnknownModel)
    async def unknown_model(request: Request, exc: UnknownModel) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(UnsupportedFormat)
    async def unsupported_format(request: Request, exc: UnsupportedFormat) -> JSONResponse:
        return _error(status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, str(exc))

    @app.exception_handler(VectorIndexError)
    async def vector_index_error(request: Request, exc: VectorIndexError) -> JSONResponse:
        logger.error("Vector index failure on %s: %s", request.url.path, exc)
        return _error(status.HTTP_502_BAD_GATEWAY, "Vector index unavailable")

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/models", response_model=list[ModelOut])
    async def models() -> list[ModelOut]:
        return [ModelOut(**m) for m in list_models()]

    @app.post("/documents", response_model=UploadResponse)
    async def upload_documents(
        files: list[UploadFile] | None = File(default=None),
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> UploadResponse:
        if not files:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")
        uploaded = [
            UploadedFile(filename=f.filename or "upload", content_type=f.content_type, data=await f.read())
            for f in files
        ]
        outcomes = await services.documents.upload(owner_id, uploaded)
        return UploadResponse(documents=[UploadOutcomeOut(**o.model_dump()) for o in outcomes])

    @app.get("/documents", response_model=list[DocumentOut])
    async def list_documents(
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> list[DocumentOut]:
        return [_document_out(d) for d in services.documents.list_documents(owner_id)]

    @app.get("/documents/{document_id}", response_model=DocumentOut)
    async def get_document(
        document_id: str,
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> DocumentOut:
        return _document_out(services.documents.get_document(owner_id, document_id))

    @app.delete("/documents/{document_id}", response_model=SuccessResponse)
    async def delete_document(
        document_id: str,
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> SuccessResponse:
        await services.documents.delete_document(owner_id, document_id)
        return SuccessResponse()

    @app.get("/conversations", response_model=list[ConversationOut])
    async def list_conversations(
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> list[ConversationOut]:
        return [_conversation_out(c) for c in services.repository.list_conversations(owner_id)]

    @app.post("/conversations", response_model=ConversationOut)
    async def create_conversation(
        body: CreateConversationRequest | None = None,
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> ConversationOut:
        conversation = Conversation(owner_id=owner_id)
        if body is not None and body.title:
            conversation.title = body.title
        return _conversation_out(services.repository.create_conversation(conversation))

    @app.get("/conversations/{conversation_id}", response_model=ConversationDetail)
    async def get_conversation(
        conversation_id: str,
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> ConversationDetail:
        conversation = services.repository.get_conversation(conversation_id, owner_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        messages = services.repository.list_messages(conversation_id)
        return ConversationDetail(
            **_conversation_out(conversation).model_dump(),
            messages=[_message_out(m) for m in messages],
        )

    @app.delete("/conversations/{conversation_id}", response_model=SuccessResponse)
    async def delete_conversation(
        conversation_id: str,
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> SuccessResponse:
        if not services.repository.delete_conversation(conversation_id, owner_id):
            raise ConversationNotFound(conversation_id)
        return SuccessResponse()

    @app.post("/chat")
    async def chat(
        body: ChatRequest,
        owner_id: str = Depends(get_owner_id),
        services: Services = Depends(get_services),
    ) -> StreamingResponse:
        """Answer one message as a ``text/event-stream``."""
        if not body.message.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

        orchestrator = services.orchestrator
        turn = await orchestrator.start_turn(
            TurnRequest(
                owner_id=owner_id,
                message=body.message,
                model=body.model,
                conversation_id=body.conversation_id,
                use_documents=body.use_documents,
            )
        )

        async def event_stream() -> AsyncIterator[bytes]:
            events = orchestrator.stream_turn(turn)
            try:
                async for event in events:
                    yield to_sse(event)
            finally:
                await events.aclose()

        return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)

    return app
