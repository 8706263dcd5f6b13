"""FastAPI application entry point for the Sarepta Elevidys document Q&A service."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from sarepta_qa.agents.orchestrator import Orchestrator
from sarepta_qa.config import Settings, get_settings
from sarepta_qa.logging_config import setup_logging
from sarepta_qa.models.chat import ChatMessage, MessageMetadata, SendMessageRequest
from sarepta_qa.models.document import Document, DocumentCategory
from sarepta_qa.models.errors import ErrorCode, ErrorResponse
from sarepta_qa.services.audit import AuditEntry, log_query
from sarepta_qa.services.chunk_store import ChunkStore, PdfTextExtractor
from sarepta_qa.services.completion import (
    AutogenCompletionClient,
    CompletionClient,
    CompletionGateway,
    CompletionRequest,
    CompletionResponse,
)
from sarepta_qa.services.corpus import filter_documents, get_document_stats, load_all_documents
from sarepta_qa.services.search import LexicalSearchService

logger = logging.getLogger(__name__)

VERSION = "0.1.0"
ANSWER_CONFIDENCE = 0.85
SLOW_RESPONSE_MS = 5000


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    timestamp: str
    documents: int
    chunks: int
    documents_processed: bool


def _error(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=code, message=message).model_dump(mode="json"),
    )


def apology_message(query: str, document_count: int) -> str:
    """User-facing text for a query the pipeline could not answer."""
    return (
        f'I apologize, but I encountered an error while analyzing your question: "{query}".\n\n'
        "This could be due to:\n"
        "- Completion service connectivity issues\n"
        "- Document processing limitations\n"
        "- System initialization problems\n\n"
        "Please try rephrasing your question or try again in a moment. The system contains "
        f"{document_count} documents about Sarepta's Elevidys gene therapy that I can analyze."
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    logger.info("Sarepta Q&A service starting up")

    await app.state.orchestrator.ensure_indexed(app.state.documents)

    yield

    logger.info("Sarepta Q&A service shutting down")


def create_app(
    settings: Settings | None = None,
    completion_client: CompletionClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings; read from the environment when omitted.
        completion_client: External completion service handle; defaults to
            the autogen client built from ``settings``.
    """
    settings = settings or get_settings()

    application = FastAPI(
        title="Sarepta Elevidys Document Q&A API",
        version=VERSION,
        description="Cited answers over FDA, SEC, publication and press documents",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    documents = load_all_documents(settings)
    chunk_store = ChunkStore.from_settings(settings)
    client = completion_client or AutogenCompletionClient(settings)
    orchestrator = Orchestrator(
        chunk_store=chunk_store,
        search=LexicalSearchService(chunk_store),
        gateway=CompletionGateway(client, settings),
        extractor=PdfTextExtractor(settings.corpus_dir),
        settings=settings,
    )

    application.state.settings = settings
    application.state.documents = documents
    application.state.chunk_store = chunk_store
    application.state.completion_client = client
    application.state.orchestrator = orchestrator

    @application.get("/")
    async def root() -> dict:
        """Root endpoint with API info."""
        return {
            "name": "Sarepta Elevidys Document Q&A",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    @application.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        state = request.app.state
        return HealthResponse(
            status="healthy",
            version=VERSION,
            timestamp=datetime.now(tz=UTC).isoformat(),
            documents=len(state.documents),
            chunks=len(state.chunk_store),
            documents_processed=state.orchestrator.documents_processed,
        )

    @application.post("/chat", response_model=ChatMessage)
    async def send_message(body: SendMessageRequest, request: Request) -> ChatMessage:
        """Answer a question about the corpus.

        Always returns an assistant message for a valid request; when the
        pipeline fails the message is an apology naming the corpus size.
        """
        start_time = time.monotonic()
        state = request.app.state
        settings: Settings = state.settings

        if len(body.content) > settings.max_input_length:
            return _error(  # type: ignore[return-value]
                400,
                ErrorCode.INPUT_TOO_LONG,
                f"Message exceeds maximum length of {settings.max_input_length} characters.",
            )

        if not body.content.strip():
            return _error(400, ErrorCode.INVALID_REQUEST, "Message cannot be empty.")  # type: ignore[return-value]

        session_id = body.session_id or f"session_{uuid.uuid4().hex}"
        max_results = body.options.max_results if body.options else None

        result = await state.orchestrator.answer(
            body.content, session_id, state.documents, max_results=max_results
        )
        latency_ms = int((time.monotonic() - start_time) * 1000)

        if not result.success or result.data is None:
            logger.error(
                "Chat request failed: %s",
                result.error,
                extra={"session_id": session_id, "latency_ms": latency_ms},
            )
            return ChatMessage(
                id=f"error_{uuid.uuid4().hex}",
                content=apology_message(body.content, len(state.documents)),
                session_id=session_id,
                metadata=MessageMetadata(processing_time_ms=latency_ms),
            )

        output = result.data
        await log_query(
            AuditEntry(
                session_id=session_id,
                query=body.content,
                documents_cited=[c.url for c in output.citations],
                response_summary=output.response,
                latency_ms=latency_ms,
                used_fallback=output.used_fallback,
            )
        )

        if latency_ms > SLOW_RESPONSE_MS:
            logger.warning(
                "Response exceeded 5s target",
                extra={"latency_ms": latency_ms, "session_id": session_id},
            )

        return ChatMessage(
            content=output.response,
            session_id=session_id,
            citations=output.citations,
            segments=output.segments,
            metadata=MessageMetadata(
                processing_time_ms=output.total_time_ms,
                sources=[c.document_title for c in output.citations],
                confidence=ANSWER_CONFIDENCE,
                used_fallback=output.used_fallback,
            ),
        )

    @application.post("/api/chat", response_model=CompletionResponse)
    async def chat_completion(body: CompletionRequest, request: Request) -> CompletionResponse:
        """Completion service proxy. Failures come back as ``fallback: true``."""
        client: CompletionClient = request.app.state.completion_client
        try:
            return await client.create(body)
        except Exception as e:
            logger.exception("Completion proxy error")
            return CompletionResponse(error=str(e) or type(e).__name__, fallback=True)

    @application.get("/documents", response_model=list[Document])
    async def list_documents(
        request: Request,
        category: DocumentCategory | None = None,
        search: str = "",
    ) -> list[Document]:
        """Corpus documents, filtered by title/filename substring and category."""
        state = request.app.state
        chunk_store: ChunkStore = state.chunk_store
        return [
            chunk_store.get_document(doc.id) or doc
            for doc in filter_documents(state.documents, search=search, category=category)
        ]

    @application.get("/documents/stats")
    async def document_stats(request: Request) -> dict:
        state = request.app.state
        stats = get_document_stats(state.documents)
        stats["chunks"] = len(state.chunk_store)
        return stats

    @application.get("/pdf/{filename}")
    async def get_pdf(filename: str, request: Request) -> FileResponse:
        """Serve a corpus PDF by filename."""
        corpus_dir = Path(request.app.state.settings.corpus_dir)
        path = corpus_dir / filename
        if Path(filename).name != filename or not path.is_file():
            return _error(404, ErrorCode.NOT_FOUND, f"Document not found: {filename}")  # type: ignore[return-value]
        return FileResponse(
            path,
            media_type="application/pdf",
            filename=filename,
            content_disposition_type="inline",
        )

    return application


app = create_app()
