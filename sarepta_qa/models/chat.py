"""Chat request and message models for the query entry point."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from sarepta_qa.models.citation import Citation, Segment


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageOptions(BaseModel):
    """Per-request retrieval options sent by the chat UI."""

    max_results: int | None = Field(None, ge=1, le=50, description="Top-k chunks to retrieve")
    search_threshold: float | None = Field(
        None, ge=0.0, le=1.0, description="Accepted for compatibility; lexical scores are unbounded"
    )
    include_history: bool = Field(False, description="Accepted; answers are single-turn")


class SendMessageRequest(BaseModel):
    """Request body for POST /chat."""

    content: str = Field(..., description="User's question text")
    session_id: str | None = Field(None, description="Client session identifier")
    options: MessageOptions | None = None


class MessageMetadata(BaseModel):
    processing_time_ms: int = 0
    sources: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    used_fallback: bool = False


class ChatMessage(BaseModel):
    """A single message as returned to the chat UI.

    Assistant messages carry their citations plus the resolved inline
    segments so the client can render clickable references.
    """

    id: str = Field(default_factory=lambda: f"assistant_{uuid.uuid4().hex}")
    content: str
    role: MessageRole = MessageRole.ASSISTANT
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    session_id: str
    citations: list[Citation] = Field(default_factory=list)
    segments: list[Segment] = Field(default_factory=list)
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)
