"""Pydantic data models for the Sarepta document Q&A service."""

from sarepta_qa.models.agents import AgentResponse, OrchestratorOutput, ProcessingStep
from sarepta_qa.models.chat import (
    ChatMessage,
    MessageMetadata,
    MessageOptions,
    MessageRole,
    SendMessageRequest,
)
from sarepta_qa.models.citation import (
    Citation,
    CitationRef,
    CitationSegment,
    Segment,
    TextSegment,
)
from sarepta_qa.models.document import (
    Chunk,
    ChunkMetadata,
    Document,
    DocumentCategory,
    ScoredChunk,
)
from sarepta_qa.models.errors import CompletionError, ErrorCode, ErrorResponse, IndexingError

__all__ = [
    "AgentResponse",
    "ChatMessage",
    "Chunk",
    "ChunkMetadata",
    "Citation",
    "CitationRef",
    "CitationSegment",
    "CompletionError",
    "Document",
    "DocumentCategory",
    "ErrorCode",
    "ErrorResponse",
    "IndexingError",
    "MessageMetadata",
    "MessageOptions",
    "MessageRole",
    "OrchestratorOutput",
    "ProcessingStep",
    "ScoredChunk",
    "Segment",
    "SendMessageRequest",
    "TextSegment",
]
