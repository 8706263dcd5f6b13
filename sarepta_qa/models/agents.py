"""Orchestration trace and response envelope models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from sarepta_qa.models.citation import Citation, Segment

T = TypeVar("T")


class ProcessingStep(BaseModel):
    """Diagnostic record of one pipeline step. Discarded after the response."""

    agent: str
    action: str
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] | None = None
    time_ms: int = 0
    success: bool = True
    error: str | None = None


class OrchestratorOutput(BaseModel):
    response: str
    citations: list[Citation] = Field(default_factory=list)
    segments: list[Segment] = Field(default_factory=list)
    session_id: str
    processing_steps: list[ProcessingStep] = Field(default_factory=list)
    total_time_ms: int = 0
    used_fallback: bool = False


class AgentResponse(BaseModel, Generic[T]):
    """Success/error envelope returned by agents instead of raising."""

    success: bool
    data: T | None = None
    error: str | None = None
    metadata: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    agent_id: str
