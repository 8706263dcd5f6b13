"""Audit trail of answered queries."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

RESPONSE_SUMMARY_LENGTH = 500


class AuditEntry(BaseModel):
    """One record per answered query, written to structured logs (JSON)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str = Field(..., description="Client session identifier")
    query: str = Field(..., description="User's question text")
    documents_cited: list[str] = Field(
        default_factory=list, description="Public PDF urls of the cited documents"
    )
    response_summary: str = Field(..., description="Leading part of the answer text")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    latency_ms: int = Field(..., description="End-to-end response time in ms")
    used_fallback: bool = Field(False, description="Answer came from the template generator")


async def log_query(entry: AuditEntry) -> None:
    """Write an audit entry to structured JSON logs.

    Args:
        entry: The audit entry to log.
    """
    logger.info(
        "audit_entry",
        extra={
            "session_id": entry.session_id,
            "query": entry.query,
            "documents_cited": entry.documents_cited,
            "response_summary": entry.response_summary[:RESPONSE_SUMMARY_LENGTH],
            "latency_ms": entry.latency_ms,
            "used_fallback": entry.used_fallback,
        },
    )
