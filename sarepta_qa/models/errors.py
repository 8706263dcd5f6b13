"""Error codes, HTTP error payloads and internal pipeline exceptions."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Machine-readable error codes returned by the HTTP API."""

    INVALID_REQUEST = "invalid_request"
    INPUT_TOO_LONG = "input_too_long"
    NOT_FOUND = "not_found"


class ErrorResponse(BaseModel):
    """Structured error response body."""

    error: ErrorCode = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")


class CompletionError(Exception):
    """Raised inside the completion gateway when the external call fails."""


class IndexingError(Exception):
    """Raised when a document cannot be extracted or chunked."""

    def __init__(self, document_id: str, reason: str) -> None:
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"failed to index document {document_id}: {reason}")
