"""Corpus models: documents, their text chunks and scored search hits."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentCategory(str, Enum):
    """Closed set of corpus categories, matching the filename prefixes."""

    FDA = "FDA"
    SEC = "SEC"
    PUBLICATION = "Publication"
    PRESS_REPORT = "Press Report"
    ABSTRACT = "Abstract"


class Document(BaseModel):
    """One physical source PDF in the corpus.

    Built once at startup from the fixed corpus list and never mutated;
    the chunk store keeps its own copy with ``processed`` set.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable slug derived from the filename")
    title: str = Field(..., description="Human-readable title")
    filename: str = Field(..., description="PDF filename including category prefix")
    category: DocumentCategory
    path: str = Field(..., description="Public, percent-encoded link to the PDF")
    size: int = Field(0, ge=0, description="File size in bytes (estimated when absent)")
    pages: int | None = None
    processed: bool = False


class ChunkMetadata(BaseModel):
    """Copy of the parent document's fields carried on every chunk.

    Lets citations be built from a chunk without looking the document up.
    """

    model_config = ConfigDict(frozen=True)

    document_title: str
    document_category: DocumentCategory
    filename: str | None = None
    page_numbers: tuple[int, ...] = (1,)


class Chunk(BaseModel):
    """A contiguous span of extracted text from exactly one document."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    content: str
    start_page: int = 1
    end_page: int = 1
    start_char: int = 0
    end_char: int = 0
    tokens: int = 0
    metadata: ChunkMetadata


class ScoredChunk(BaseModel):
    """Search hit, produced and consumed within one query."""

    chunk: Chunk
    score: float
    relevance_reason: str = ""
