"""Business logic services for the Sarepta document Q&A service."""

from sarepta_qa.services.audit import AuditEntry, log_query
from sarepta_qa.services.chunk_store import ChunkStore, PdfTextExtractor
from sarepta_qa.services.citation_resolver import CitationResolver, render_numeric
from sarepta_qa.services.citations import build_citations, create_short_name
from sarepta_qa.services.completion import (
    AutogenCompletionClient,
    CompletionClient,
    CompletionGateway,
)
from sarepta_qa.services.fallback import FallbackGenerator
from sarepta_qa.services.search import LexicalSearchService, SearchBackend

__all__ = [
    "AuditEntry",
    "AutogenCompletionClient",
    "ChunkStore",
    "CitationResolver",
    "CompletionClient",
    "CompletionGateway",
    "FallbackGenerator",
    "LexicalSearchService",
    "PdfTextExtractor",
    "SearchBackend",
    "build_citations",
    "create_short_name",
    "log_query",
    "render_numeric",
]
