"""Build per-query citations from ranked chunks."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from urllib.parse import unquote

from sarepta_qa.models.citation import Citation
from sarepta_qa.models.document import ScoredChunk
from sarepta_qa.services.corpus import CATEGORY_PREFIX_RE, PDF_SUFFIX_RE, build_document_path

logger = logging.getLogger(__name__)

SHORT_NAME_MAX_LENGTH = 40
SHORT_NAME_TRUNCATE_AT = 35
ELLIPSIS = "..."
EXCERPT_LENGTH = 200

# First citation scores RELEVANCE_START; each later one keeps (1 - RELEVANCE_STEP) of the previous score
RELEVANCE_START = 0.9
RELEVANCE_STEP = 0.05


def create_short_name(filename: str) -> str:
    """Derive the inline display label for a document.

    Strips the ``.pdf`` extension and the category prefix, then cuts
    names longer than SHORT_NAME_MAX_LENGTH at the last word boundary
    within SHORT_NAME_TRUNCATE_AT characters and appends an ellipsis.
    Different documents may end up with the same short name.
    """
    name = CATEGORY_PREFIX_RE.sub("", PDF_SUFFIX_RE.sub("", filename))
    if len(name) <= SHORT_NAME_MAX_LENGTH:
        return name

    shortened = ""
    for word in name.split():
        candidate = f"{shortened} {word}" if shortened else word
        if len(candidate) > SHORT_NAME_TRUNCATE_AT:
            break
        shortened = candidate

    if not shortened:
        # a single word longer than the limit
        shortened = name[:SHORT_NAME_TRUNCATE_AT]
    return shortened + ELLIPSIS


def build_citation_url(filename: str, url_prefix: str) -> str:
    """Percent-encode *filename* and join it to the public PDF prefix."""
    return build_document_path(filename, url_prefix)


def filename_from_url(url: str | None, document_id: str) -> str:
    """Recover the PDF filename from a citation url for display."""
    if url and "/" in url:
        name = unquote(url.rsplit("/", 1)[-1])
        if name:
            return name
    return f"{document_id}.pdf"


def relevance_for_position(position: int) -> float:
    return round(RELEVANCE_START * (1 - RELEVANCE_STEP) ** position, 4)


def build_citations(
    scored_chunks: Sequence[ScoredChunk],
    url_prefix: str = "/pdf",
) -> list[Citation]:
    """Turn ranked chunks into one citation per distinct document.

    The first chunk seen for a document seeds its citation; later chunks
    of the same document are ignored. Citation order follows chunk rank,
    and relevance decreases with position rather than tracking the
    lexical score.
    """
    first_chunks: dict[str, ScoredChunk] = {}
    for scored in scored_chunks:
        first_chunks.setdefault(scored.chunk.document_id or "unknown", scored)

    citations: list[Citation] = []
    for position, (document_id, scored) in enumerate(first_chunks.items()):
        chunk = scored.chunk
        meta = chunk.metadata
        filename = meta.filename or f"{document_id}.pdf"
        excerpt = chunk.content[:EXCERPT_LENGTH]
        citations.append(
            Citation(
                id=f"cite-{position + 1}",
                index=position + 1,
                document_id=document_id,
                document_title=meta.document_title or "Unknown Document",
                page_numbers=list(meta.page_numbers) or [1],
                content=f"{excerpt}..." if excerpt else "Content excerpt...",
                url=build_citation_url(filename, url_prefix),
                category=meta.document_category.value,
                short_name=create_short_name(filename),
                relevance_score=relevance_for_position(position),
            )
        )

    logger.debug(
        "Built %d citations from %d chunks", len(citations), len(scored_chunks)
    )
    return citations
