"""Lexical search over the in-memory chunk store.

Scoring is a weighted count of query-term occurrences:

  score = (term_hits * term + title_hits * title + phrase)  x  category

where ``phrase`` is added when the whole normalized query appears
verbatim in the chunk, and the ``category`` multiplier applies when the
chunk's category matches a topic inferred from the query (e.g. "safety"
-> FDA filings). No embedding similarity is involved.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from sarepta_qa.models.document import Chunk, DocumentCategory, ScoredChunk

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
# SEC form names: "10-K" -> "10k", "8-K" -> "8k"
_FORM_RE = re.compile(r"\b(\d+)-([a-z])\b")
MIN_TERM_LENGTH = 2

STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "about", "an", "and", "are", "as", "at", "be", "by", "did", "do",
        "does", "for", "from", "had", "has", "have", "how", "in", "is", "it",
        "its", "of", "on", "or", "that", "the", "their", "there", "this", "to",
        "was", "were", "what", "when", "where", "which", "who", "why", "with",
    }
)

TOPIC_CATEGORIES: dict[str, frozenset[DocumentCategory]] = {
    **dict.fromkeys(
        ("safety", "adverse", "death", "deaths", "approval", "fda", "label", "review"),
        frozenset({DocumentCategory.FDA}),
    ),
    **dict.fromkeys(
        ("trial", "efficacy", "embark", "clinical", "study"),
        frozenset({DocumentCategory.PUBLICATION, DocumentCategory.ABSTRACT}),
    ),
    **dict.fromkeys(
        ("financial", "sec", "revenue", "filing", "10k", "8k"),
        frozenset({DocumentCategory.SEC}),
    ),
    **dict.fromkeys(
        ("press", "news", "shipment", "shipments", "pause", "halt"),
        frozenset({DocumentCategory.PRESS_REPORT}),
    ),
}


@dataclass(frozen=True)
class SearchWeights:
    """Tunable scoring weights.

    Attributes:
        term: Weight per occurrence of a query term in the chunk text.
        title: Weight per query term found in the document title.
        phrase: Bonus when the full query phrase occurs verbatim.
        category: Multiplier for chunks in a query-inferred category.
    """

    term: float = 1.0
    title: float = 2.0
    phrase: float = 5.0
    category: float = 1.5


def tokenize(text: str) -> list[str]:
    """Lower-case alphanumeric word tokens."""
    return _TOKEN_RE.findall(_FORM_RE.sub(r"\1\2", text.lower()))


def query_terms(query: str) -> list[str]:
    """Distinct non-stop-word query tokens, in first-seen order.

    Single characters (the "s" of "FDA's") are dropped.
    """
    seen: dict[str, None] = {}
    for token in tokenize(query):
        if len(token) >= MIN_TERM_LENGTH and token not in STOP_WORDS:
            seen.setdefault(token, None)
    return list(seen)


def infer_categories(terms: Sequence[str]) -> frozenset[DocumentCategory]:
    categories: set[DocumentCategory] = set()
    for term in terms:
        categories |= TOPIC_CATEGORIES.get(term, frozenset())
    return frozenset(categories)


@runtime_checkable
class SearchBackend(Protocol):
    """Contract for any chunk search implementation."""

    def search(self, query: str, max_results: int = 15) -> list[ScoredChunk]: ...


class LexicalSearchService:
    """Keyword search over the chunks currently held by a chunk store.

    Args:
        chunk_source: Anything exposing a ``chunks`` sequence (the ChunkStore).
        weights: Scoring weights; defaults to ``SearchWeights()``.
    """

    def __init__(self, chunk_source: object, weights: SearchWeights | None = None) -> None:
        self._source = chunk_source
        self.weights = weights or SearchWeights()

    def search(self, query: str, max_results: int = 15) -> list[ScoredChunk]:
        """Return up to *max_results* chunks, best first.

        Ties keep store order. An empty query, an empty store or any
        scoring error yields an empty list.
        """
        try:
            return self._search(query, max_results)
        except Exception:
            logger.exception("Search failed, returning no results")
            return []

    def _search(self, query: str, max_results: int) -> list[ScoredChunk]:
        chunks: Sequence[Chunk] = self._source.chunks  # type: ignore[attr-defined]
        terms = query_terms(query or "")
        if not terms or not chunks or max_results < 1:
            return []

        phrase = " ".join(tokenize(query)) if len(terms) > 1 else ""
        categories = infer_categories(terms)

        scored: list[ScoredChunk] = []
        for chunk in chunks:
            hit = self._score_chunk(chunk, terms, phrase, categories)
            if hit is not None:
                scored.append(hit)

        # sorted() is stable: equal scores keep chunk order
        scored = sorted(scored, key=lambda s: s.score, reverse=True)[:max_results]
        logger.debug("Search matched %d chunks for %d terms", len(scored), len(terms))
        return scored

    def _score_chunk(
        self,
        chunk: Chunk,
        terms: Sequence[str],
        phrase: str,
        categories: frozenset[DocumentCategory],
    ) -> ScoredChunk | None:
        content_tokens = tokenize(chunk.content)
        counts = Counter(content_tokens)
        title_tokens = set(tokenize(chunk.metadata.document_title))

        matched = [t for t in terms if counts[t] or t in title_tokens]
        if not matched:
            return None

        w = self.weights
        score = sum(counts[t] for t in terms) * w.term
        score += sum(1 for t in terms if t in title_tokens) * w.title

        reasons = [f"matched terms: {', '.join(matched)}"]
        if phrase and f" {phrase} " in f" {' '.join(content_tokens)} ":
            score += w.phrase
            reasons.append("exact phrase")
        if chunk.metadata.document_category in categories:
            score *= w.category
            reasons.append(f"topic category ({chunk.metadata.document_category.value})")

        return ScoredChunk(chunk=chunk, score=round(score, 4), relevance_reason="; ".join(reasons))
