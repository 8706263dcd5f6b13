"""Bind inline citation markers in answer text to citation records.

Generated answers cite sources in one of two bracket encodings:

  numeric  ``[1]`` / ``[2, 5]``    1-based indices into the citation list
  name     ``[Short Name]`` / ``[Name A, Name B]``  citation short names

Both may appear in the same answer. The text is parsed once, left to
right, into a list of segments (plain text or a citation marker). Name
markers are resolved per comma-separated token by exact, then substring,
then prefix match. Brackets that stay unresolved get one more, looser
chance through title word overlap; anything still unresolved is kept as
literal text.

Resolution is idempotent: ``resolve(render_numeric(resolve(t)))`` binds
the same citations and yields the same text as ``resolve(t)``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sarepta_qa.models.citation import Citation, CitationRef, CitationSegment, Segment, TextSegment
from sarepta_qa.services.citations import ELLIPSIS, filename_from_url

logger = logging.getLogger(__name__)

# Heuristic thresholds; tunable, not correctness constraints.
PREFIX_MATCH_LENGTH = 15
MIN_SHARED_WORDS = 2
MIN_LOOSE_BRACKET_LENGTH = 20
MIN_SUBSTRING_TOKEN_LENGTH = 3
SIGNIFICANT_WORD_LENGTH = 4

LOOSE_MATCH_KEYWORDS: frozenset[str] = frozenset(
    {
        "fda", "sec", "elevidys", "sarepta", "review", "memo", "summary", "letter",
        "approval", "label", "publication", "report", "press", "clinical", "trial",
        "safety", "gene", "therapy", "duchenne", "dystrophy", "embark", "filing",
    }
)

# Words too common across the corpus titles to count as evidence.
_COMMON_WORDS: frozenset[str] = frozenset(
    {"elevidys", "sarepta", "with", "from", "that", "this", "into", "after", "their", "pdf"}
)

_BRACKET_RE = re.compile(r"\[([^\[\]\n]+)\](?!\()")
_NUMERIC_RE = re.compile(r"^\s*\d+(?:[,\s]+\d+)*\s*$")
_WORD_RE = re.compile(r"[a-z0-9]+")
_TOKEN_PUNCTUATION = " ,.;:!?\"'()"


@dataclass
class _Unresolved:
    """A bracket the primary passes could not bind; input to the loose pass."""

    raw: str
    content: str


def significant_words(text: str) -> set[str]:
    return {
        w
        for w in _WORD_RE.findall(text.lower())
        if len(w) >= SIGNIFICANT_WORD_LENGTH and w not in _COMMON_WORDS
    }


def render_numeric(segments: Iterable[Segment]) -> str:
    """Rewrite segments back to text, every marker in numeric form."""
    parts: list[str] = []
    for segment in segments:
        if isinstance(segment, TextSegment):
            parts.append(segment.text)
        else:
            parts.append("[" + ", ".join(str(ref.index) for ref in segment.refs) + "]")
    return "".join(parts)


def segments_text(segments: Iterable[Segment]) -> str:
    """Concatenated plain-text portions, markers removed."""
    return "".join(s.text for s in segments if isinstance(s, TextSegment))


class CitationResolver:
    """Resolve citation markers against one answer's ordered citation list."""

    def __init__(self, citations: Sequence[Citation]) -> None:
        self._citations = list(citations)

    @property
    def citations(self) -> list[Citation]:
        return self._citations

    def resolve(self, text: str) -> list[Segment]:
        """Split *text* into text and citation segments, in text order."""
        if not text:
            return []
        if not self._citations:
            return [TextSegment(text=text)]

        pending: list[TextSegment | CitationSegment | _Unresolved] = []
        last = 0
        for match in _BRACKET_RE.finditer(text):
            if match.start() > last:
                pending.append(TextSegment(text=text[last : match.start()]))
            raw, content = match.group(0), match.group(1)
            if _NUMERIC_RE.match(content):
                pending.append(self._numeric_segment(raw, content))
            else:
                pending.append(self._name_segment(raw, content) or _Unresolved(raw, content))
            last = match.end()
        if last < len(text):
            pending.append(TextSegment(text=text[last:]))

        segments: list[Segment] = []
        for item in pending:
            if isinstance(item, _Unresolved):
                segments.append(self._loose_segment(item) or TextSegment(text=item.raw))
            else:
                segments.append(item)
        return _merge_text(segments)

    # ------------------------------------------------------------------
    # Numeric form
    # ------------------------------------------------------------------

    def _numeric_segment(self, raw: str, content: str) -> CitationSegment:
        numbers = sorted({int(n) for n in re.split(r"[,\s]+", content.strip()) if n})
        refs = [self._ref(n, label=str(n)) for n in numbers]
        return CitationSegment(form="numeric", raw=raw, refs=refs)

    # ------------------------------------------------------------------
    # Name form
    # ------------------------------------------------------------------

    def _exact(self, token: str) -> Citation | None:
        needle = token.strip().lower()
        for citation in self._citations:
            name = citation.short_name.lower()
            if needle in (name, name.removesuffix(ELLIPSIS).rstrip(", ")):
                return citation
        return None

    def match_name(self, token: str) -> Citation | None:
        """Find the citation named by *token*.

        Case-insensitive; an exact short-name match always wins over a
        substring match, which wins over a prefix match. Within one
        strategy the earliest citation wins. A token with no word left
        after dropping ellipses and punctuation (a stray ``...``) never
        matches fuzzily.
        """
        needle = token.strip().lower()
        if not needle:
            return None

        exact = self._exact(needle)
        if exact is not None:
            return exact

        needle = needle.replace(ELLIPSIS, "").strip(_TOKEN_PUNCTUATION)
        if not _WORD_RE.search(needle):
            return None

        for citation in self._citations:
            name = citation.short_name.lower()
            if not name:
                continue
            if len(needle) >= MIN_SUBSTRING_TOKEN_LENGTH and needle in name:
                return citation
            if name in needle:
                return citation

        prefix = needle[:PREFIX_MATCH_LENGTH]
        for citation in self._citations:
            if citation.short_name.lower()[:PREFIX_MATCH_LENGTH] == prefix:
                return citation
        return None

    def _name_segment(self, raw: str, content: str) -> CitationSegment | None:
        tokens = content.split(",")
        found: dict[int, Citation] = {}

        i = 0
        while i < len(tokens):
            # short names may themselves contain commas: try the longest run first
            for j in range(len(tokens), i + 1, -1):
                citation = self._exact(",".join(tokens[i:j]))
                if citation is not None:
                    found.setdefault(citation.index, citation)
                    i = j
                    break
            else:
                citation = self.match_name(tokens[i])
                if citation is not None:
                    found.setdefault(citation.index, citation)
                i += 1

        if not found:
            return None
        refs = [self._ref(index, label=found[index].short_name) for index in sorted(found)]
        return CitationSegment(form="name", raw=raw, refs=refs)

    # ------------------------------------------------------------------
    # Loose fallback: title word overlap
    # ------------------------------------------------------------------

    def _loose_eligible(self, content: str) -> bool:
        lowered = content.lower()
        words = set(_WORD_RE.findall(lowered))
        return (
            len(content) >= MIN_LOOSE_BRACKET_LENGTH
            and "," in content
            and bool(words & LOOSE_MATCH_KEYWORDS)
        )

    def _best_overlap(self, text: str) -> Citation | None:
        words = significant_words(text)
        best: Citation | None = None
        best_shared = MIN_SHARED_WORDS - 1
        for citation in self._citations:
            shared = len(words & significant_words(citation.document_title))
            if shared > best_shared:
                best, best_shared = citation, shared
        return best

    def _loose_segment(self, item: _Unresolved) -> CitationSegment | None:
        if not self._loose_eligible(item.content):
            return None

        found: dict[int, Citation] = {}
        for token in item.content.split(","):
            citation = self._best_overlap(token)
            if citation is not None:
                found.setdefault(citation.index, citation)
        if not found:
            citation = self._best_overlap(item.content)
            if citation is not None:
                found[citation.index] = citation
        if not found:
            return None

        logger.debug("Loosely matched bracket %r to citations %s", item.raw, sorted(found))
        refs = [self._ref(index, label=found[index].short_name) for index in sorted(found)]
        return CitationSegment(form="name", raw=item.raw, refs=refs)

    # ------------------------------------------------------------------

    def _ref(self, index: int, label: str) -> CitationRef:
        if not 1 <= index <= len(self._citations):
            return CitationRef(index=index, label=label, resolved=False)

        citation = self._citations[index - 1]
        pages = ", ".join(str(p) for p in citation.page_numbers)
        return CitationRef(
            index=index,
            label=label,
            citation_id=citation.id,
            title=f"{citation.document_title} - Pages {pages}",
            filename=filename_from_url(citation.url, citation.document_id),
            url=citation.url,
        )


def _merge_text(segments: list[Segment]) -> list[Segment]:
    merged: list[Segment] = []
    for segment in segments:
        if isinstance(segment, TextSegment) and merged and isinstance(merged[-1], TextSegment):
            merged[-1] = TextSegment(text=merged[-1].text + segment.text)
        else:
            merged.append(segment)
    return merged
