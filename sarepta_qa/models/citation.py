"""Citation records and the typed segments produced by inline resolution."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field


class Citation(BaseModel):
    """Per-query reference to one source document.

    At most one Citation exists per ``document_id`` within an answer, and
    ``index`` is its 1-based position in the citation list.
    """

    id: str = Field(..., description="'cite-<index>'")
    index: int = Field(..., ge=1, description="1-based position used by numeric markers")
    document_id: str
    document_title: str
    page_numbers: list[int] = Field(default_factory=lambda: [1])
    content: str = Field("", description="Truncated excerpt of the first matching chunk")
    url: str | None = None
    category: str
    short_name: str = Field(..., description="Display label used in inline markers")
    relevance_score: float = Field(..., ge=0.0, le=1.0)


class TextSegment(BaseModel):
    """Plain answer text between citation markers."""

    kind: Literal["text"] = "text"
    text: str


class CitationRef(BaseModel):
    """One clickable (or inert) reference inside a citation marker."""

    index: int = Field(..., description="1-based citation index as written or resolved")
    label: str = Field(..., description="Text shown for the reference")
    resolved: bool = True
    citation_id: str | None = None
    title: str | None = Field(None, description="Tooltip, e.g. 'Title - Pages 1, 2'")
    filename: str | None = None
    url: str | None = None


class CitationSegment(BaseModel):
    """A bracketed marker bound to one or more citations.

    ``refs`` are sorted by ascending index; ``raw`` is the original
    bracket text including the brackets.
    """

    kind: Literal["citation"] = "citation"
    form: Literal["numeric", "name"]
    raw: str
    refs: list[CitationRef]
    separator: str = ", "

    @property
    def indices(self) -> list[int]:
        return [ref.index for ref in self.refs if ref.resolved]


Segment = Annotated[TextSegment | CitationSegment, Field(discriminator="kind")]
