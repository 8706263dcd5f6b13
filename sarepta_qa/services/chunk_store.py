"""In-memory chunk store: PDF text extraction, chunking and the chunk index.

The store is populated once per process. ``index_documents`` builds a
complete new store off to the side and swaps its chunk list in with a
single assignment, so a search running during indexing sees either the
previous (possibly empty) store or the finished one, never a half-built
list.
"""

from __future__ import annotations

import bisect
import logging
import math
from collections.abc import Callable, Iterable
from pathlib import Path

from pypdf import PdfReader

from sarepta_qa.config import Settings
from sarepta_qa.models.document import Chunk, ChunkMetadata, Document
from sarepta_qa.models.errors import IndexingError

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"

TextExtractor = Callable[[Document], list[str]]


def count_tokens(text: str) -> int:
    """Approximate token count: 4 characters ≈ 1 token."""
    return math.ceil(len(text) / 4)


def title_page(document: Document) -> str:
    """Stand-in page text for documents with no extractable text."""
    return f"{document.title}\n{document.category.value}"


def split_text(text: str, chunk_size: int, overlap: int) -> list[tuple[int, int]]:
    """Split *text* into ``(start, end)`` character spans.

    A span ends on the last sentence or paragraph break inside the window
    when that break lies past the window's midpoint; otherwise the window
    is cut hard. Consecutive spans overlap by *overlap* characters.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")

    length = len(text)
    if not text.strip():
        return []
    if length <= chunk_size:
        return [(0, length)]

    spans: list[tuple[int, int]] = []
    start = 0
    while start < length:
        end = start + chunk_size
        if end < length:
            sentence_end = text.rfind(".", start, end)
            paragraph_end = text.rfind(PAGE_SEPARATOR, start, end)
            break_point = max(sentence_end, paragraph_end)
            if break_point > start + chunk_size * 0.5:
                end = break_point + 1
        else:
            end = length

        spans.append((start, end))
        if end >= length:
            break
        start = max(end - overlap, start + 1)

    return spans


class PdfTextExtractor:
    """Read page texts for a corpus document with pypdf.

    A document whose file is missing, or whose pages yield no text
    (scanned images), is represented by its title page only.
    """

    def __init__(self, corpus_dir: str | Path) -> None:
        self._corpus_dir = Path(corpus_dir)

    def __call__(self, document: Document) -> list[str]:
        path = self._corpus_dir / document.filename
        if not path.is_file():
            logger.debug("PDF not found, indexing title only: %s", path)
            return [title_page(document)]

        try:
            reader = PdfReader(path)
            pages = [(page.extract_text() or "").strip() for page in reader.pages]
        except Exception as e:
            # malformed files raise TypeError, IndexError etc., not only PyPdfError
            raise IndexingError(document.id, str(e)) from e

        if not any(pages):
            return [title_page(document)]
        return pages


class ChunkStore:
    """Ordered collection of immutable chunks plus their source documents.

    Args:
        chunk_size: Window size in characters.
        chunk_overlap: Overlap between consecutive chunks in characters.
        min_chunk_size: Chunks shorter than this are dropped, unless a
            document would otherwise have no chunk at all.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        min_chunk_size: int = 100,
    ) -> None:
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_chunk_size = min_chunk_size
        self._chunks: tuple[Chunk, ...] = ()
        self._documents: dict[str, Document] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> ChunkStore:
        return cls(
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            min_chunk_size=settings.min_chunk_size,
        )

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return self._chunks

    @property
    def documents(self) -> list[Document]:
        return list(self._documents.values())

    def get_document(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def __len__(self) -> int:
        return len(self._chunks)

    def build_chunks(self, document: Document, pages: list[str]) -> list[Chunk]:
        """Chunk the page texts of one document."""
        page_starts: list[int] = []
        offset = 0
        for page in pages:
            page_starts.append(offset)
            offset += len(page) + len(PAGE_SEPARATOR)
        text = PAGE_SEPARATOR.join(pages)

        def page_at(char_offset: int) -> int:
            return max(1, bisect.bisect_right(page_starts, char_offset))

        spans = split_text(text, self.chunk_size, self.chunk_overlap)
        kept = [
            (start, end)
            for start, end in spans
            if len(text[start:end].strip()) >= self.min_chunk_size
        ]
        if not kept and spans:
            kept = spans[:1]

        chunks: list[Chunk] = []
        for i, (start, end) in enumerate(kept):
            content = text[start:end].strip()
            start_page = page_at(start)
            end_page = page_at(max(start, end - 1))
            chunks.append(
                Chunk(
                    id=f"{document.id}-chunk-{i}",
                    document_id=document.id,
                    content=content,
                    start_page=start_page,
                    end_page=end_page,
                    start_char=start,
                    end_char=end,
                    tokens=count_tokens(content),
                    metadata=ChunkMetadata(
                        document_title=document.title,
                        document_category=document.category,
                        filename=document.filename,
                        page_numbers=tuple(range(start_page, end_page + 1)),
                    ),
                )
            )
        return chunks

    def add_document(self, document: Document, pages: list[str]) -> list[Chunk]:
        """Register *document* and append its chunks to the store."""
        chunks = self.build_chunks(document, pages)
        self._documents[document.id] = document.model_copy(
            update={"processed": True, "pages": len(pages)}
        )
        self._chunks = (*self._chunks, *chunks)
        return chunks

    def index_documents(
        self,
        documents: Iterable[Document],
        extractor: TextExtractor,
    ) -> int:
        """Rebuild the store from *documents*. Returns the number of chunks.

        A document whose extraction fails, for whatever reason, is indexed
        from its title page and the failure is logged; the rest of the
        corpus is unaffected.
        """
        staging = ChunkStore(self.chunk_size, self.chunk_overlap, self.min_chunk_size)
        for document in documents:
            staging.add_document(document, _extract_pages(document, extractor))

        self._documents = staging._documents
        self._chunks = staging._chunks
        logger.info(
            "Indexed %d documents into %d chunks", len(self._documents), len(self._chunks)
        )
        return len(self._chunks)


def _extract_pages(document: Document, extractor: TextExtractor) -> list[str]:
    try:
        return extractor(document)
    except IndexingError as e:
        logger.warning("Extraction failed, indexing title only: %s", e)
    except Exception:
        logger.exception("Unexpected extraction error for %s, indexing title only", document.id)
    return [title_page(document)]
