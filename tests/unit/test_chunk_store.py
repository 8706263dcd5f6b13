"""Unit tests for chunking, PDF extraction and the chunk store."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from sarepta_qa.models.document import Document, DocumentCategory
from sarepta_qa.models.errors import IndexingError
from sarepta_qa.services.chunk_store import (
    ChunkStore,
    PdfTextExtractor,
    count_tokens,
    split_text,
    title_page,
)


def _document(doc_id: str = "fda-drug-label", title: str = "Drug Label") -> Document:
    return Document(
        id=doc_id,
        title=title,
        filename=f"FDA - {title}.pdf",
        category=DocumentCategory.FDA,
        path=f"/pdf/FDA%20-%20{title}.pdf",
    )


class TestSplitText:
    def test_short_text_is_single_span(self) -> None:
        assert split_text("hello world", 100, 10) == [(0, 11)]

    def test_blank_text_has_no_spans(self) -> None:
        assert split_text("   \n ", 100, 10) == []

    def test_prefers_sentence_break_past_midpoint(self) -> None:
        text = "a" * 70 + ". " + "b" * 60
        spans = split_text(text, 100, 10)
        assert spans[0] == (0, 71)
        assert spans[1][0] == 61

    def test_hard_cut_without_break(self) -> None:
        text = "x" * 250
        spans = split_text(text, 100, 20)
        assert spans[0] == (0, 100)
        assert spans[1] == (80, 180)
        assert spans[-1][1] == 250

    def test_always_progresses(self) -> None:
        text = ("word. " * 400).strip()
        spans = split_text(text, 50, 49)
        starts = [s for s, _ in spans]
        assert starts == sorted(set(starts))
        assert spans[-1][1] == len(text)

    def test_rejects_bad_parameters(self) -> None:
        with pytest.raises(ValueError):
            split_text("abc", 0, 0)
        with pytest.raises(ValueError):
            split_text("abc", 10, 10)


def test_count_tokens_rounds_up() -> None:
    assert count_tokens("") == 0
    assert count_tokens("abcd") == 1
    assert count_tokens("abcde") == 2


class TestChunkStore:
    def test_build_chunks_tracks_pages_and_metadata(self) -> None:
        store = ChunkStore(chunk_size=100, chunk_overlap=10, min_chunk_size=10)
        pages = ["First page sentence. " * 3, "Second page text. " * 3]
        chunks = store.build_chunks(_document(), pages)

        assert chunks
        assert chunks[0].id == "fda-drug-label-chunk-0"
        assert chunks[0].start_page == 1
        assert chunks[-1].end_page == 2
        for chunk in chunks:
            assert chunk.document_id == "fda-drug-label"
            assert chunk.metadata.document_title == "Drug Label"
            assert chunk.metadata.document_category == DocumentCategory.FDA
            assert chunk.metadata.filename == "FDA - Drug Label.pdf"
            assert chunk.metadata.page_numbers == tuple(range(chunk.start_page, chunk.end_page + 1))
            assert chunk.tokens == count_tokens(chunk.content)

    def test_short_document_keeps_one_chunk(self) -> None:
        store = ChunkStore(chunk_size=1000, chunk_overlap=200, min_chunk_size=100)
        chunks = store.build_chunks(_document(), ["tiny"])
        assert [c.content for c in chunks] == ["tiny"]

    def test_add_document_marks_processed(self) -> None:
        store = ChunkStore()
        store.add_document(_document(), ["Some text about safety."])
        assert len(store) == 1
        stored = store.get_document("fda-drug-label")
        assert stored is not None
        assert stored.processed is True
        assert stored.pages == 1

    def test_index_documents_replaces_store(self) -> None:
        store = ChunkStore()
        store.add_document(_document("old", "Old"), ["old text"])

        count = store.index_documents(
            [_document("a", "Alpha"), _document("b", "Beta")],
            lambda doc: [f"{doc.title} content."],
        )

        assert count == 2
        assert len(store) == 2
        assert store.get_document("old") is None
        assert {d.id for d in store.documents} == {"a", "b"}

    def test_index_documents_survives_extraction_failure(self) -> None:
        def extractor(doc: Document) -> list[str]:
            if doc.id == "bad":
                raise IndexingError(doc.id, "corrupt")
            return ["good text"]

        store = ChunkStore()
        store.index_documents([_document("bad", "Broken"), _document("ok", "Fine")], extractor)

        contents = {c.document_id: c.content for c in store.chunks}
        assert contents["bad"] == title_page(_document("bad", "Broken"))
        assert contents["ok"] == "good text"

    def test_index_documents_survives_unexpected_extractor_error(self) -> None:
        def extractor(doc: Document) -> list[str]:
            if doc.id == "bad":
                raise TypeError("unexpected object in xref")
            return ["good text"]

        store = ChunkStore()
        count = store.index_documents([_document("bad", "Broken"), _document("ok", "Fine")], extractor)

        assert count == 2
        assert {d.id for d in store.documents} == {"bad", "ok"}
        assert all(d.processed for d in store.documents)

    def test_index_documents_builds_through_add_document(self) -> None:
        original = ChunkStore.add_document
        with patch.object(
            ChunkStore, "add_document", autospec=True, side_effect=original
        ) as add_spy:
            store = ChunkStore()
            store.index_documents(
                [_document("a", "Alpha"), _document("b", "Beta")],
                lambda doc: [f"{doc.title} content."],
            )

        assert add_spy.call_count == 2
        assert [c.document_id for c in store.chunks] == ["a", "b"]

    def test_chunks_snapshot_is_immutable(self) -> None:
        store = ChunkStore()
        before = store.chunks
        store.add_document(_document(), ["text"])
        assert before == ()
        assert len(store.chunks) == 1


class TestPdfTextExtractor:
    def test_missing_file_yields_title_page(self, tmp_path: Path) -> None:
        extractor = PdfTextExtractor(tmp_path)
        doc = _document()
        assert extractor(doc) == [f"{doc.title}\n{doc.category.value}"]

    def test_unreadable_file_raises_indexing_error(self, tmp_path: Path) -> None:
        doc = _document()
        (tmp_path / doc.filename).write_bytes(b"this is not a pdf")
        with pytest.raises(IndexingError) as exc_info:
            PdfTextExtractor(tmp_path)(doc)
        assert exc_info.value.document_id == doc.id

    def test_malformed_pdf_error_wrapped(self, tmp_path: Path) -> None:
        doc = _document()
        (tmp_path / doc.filename).write_bytes(b"%PDF-1.4\n")
        with patch(
            "sarepta_qa.services.chunk_store.PdfReader",
            side_effect=TypeError("unexpected object in xref"),
        ):
            with pytest.raises(IndexingError) as exc_info:
                PdfTextExtractor(tmp_path)(doc)
        assert exc_info.value.document_id == doc.id

    def test_malformed_pdf_does_not_abort_indexing(self, tmp_path: Path) -> None:
        bad, good = _document("bad", "Broken"), _document("ok", "Fine")
        (tmp_path / bad.filename).write_bytes(b"%PDF-1.4\n")

        store = ChunkStore()
        with patch(
            "sarepta_qa.services.chunk_store.PdfReader",
            side_effect=TypeError("unexpected object in xref"),
        ):
            count = store.index_documents([bad, good], PdfTextExtractor(tmp_path))

        assert count == 2
        contents = {c.document_id: c.content for c in store.chunks}
        assert contents == {"bad": title_page(bad), "ok": title_page(good)}
