"""Unit tests for the lexical search service."""

from __future__ import annotations

from sarepta_qa.models.document import Chunk, ChunkMetadata, DocumentCategory
from sarepta_qa.services.search import (
    LexicalSearchService,
    SearchBackend,
    SearchWeights,
    infer_categories,
    query_terms,
    tokenize,
)


def _chunk(
    chunk_id: str,
    content: str,
    category: DocumentCategory = DocumentCategory.PUBLICATION,
    title: str = "Untitled",
) -> Chunk:
    return Chunk(
        id=chunk_id,
        document_id=chunk_id.split("#")[0],
        content=content,
        metadata=ChunkMetadata(document_title=title, document_category=category),
    )


class _Store:
    def __init__(self, chunks: list[Chunk]) -> None:
        self.chunks = tuple(chunks)


class TestQueryParsing:
    def test_tokenize_lowercases_words(self) -> None:
        assert tokenize("Elevidys' FDA-approval, 2023!") == ["elevidys", "fda", "approval", "2023"]

    def test_query_terms_drop_stop_words_and_duplicates(self) -> None:
        assert query_terms("What is the safety of the safety profile?") == ["safety", "profile"]

    def test_query_terms_drop_single_characters(self) -> None:
        assert query_terms("FDA's label") == ["fda", "label"]

    def test_sec_form_names_are_one_token(self) -> None:
        assert tokenize("Annual 10-K and 8-K filings") == ["annual", "10k", "and", "8k", "filings"]
        assert infer_categories(query_terms("the 10-K")) == {DocumentCategory.SEC}

    def test_infer_categories(self) -> None:
        assert infer_categories(["safety"]) == {DocumentCategory.FDA}
        assert infer_categories(["trial", "revenue"]) == {
            DocumentCategory.PUBLICATION,
            DocumentCategory.ABSTRACT,
            DocumentCategory.SEC,
        }
        assert infer_categories(["dystrophin"]) == frozenset()


class TestLexicalSearchService:
    def test_implements_backend_protocol(self) -> None:
        assert isinstance(LexicalSearchService(_Store([])), SearchBackend)

    def test_empty_query_returns_empty(self) -> None:
        service = LexicalSearchService(_Store([_chunk("a", "safety data")]))
        assert service.search("", 5) == []
        assert service.search("the of and", 5) == []

    def test_empty_store_returns_empty(self) -> None:
        assert LexicalSearchService(_Store([])).search("safety", 5) == []

    def test_respects_max_results_and_order(self) -> None:
        chunks = [_chunk(f"d{i}", "liver " * (i + 1)) for i in range(10)]
        results = LexicalSearchService(_Store(chunks)).search("liver", 4)

        assert len(results) == 4
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert results[0].chunk.id == "d9"

    def test_zero_max_results(self) -> None:
        service = LexicalSearchService(_Store([_chunk("a", "liver")]))
        assert service.search("liver", 0) == []

    def test_ties_keep_store_order(self) -> None:
        chunks = [_chunk("first", "liver injury"), _chunk("second", "liver injury")]
        results = LexicalSearchService(_Store(chunks)).search("liver", 5)
        assert [r.chunk.id for r in results] == ["first", "second"]

    def test_non_matching_chunks_excluded(self) -> None:
        chunks = [_chunk("a", "liver injury"), _chunk("b", "muscle biopsy")]
        results = LexicalSearchService(_Store(chunks)).search("liver", 5)
        assert [r.chunk.id for r in results] == ["a"]

    def test_exact_phrase_boost(self) -> None:
        chunks = [
            _chunk("scattered", "injury was seen and the liver was fine"),
            _chunk("phrase", "acute liver injury was seen"),
        ]
        results = LexicalSearchService(_Store(chunks)).search("liver injury", 5)
        assert results[0].chunk.id == "phrase"
        assert "exact phrase" in results[0].relevance_reason

    def test_category_boost_from_topic(self) -> None:
        chunks = [
            _chunk("pub", "safety findings", DocumentCategory.PUBLICATION),
            _chunk("fda", "safety findings", DocumentCategory.FDA),
        ]
        results = LexicalSearchService(_Store(chunks)).search("safety", 5)
        assert results[0].chunk.id == "fda"
        assert results[0].score == results[1].score * SearchWeights().category

    def test_form_name_query_matches_sec_filing(self) -> None:
        chunks = [
            _chunk("pub", "Form 10-K annual report", DocumentCategory.PUBLICATION),
            _chunk("sec", "Form 10-K annual report", DocumentCategory.SEC),
        ]
        results = LexicalSearchService(_Store(chunks)).search("10-K", 5)
        assert [r.chunk.id for r in results] == ["sec", "pub"]
        assert "matched terms: 10k" in results[0].relevance_reason

    def test_title_hits_count(self) -> None:
        chunks = [
            _chunk("body", "label text"),
            _chunk("titled", "text", title="Drug Label"),
        ]
        results = LexicalSearchService(_Store(chunks)).search("label", 5)
        assert results[0].chunk.id == "titled"

    def test_custom_weights(self) -> None:
        service = LexicalSearchService(
            _Store([_chunk("a", "liver liver")]), weights=SearchWeights(term=3.0)
        )
        assert service.search("liver", 1)[0].score == 6.0

    def test_embedding_free_scoring_is_deterministic(self) -> None:
        chunks = [_chunk(f"d{i}", f"gene therapy {'safety ' * (i % 3)}") for i in range(6)]
        service = LexicalSearchService(_Store(chunks))
        first = [(r.chunk.id, r.score) for r in service.search("gene safety", 6)]
        second = [(r.chunk.id, r.score) for r in service.search("gene safety", 6)]
        assert first == second

    def test_scoring_errors_degrade_to_empty(self) -> None:
        class _Broken:
            @property
            def chunks(self) -> tuple[Chunk, ...]:
                raise RuntimeError("store unavailable")

        assert LexicalSearchService(_Broken()).search("safety", 5) == []
