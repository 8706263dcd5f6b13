"""Integration tests for the Q&A flow: question -> search -> citations -> answer."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from sarepta_qa.agents.orchestrator import Orchestrator
from sarepta_qa.config import Settings
from sarepta_qa.models.citation import CitationSegment
from sarepta_qa.models.document import Document
from sarepta_qa.services.chunk_store import ChunkStore
from sarepta_qa.services.citation_resolver import CitationResolver, render_numeric
from sarepta_qa.services.completion import CompletionGateway, CompletionResponse
from sarepta_qa.services.corpus import build_document
from sarepta_qa.services.search import LexicalSearchService

FILENAMES = [
    "FDA - Approval Letter.pdf",
    "Publication - Trial Results.pdf",
    "Press Report - Pause.pdf",
]

PAGES = {
    "fda-approval-letter": [
        "The approval letter requires postmarketing studies and enhanced safety monitoring "
        "for acute liver injury."
    ],
    "publication-trial-results": [
        "Trial results report micro-dystrophin expression; safety findings included vomiting."
    ],
    "press-report-pause": [
        "Shipments were paused after safety reports of patient deaths."
    ],
}


def _settings(tmp_path: Path) -> Settings:
    return Settings(  # type: ignore[call-arg]
        _env_file=None, openai_api_key="", azure_openai_endpoint="", corpus_dir=str(tmp_path)
    )


def _client(response: CompletionResponse) -> MagicMock:
    client = MagicMock()
    client.create = AsyncMock(return_value=response)
    return client


def _orchestrator(settings: Settings, client: MagicMock) -> tuple[Orchestrator, list[Document]]:
    documents = [build_document(f, settings) for f in FILENAMES]
    store = ChunkStore.from_settings(settings.model_copy(update={"min_chunk_size": 1}))
    orchestrator = Orchestrator(
        chunk_store=store,
        search=LexicalSearchService(store),
        gateway=CompletionGateway(client, settings),
        extractor=lambda doc: PAGES[doc.id],
        settings=settings,
    )
    return orchestrator, documents


class TestQAFlow:
    """End-to-end pipeline scenarios."""

    @pytest.mark.asyncio
    async def test_safety_fallback_cites_regulatory_filing(self, tmp_path: Path) -> None:
        """Gateway failure on a safety question yields the safety template citing an FDA document."""
        orchestrator, documents = _orchestrator(
            _settings(tmp_path), _client(CompletionResponse(success=False, fallback=True))
        )

        result = await orchestrator.answer("safety", "s-1", documents)

        assert result.success is True
        data = result.data
        assert data is not None
        assert data.used_fallback is True
        assert "**Safety Profile:**" in data.response
        assert len(data.citations) == 3

        by_index = {c.index: c for c in data.citations}
        cited = {i for s in data.segments if isinstance(s, CitationSegment) for i in s.indices}
        assert any(by_index[i].category == "FDA" for i in cited)

    @pytest.mark.asyncio
    async def test_empty_query_still_answers(self, tmp_path: Path) -> None:
        orchestrator, documents = _orchestrator(
            _settings(tmp_path), _client(CompletionResponse(success=False))
        )

        result = await orchestrator.answer("", "s-1", documents)

        assert result.success is True
        assert result.data is not None
        assert result.data.citations == []
        assert result.data.response.strip()
        search_step = next(s for s in result.data.processing_steps if s.action == "search")
        assert search_step.output == {"results": 0, "top_score": None}

    @pytest.mark.asyncio
    async def test_model_answer_numeric_markers_bind(self, tmp_path: Path) -> None:
        orchestrator, documents = _orchestrator(
            _settings(tmp_path),
            _client(CompletionResponse(success=True, response="Deaths were reported [1, 2].")),
        )

        result = await orchestrator.answer("safety deaths", "s-1", documents)

        assert result.data is not None
        segment = next(s for s in result.data.segments if isinstance(s, CitationSegment))
        assert [r.citation_id for r in segment.refs] == [
            result.data.citations[0].id,
            result.data.citations[1].id,
        ]

    @pytest.mark.asyncio
    async def test_resolution_is_stable_when_rerun(self, tmp_path: Path) -> None:
        orchestrator, documents = _orchestrator(
            _settings(tmp_path), _client(CompletionResponse(success=False))
        )

        result = await orchestrator.answer("safety approval trial", "s-1", documents)

        assert result.data is not None
        rewritten = render_numeric(result.data.segments)
        again = CitationResolver(result.data.citations).resolve(rewritten)
        assert render_numeric(again) == rewritten


class TestQAFlowOverHttp:
    @pytest.mark.asyncio
    async def test_gateway_failure_returns_fallback_message(self, tmp_path: Path) -> None:
        from sarepta_qa.main import create_app

        client = _client(CompletionResponse(success=False, error="rate limited", fallback=True))
        app = create_app(settings=_settings(tmp_path), completion_client=client)

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as http:
            resp = await http.post("/chat", json={"content": "What are the FDA safety concerns?"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["id"].startswith("assistant_")
        assert data["metadata"]["used_fallback"] is True
        assert "**Safety Profile:**" in data["content"]
        assert data["citations"]
        client.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_audit_entry_logged(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        import logging

        from sarepta_qa.main import create_app

        client = _client(CompletionResponse(success=True, response="Answer."))
        app = create_app(settings=_settings(tmp_path), completion_client=client)

        with caplog.at_level(logging.INFO, logger="sarepta_qa.services.audit"):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as http:
                await http.post("/chat", json={"content": "approval letter", "session_id": "audit-1"})

        audits = [r for r in caplog.records if r.getMessage() == "audit_entry"]
        assert len(audits) == 1
        assert audits[0].session_id == "audit-1"  # type: ignore[attr-defined]
        assert audits[0].used_fallback is False  # type: ignore[attr-defined]
