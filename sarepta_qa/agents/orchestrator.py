"""Question-answering pipeline over the Elevidys document corpus."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

from sarepta_qa.config import Settings
from sarepta_qa.models.agents import AgentResponse, OrchestratorOutput, ProcessingStep
from sarepta_qa.models.citation import CitationSegment
from sarepta_qa.models.document import Document
from sarepta_qa.services.chunk_store import ChunkStore, TextExtractor
from sarepta_qa.services.citation_resolver import CitationResolver
from sarepta_qa.services.citations import build_citations
from sarepta_qa.services.completion import CompletionGateway
from sarepta_qa.services.search import SearchBackend

logger = logging.getLogger(__name__)

AGENT_ID = "orchestrator"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class Orchestrator:
    """Run one query through index, search, citations, generation and resolution.

    The corpus is indexed at most once per process. A query that arrives
    while indexing is in flight searches whatever the store holds at that
    moment, possibly nothing.

    Args:
        chunk_store: Store the corpus is indexed into.
        search: Search backend reading from ``chunk_store``.
        gateway: Completion gateway (falls back to templates on failure).
        extractor: Callable returning the page texts of a document.
        settings: Provides retrieval defaults and the public PDF prefix.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        search: SearchBackend,
        gateway: CompletionGateway,
        extractor: TextExtractor,
        settings: Settings,
    ) -> None:
        self._chunk_store = chunk_store
        self._search = search
        self._gateway = gateway
        self._extractor = extractor
        self._settings = settings
        self._is_processing_documents = False
        self._documents_processed = False

    @property
    def documents_processed(self) -> bool:
        return self._documents_processed

    @property
    def is_processing_documents(self) -> bool:
        return self._is_processing_documents

    async def ensure_indexed(self, documents: Sequence[Document]) -> bool:
        """Index *documents* unless indexing already ran or is running.

        Returns True when this call performed the indexing pass. A failed
        pass is logged and leaves the store unprocessed, so a later call
        tries again.
        """
        if self._documents_processed or self._is_processing_documents:
            return False

        self._is_processing_documents = True
        try:
            await asyncio.to_thread(
                self._chunk_store.index_documents, list(documents), self._extractor
            )
            self._documents_processed = True
        except Exception:
            logger.exception("Document indexing failed", extra={"agent": "document-processor"})
        finally:
            self._is_processing_documents = False
        return True

    async def answer(
        self,
        query: str,
        session_id: str,
        documents: Sequence[Document],
        max_results: int | None = None,
    ) -> AgentResponse[OrchestratorOutput]:
        """Answer *query* with citations.

        Never raises: an unexpected failure anywhere in the pipeline is
        returned as ``success=False`` with the error message. A failed
        completion call is not a failure here; the gateway answers from
        templates instead.
        """
        started = time.monotonic()
        steps: list[ProcessingStep] = []

        try:
            step_started = time.monotonic()
            if await self.ensure_indexed(documents):
                steps.append(
                    ProcessingStep(
                        agent="document-processor",
                        action="index_documents",
                        input={"documents": len(documents)},
                        output={"chunks": len(self._chunk_store)},
                        time_ms=_elapsed_ms(step_started),
                        success=self._documents_processed,
                        error=None if self._documents_processed else "indexing failed",
                    )
                )

            limit = max_results or self._settings.search_max_results
            step_started = time.monotonic()
            scored = self._search.search(query, limit)
            steps.append(
                ProcessingStep(
                    agent="search-agent",
                    action="search",
                    input={"query": query, "max_results": limit},
                    output={
                        "results": len(scored),
                        "top_score": scored[0].score if scored else None,
                    },
                    time_ms=_elapsed_ms(step_started),
                )
            )

            step_started = time.monotonic()
            citations = build_citations(scored, self._settings.pdf_url_prefix)
            steps.append(
                ProcessingStep(
                    agent="citation-builder",
                    action="build_citations",
                    input={"chunks": len(scored)},
                    output={"citations": len(citations)},
                    time_ms=_elapsed_ms(step_started),
                )
            )

            step_started = time.monotonic()
            generation = await self._gateway.generate(
                query, [s.chunk for s in scored], citations
            )
            steps.append(
                ProcessingStep(
                    agent="analysis-agent",
                    action="generate_response",
                    input={"query": query, "citations": len(citations)},
                    output={
                        "length": len(generation.text),
                        "used_fallback": generation.used_fallback,
                    },
                    time_ms=_elapsed_ms(step_started),
                    error=generation.error,
                )
            )

            step_started = time.monotonic()
            segments = CitationResolver(citations).resolve(generation.text)
            steps.append(
                ProcessingStep(
                    agent="citation-resolver",
                    action="resolve_citations",
                    input={"citations": len(citations)},
                    output={"references": self._count_references(segments)},
                    time_ms=_elapsed_ms(step_started),
                )
            )

            total_ms = _elapsed_ms(started)
            logger.info(
                "Query answered",
                extra={
                    "session_id": session_id,
                    "agent": AGENT_ID,
                    "latency_ms": total_ms,
                    "used_fallback": generation.used_fallback,
                },
            )
            return AgentResponse[OrchestratorOutput](
                success=True,
                data=OrchestratorOutput(
                    response=generation.text,
                    citations=citations,
                    segments=segments,
                    session_id=session_id,
                    processing_steps=steps,
                    total_time_ms=total_ms,
                    used_fallback=generation.used_fallback,
                ),
                metadata={"chunks_indexed": len(self._chunk_store)},
                agent_id=AGENT_ID,
            )

        except Exception as e:
            logger.exception(
                "Orchestration failed", extra={"session_id": session_id, "agent": AGENT_ID}
            )
            return AgentResponse[OrchestratorOutput](
                success=False,
                error=str(e) or type(e).__name__,
                metadata={"processing_steps": [s.model_dump() for s in steps]},
                agent_id=AGENT_ID,
            )

    @staticmethod
    def _count_references(segments: Sequence[Any]) -> int:
        return sum(
            1
            for segment in segments
            if isinstance(segment, CitationSegment)
            for ref in segment.refs
            if ref.resolved
        )
