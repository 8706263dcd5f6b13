"""Completion gateway: prompt assembly, the external chat completion call
and the hand-off to the template fallback when that call fails.

The external service is reached through a ``CompletionClient``. The
default client drives an autogen ``AssistantAgent`` backed by an OpenAI
or Azure OpenAI model client. Clients report failure in the response
payload instead of raising; the gateway additionally treats exceptions,
timeouts and empty text as failures. Failures are never retried and never
surface to the caller: the fallback generator answers instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Literal, Protocol, runtime_checkable

from autogen_agentchat.agents import AssistantAgent
from autogen_agentchat.messages import TextMessage
from autogen_core import CancellationToken
from autogen_ext.models.openai import AzureOpenAIChatCompletionClient, OpenAIChatCompletionClient
from pydantic import BaseModel, Field

from sarepta_qa.config import Settings
from sarepta_qa.models.citation import Citation
from sarepta_qa.models.document import Chunk
from sarepta_qa.models.errors import CompletionError
from sarepta_qa.services.fallback import FallbackGenerator

logger = logging.getLogger(__name__)

NO_CONTEXT = "No specific document context available."
CONTEXT_DELIMITER = "---"

SYSTEM_PROMPT = """You are an expert analyst specializing in Sarepta Therapeutics' \
Elevidys gene therapy.

Your role is to provide accurate, factual, and unbiased analysis of FDA documents, \
clinical studies, press reports, and SEC filings related to Duchenne muscular \
dystrophy treatment.

CITATION FORMAT:
- Cite ONLY with the exact short names provided: {available_citations}
- Cite a single source inline, directly in the text: "The study [Short Name] showed..."
- Cite several sources in one bracket separated by commas: "[Short Name, Other Name]"
- DO NOT use "Document 1" or numbered references

GUIDELINES:
- Base responses ONLY on the provided document context
- Use inline citations throughout your response
- Distinguish between facts and interpretations
- Acknowledge limitations and uncertainties
- Maintain clinical and regulatory perspective
- Be precise about safety concerns and regulatory actions"""

USER_PROMPT = """Based on the following document excerpts, please answer this question: "{query}"

Context from documents:
{context}

Available citations: {available_citations}

Please provide a comprehensive analysis that:
1. Directly addresses the question with inline citations
2. Uses the exact citation names provided above
3. Discusses both benefits and risks with sources
4. Notes any regulatory actions or concerns with citations
5. Maintains objectivity and accuracy"""


class ChatCompletionMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionOptions(BaseModel):
    model: str = "gpt-4"
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(1500, ge=1)


class CompletionRequest(BaseModel):
    """Request body of the completion service boundary."""

    messages: list[ChatCompletionMessage]
    options: CompletionOptions = Field(default_factory=CompletionOptions)


class CompletionResponse(BaseModel):
    """Response body of the completion service boundary.

    Anything other than ``success`` with a non-empty ``response`` means
    the caller should fall back.
    """

    success: bool = False
    response: str | None = None
    error: str | None = None
    fallback: bool = False
    source: str | None = None


class GenerationResult(BaseModel):
    text: str
    used_fallback: bool = False
    error: str | None = None


@runtime_checkable
class CompletionClient(Protocol):
    """Contract for the external chat completion service."""

    async def create(self, request: CompletionRequest) -> CompletionResponse: ...


class AutogenCompletionClient:
    """Chat completion through an autogen AssistantAgent.

    Uses Azure OpenAI when ``azure_openai_endpoint`` is configured (API key,
    or DefaultAzureCredential when no key is set), otherwise OpenAI.
    Never raises: every failure is reported with ``fallback=True``.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def is_configured(self) -> bool:
        s = self._settings
        return bool(s.azure_openai_endpoint) or bool(s.openai_api_key)

    def _create_model_client(self, options: CompletionOptions) -> Any:
        s = self._settings
        decoding = {"temperature": options.temperature, "max_tokens": options.max_tokens}

        if not s.uses_azure:
            return OpenAIChatCompletionClient(
                model=options.model,
                api_key=s.openai_api_key,
                **decoding,
            )

        if s.azure_openai_api_key:
            auth: dict[str, Any] = {"api_key": s.azure_openai_api_key}
        else:
            from azure.identity import DefaultAzureCredential

            credential = DefaultAzureCredential()
            auth = {
                "azure_ad_token_provider": lambda: (
                    credential.get_token("https://cognitiveservices.azure.com/.default").token
                )
            }
        return AzureOpenAIChatCompletionClient(
            azure_deployment=s.azure_openai_deployment,
            azure_endpoint=s.azure_openai_endpoint,
            api_version=s.azure_openai_api_version,
            model=options.model,
            **auth,
            **decoding,
        )

    async def create(self, request: CompletionRequest) -> CompletionResponse:
        if not self.is_configured:
            return CompletionResponse(error="OpenAI API key not configured", fallback=True)

        system_parts = [m.content for m in request.messages if m.role == "system"]
        conversation = [
            TextMessage(content=m.content, source=m.role)
            for m in request.messages
            if m.role != "system"
        ]
        if not conversation:
            return CompletionResponse(error="No user message in request", fallback=True)

        model_client = None
        try:
            model_client = self._create_model_client(request.options)
            agent = AssistantAgent(
                name="elevidys_analyst",
                model_client=model_client,
                system_message="\n\n".join(system_parts) or None,
            )
            result = await agent.on_messages(conversation, cancellation_token=CancellationToken())
            content = result.chat_message.content if result.chat_message else ""
            if not isinstance(content, str):
                content = str(content)
        except Exception as e:
            logger.warning("Chat completion failed: %s", e)
            return CompletionResponse(error=str(e) or type(e).__name__, fallback=True)
        finally:
            if model_client is not None:
                await model_client.close()

        if not content.strip():
            return CompletionResponse(error="No response from model", fallback=True)
        return CompletionResponse(success=True, response=content, source="openai-api")


class CompletionGateway:
    """Assemble the prompt, call the completion client, fall back on failure.

    Args:
        client: External completion service handle.
        settings: Provides model name, decoding parameters and timeout.
        fallback: Template generator used when the client fails.
    """

    def __init__(
        self,
        client: CompletionClient,
        settings: Settings,
        fallback: FallbackGenerator | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._fallback = fallback or FallbackGenerator()

    @property
    def options(self) -> CompletionOptions:
        s = self._settings
        return CompletionOptions(
            model=s.azure_openai_deployment if s.uses_azure else s.openai_model,
            temperature=s.completion_temperature,
            max_tokens=s.completion_max_tokens,
        )

    @staticmethod
    def available_citations(citations: Sequence[Citation]) -> str:
        return ", ".join(f"[{c.short_name}]" for c in citations) or "none"

    @staticmethod
    def build_context(chunks: Sequence[Chunk], citations: Sequence[Citation]) -> str:
        """Label every chunk with its citation short name.

        Produces ``[ShortName]`` on its own line, then the chunk text, then
        a ``---`` delimiter, for each chunk in rank order.
        """
        if not chunks:
            return NO_CONTEXT

        names = {c.document_id: c.short_name or c.document_title for c in citations}
        blocks = [
            f"[{names.get(chunk.document_id) or chunk.metadata.document_title or 'Unknown'}]\n"
            f"{chunk.content}\n{CONTEXT_DELIMITER}"
            for chunk in chunks
        ]
        return "\n\n".join(blocks)

    def build_messages(
        self,
        query: str,
        chunks: Sequence[Chunk],
        citations: Sequence[Citation],
    ) -> list[ChatCompletionMessage]:
        available = self.available_citations(citations)
        return [
            ChatCompletionMessage(
                role="system",
                content=SYSTEM_PROMPT.format(available_citations=available),
            ),
            ChatCompletionMessage(
                role="user",
                content=USER_PROMPT.format(
                    query=query,
                    context=self.build_context(chunks, citations),
                    available_citations=available,
                ),
            ),
        ]

    async def _call(self, request: CompletionRequest) -> str:
        """Run the external call; raise CompletionError on any failure."""
        try:
            response = await asyncio.wait_for(
                self._client.create(request),
                timeout=self._settings.completion_timeout_seconds,
            )
        except TimeoutError as e:
            raise CompletionError(
                f"completion timed out after {self._settings.completion_timeout_seconds}s"
            ) from e
        except Exception as e:
            raise CompletionError(str(e) or type(e).__name__) from e

        if not response.success or not response.response or not response.response.strip():
            raise CompletionError(response.error or "empty completion response")
        return response.response

    async def generate(
        self,
        query: str,
        chunks: Sequence[Chunk],
        citations: Sequence[Citation],
    ) -> GenerationResult:
        """Answer *query* from the service, or from the fallback generator."""
        request = CompletionRequest(
            messages=self.build_messages(query, chunks, citations),
            options=self.options,
        )
        try:
            text = await self._call(request)
        except CompletionError as e:
            logger.info("Using template fallback: %s", e, extra={"used_fallback": True})
            return GenerationResult(
                text=self._fallback.generate(query, chunks, citations),
                used_fallback=True,
                error=str(e),
            )

        logger.info("Model response received", extra={"used_fallback": False})
        return GenerationResult(text=text)

    async def complete(
        self,
        query: str,
        chunks: Sequence[Chunk],
        citations: Sequence[Citation],
    ) -> str:
        return (await self.generate(query, chunks, citations)).text
