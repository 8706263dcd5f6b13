"""Environment-based configuration loader using pydantic BaseSettings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field has a default so the service starts without any
    environment. With no API key configured, answers come from the
    template fallback generator.
    """

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4"

    # Azure OpenAI (used instead of OpenAI when the endpoint is set)
    azure_openai_endpoint: str = ""
    azure_openai_deployment: str = "gpt-4"
    azure_openai_api_version: str = "2024-06-01"
    azure_openai_api_key: str = ""  # DefaultAzureCredential when empty

    # Fixed decoding parameters for answer generation
    completion_temperature: float = 0.1
    completion_max_tokens: int = 1500
    completion_timeout_seconds: float = 30.0

    # Corpus
    corpus_dir: str = "public/pdf"
    pdf_base_path: str = ""  # e.g. "/sarepta-fda-2025" when served under a prefix

    # Retrieval
    search_max_results: int = 15
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100

    # Application
    log_level: str = "INFO"
    max_input_length: int = 4000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def pdf_url_prefix(self) -> str:
        """Public URL prefix under which corpus PDFs are served."""
        return f"{self.pdf_base_path.rstrip('/')}/pdf"

    @property
    def uses_azure(self) -> bool:
        return bool(self.azure_openai_endpoint)


def get_settings() -> Settings:
    """Create and return a validated Settings instance."""
    return Settings()
