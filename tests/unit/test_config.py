"""Unit tests for configuration loader."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from sarepta_qa.config import Settings, get_settings


class TestSettings:
    """Tests for the Settings configuration model."""

    def _env_vars(self) -> dict[str, str]:
        return {
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_MODEL": "gpt-4o",
            "COMPLETION_TIMEOUT_SECONDS": "12.5",
            "CORPUS_DIR": "/data/pdf",
            "PDF_BASE_PATH": "/sarepta-fda-2025/",
            "SEARCH_MAX_RESULTS": "10",
            "LOG_LEVEL": "DEBUG",
            "MAX_INPUT_LENGTH": "5000",
        }

    def test_settings_loads_env_vars(self) -> None:
        with patch.dict(os.environ, self._env_vars(), clear=False):
            settings = Settings(_env_file=None)  # type: ignore[call-arg]

        assert settings.openai_api_key == "sk-test"
        assert settings.openai_model == "gpt-4o"
        assert settings.completion_timeout_seconds == 12.5
        assert settings.corpus_dir == "/data/pdf"
        assert settings.search_max_results == 10
        assert settings.log_level == "DEBUG"
        assert settings.max_input_length == 5000

    def test_settings_defaults_need_no_environment(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="", azure_openai_endpoint="")  # type: ignore[call-arg]

        assert settings.completion_temperature == 0.1
        assert settings.completion_max_tokens == 1500
        assert settings.chunk_size == 1000
        assert settings.chunk_overlap == 200
        assert settings.search_max_results == 15
        assert settings.max_input_length == 4000
        assert settings.uses_azure is False

    def test_pdf_url_prefix_joins_base_path(self) -> None:
        assert Settings(_env_file=None, pdf_base_path="").pdf_url_prefix == "/pdf"  # type: ignore[call-arg]
        assert (
            Settings(_env_file=None, pdf_base_path="/sarepta-fda-2025/").pdf_url_prefix  # type: ignore[call-arg]
            == "/sarepta-fda-2025/pdf"
        )

    def test_azure_endpoint_switches_provider(self) -> None:
        settings = Settings(  # type: ignore[call-arg]
            _env_file=None, azure_openai_endpoint="https://test.openai.azure.com/"
        )
        assert settings.uses_azure is True

    def test_invalid_int_raises(self) -> None:
        with (
            patch.dict(os.environ, {"MAX_INPUT_LENGTH": "not-a-number"}, clear=False),
            pytest.raises(ValidationError),
        ):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_get_settings_returns_settings(self) -> None:
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}, clear=False):
            settings = get_settings()
        assert isinstance(settings, Settings)
        assert settings.log_level == "WARNING"
