"""
Name: Settings Unit Tests

Responsibilities:
  - Test provider key requirements vs FAKE_* flags
  - Test field validators and the chunk cross-field check
"""

import pytest
from pydantic import ValidationError

from assistant_core.crosscutting.config import Settings


@pytest.fixture(autouse=True)
def _no_provider_keys(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)


def _settings(**overrides) -> Settings:
    values = {"fake_llm": True, "fake_embeddings": True}
    values.update(overrides)
    return Settings(**values)


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        settings = _settings()

        assert settings.chunk_size == 500
        assert settings.chunk_overlap == 50
        assert settings.compression_token_threshold == 800
        assert settings.max_tool_iterations == 10
        assert settings.rag_min_context_score == 0.75

    def test_anthropic_key_required_without_fake(self):
        with pytest.raises(ValidationError, match="ANTHROPIC_API_KEY"):
            _settings(fake_llm=False)

    def test_google_key_required_without_fake(self):
        with pytest.raises(ValidationError, match="GOOGLE_API_KEY"):
            _settings(fake_embeddings=False)

    def test_real_keys_accepted(self):
        settings = _settings(
            fake_llm=False,
            fake_embeddings=False,
            anthropic_api_key="sk-ant-x",
            google_api_key="g-key",
        )

        assert settings.anthropic_api_key == "sk-ant-x"

    def test_environment_variables_read(self, monkeypatch):
        monkeypatch.setenv("CHUNK_SIZE", "800")
        monkeypatch.setenv("RAG_TOP_K", "3")

        settings = _settings()

        assert settings.chunk_size == 800
        assert settings.rag_top_k == 3

    @pytest.mark.parametrize(
        "field,value",
        [
            ("chunk_size", 0),
            ("chunk_overlap", -1),
            ("rag_min_context_score", 1.5),
            ("rerank_fallback_score", -0.1),
            ("max_tool_iterations", 0),
            ("rag_top_k", 0),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            _settings(**{field: value})

    def test_overlap_must_be_smaller_than_chunk(self):
        settings = _settings(chunk_size=100, chunk_overlap=100)

        with pytest.raises(ValueError, match="chunk_overlap"):
            settings.validate_chunk_params()
