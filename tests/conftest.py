"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Configure test environment (no .env, fake providers)
  - Provide reusable fixtures (chunkers)

Collaborators:
  - pytest / pytest-asyncio
  - doubles.py: deterministic gateway doubles

Notes:
  - Fixtures are auto-discovered by pytest
  - No test touches the network or the real storage directory
"""

import os

import pytest

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("FAKE_LLM", "1")
os.environ.setdefault("FAKE_EMBEDDINGS", "1")

from assistant_core.crosscutting import config as app_config  # noqa: E402

app_config.Settings.model_config["env_file"] = None

from assistant_core.infrastructure.text.chunker import TextChunker  # noqa: E402


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


@pytest.fixture
def chunker() -> TextChunker:
    """R: Default chunker (500/50)."""
    return TextChunker(chunk_size=500, chunk_overlap=50)


@pytest.fixture
def small_chunker() -> TextChunker:
    """R: Chunker that keeps short test documents in a single chunk."""
    return TextChunker(chunk_size=200, chunk_overlap=20)
