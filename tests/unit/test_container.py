"""
Name: Container Wiring Tests

Responsibilities:
  - Test that the composition root builds a working orchestrator from Settings
  - Exercise a full turn with the fake providers and JSON storage

Notes:
  - Every lru_cache factory is cleared around each test
"""

import pytest
from doubles import collect

from assistant_core import container
from assistant_core.crosscutting.config import get_settings
from assistant_core.domain.value_objects import DeltaType
from assistant_core.infrastructure.services.fake_embedding_service import (
    FakeEmbeddingGateway,
)
from assistant_core.infrastructure.services.llm.fake_llm import FakeLLMGateway
from assistant_core.infrastructure.tools.knowledge_base import TOOL_NAME

_FACTORIES = (
    get_settings,
    container.get_embedding_gateway,
    container.get_llm_gateway,
    container.get_auxiliary_llm_gateway,
    container.get_store,
    container.get_chunker,
    container.get_document_index,
    container.get_retrieval_engine,
    container.get_tool_registry,
    container.get_history_compressor,
    container.get_tool_loop,
    container.get_message_orchestrator,
)


def _clear_caches():
    for factory in _FACTORIES:
        factory.cache_clear()


@pytest.fixture(autouse=True)
def fake_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("FAKE_LLM", "1")
    monkeypatch.setenv("FAKE_EMBEDDINGS", "1")
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path))
    _clear_caches()
    yield
    _clear_caches()


@pytest.mark.unit
class TestContainer:
    def test_fake_gateways_selected(self):
        assert isinstance(container.get_embedding_gateway(), FakeEmbeddingGateway)
        assert isinstance(container.get_llm_gateway(), FakeLLMGateway)

    def test_singletons(self):
        assert container.get_message_orchestrator() is container.get_message_orchestrator()
        assert container.get_document_index() is container.get_document_index()

    def test_default_search_without_reranking(self):
        config = container.get_default_search_config()

        assert config.enable_reranking is False
        assert config.top_k == 5
        assert config.min_similarity == 0.25

    def test_default_search_with_reranking(self, monkeypatch):
        monkeypatch.setenv("RAG_ENABLE_RERANKING", "true")
        get_settings.cache_clear()

        config = container.get_default_search_config()

        assert config.enable_reranking is True
        assert config.rerank_top_n == 20
        assert config.min_similarity == 0.15

    def test_knowledge_base_tool_opt_in(self, monkeypatch):
        assert TOOL_NAME not in container.get_tool_registry()

        monkeypatch.setenv("KNOWLEDGE_BASE_TOOL_ENABLED", "true")
        _clear_caches()

        assert TOOL_NAME in container.get_tool_registry()

    @pytest.mark.asyncio
    async def test_end_to_end_turn(self, tmp_path):
        orchestrator = container.get_message_orchestrator()
        await orchestrator.index_document(
            "Manual", "The reactor cooling pump must be inspected every week."
        )

        deltas = await collect(
            orchestrator.send_message("How often is the reactor cooling pump inspected?")
        )

        assert deltas[-1].type == DeltaType.COMPLETE
        assert deltas[-1].metadata["message"].content.startswith("Respuesta simulada")
        assert (tmp_path / "rag_index.json").exists()
        assert (tmp_path / "conversation.json").exists()

        reloaded = container.JsonFileStore(tmp_path)
        assert len(await reloaded.read_messages()) == 2
