"""
===============================================================================
TARJETA CRC — assistant_core/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer gateways, índice, servicios de aplicación y stores según Settings.
  - Exponer factories para la capa HTTP (Depends) y para uso embebido.
  - Mantener singletons con lru_cache.

Colaboradores:
  - crosscutting.config.get_settings
  - infrastructure.* (implementaciones)
  - application.* (servicios)

Notas:
  - Este archivo NO contiene lógica de negocio.
  - Este archivo NO depende de FastAPI.
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache

from .application.context_builder import ContextBuilder
from .application.history_compressor import HistoryCompressor
from .application.message_orchestrator import MessageOrchestrator, TurnOptions
from .application.rag_index import DocumentIndex
from .application.reranker import LLMReranker
from .application.retrieval import RetrievalEngine
from .application.tool_loop import ToolLoopOrchestrator
from .crosscutting.config import get_settings
from .domain.services import EmbeddingGateway, LLMGateway
from .domain.value_objects import SearchConfig
from .infrastructure.services.fake_embedding_service import FakeEmbeddingGateway
from .infrastructure.services.google_embedding_service import GoogleEmbeddingGateway
from .infrastructure.services.llm.anthropic_llm_gateway import AnthropicLLMGateway
from .infrastructure.services.llm.fake_llm import FakeLLMGateway
from .infrastructure.storage.json_store import JsonFileStore
from .infrastructure.text.chunker import TextChunker
from .infrastructure.tools.knowledge_base import register_knowledge_base_tool
from .infrastructure.tools.registry import ToolRegistry

# =============================================================================
# Gateways
# =============================================================================


@lru_cache(maxsize=1)
def get_embedding_gateway() -> EmbeddingGateway:
    settings = get_settings()
    if settings.fake_embeddings:
        return FakeEmbeddingGateway()
    return GoogleEmbeddingGateway(
        api_key=settings.google_api_key, model_id=settings.embedding_model
    )


def _anthropic(model: str) -> AnthropicLLMGateway:
    settings = get_settings()
    return AnthropicLLMGateway(
        settings.anthropic_api_key,
        model=model,
        base_url=settings.anthropic_base_url,
        api_version=settings.anthropic_version,
        timeout_seconds=settings.llm_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_llm_gateway() -> LLMGateway:
    """Gateway del modelo principal (respuestas y tool loop)."""
    settings = get_settings()
    if settings.fake_llm:
        return FakeLLMGateway()
    return _anthropic(settings.chat_model)


@lru_cache(maxsize=1)
def get_auxiliary_llm_gateway() -> LLMGateway:
    """Gateway para tareas auxiliares baratas (resúmenes, rerank)."""
    settings = get_settings()
    if settings.fake_llm:
        return FakeLLMGateway()
    return _anthropic(settings.auxiliary_model)


# =============================================================================
# Knowledge base
# =============================================================================


@lru_cache(maxsize=1)
def get_store() -> JsonFileStore:
    return JsonFileStore(get_settings().storage_dir)


@lru_cache(maxsize=1)
def get_chunker() -> TextChunker:
    settings = get_settings()
    return TextChunker(
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        max_text_chars=settings.max_text_chars,
        max_chunks=settings.max_chunks,
    )


@lru_cache(maxsize=1)
def get_document_index() -> DocumentIndex:
    return DocumentIndex(get_chunker(), get_embedding_gateway())


@lru_cache(maxsize=1)
def get_retrieval_engine() -> RetrievalEngine:
    settings = get_settings()
    reranker = LLMReranker(
        get_auxiliary_llm_gateway(),
        fallback_score=settings.rerank_fallback_score,
        max_concurrency=settings.rerank_max_concurrency,
    )
    return RetrievalEngine(get_document_index(), get_embedding_gateway(), reranker)


def get_default_search_config() -> SearchConfig:
    """SearchConfig por defecto derivada de Settings."""
    s = get_settings()
    if s.rag_enable_reranking:
        return SearchConfig(
            top_k=s.rag_top_k,
            min_similarity=s.rag_min_similarity_reranked,
            enable_reranking=True,
            rerank_top_n=s.rag_top_k * s.rag_rerank_candidates_factor,
            min_rerank_score=s.rag_min_rerank_score,
            use_hybrid_scoring=s.rag_use_hybrid_scoring,
            similarity_weight=s.rag_similarity_weight,
            rerank_weight=s.rag_rerank_weight,
        )
    return SearchConfig(top_k=s.rag_top_k, min_similarity=s.rag_min_similarity)


# =============================================================================
# Conversation
# =============================================================================


@lru_cache(maxsize=1)
def get_tool_registry() -> ToolRegistry:
    settings = get_settings()
    registry = ToolRegistry()
    if settings.knowledge_base_tool_enabled:
        register_knowledge_base_tool(
            registry, get_retrieval_engine(), base_config=get_default_search_config()
        )
    return registry


@lru_cache(maxsize=1)
def get_history_compressor() -> HistoryCompressor:
    settings = get_settings()
    return HistoryCompressor(
        get_auxiliary_llm_gateway(),
        token_threshold=settings.compression_token_threshold,
        chars_per_token=settings.chars_per_token,
    )


@lru_cache(maxsize=1)
def get_tool_loop() -> ToolLoopOrchestrator:
    settings = get_settings()
    return ToolLoopOrchestrator(
        get_llm_gateway(),
        get_tool_registry(),
        max_iterations=settings.max_tool_iterations,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )


@lru_cache(maxsize=1)
def get_message_orchestrator() -> MessageOrchestrator:
    settings = get_settings()
    store = get_store()
    return MessageOrchestrator(
        llm=get_llm_gateway(),
        index=get_document_index(),
        retrieval=get_retrieval_engine(),
        context_builder=ContextBuilder(max_chars=settings.max_context_chars),
        compressor=get_history_compressor(),
        tool_loop=get_tool_loop(),
        conversations=store,
        index_store=store,
        tools=get_tool_registry().definitions(),
        system_prompt=settings.system_prompt,
        default_search=get_default_search_config(),
        default_options=TurnOptions(
            use_rag=settings.rag_enabled,
            compress_history=settings.compression_enabled,
        ),
        min_context_score=(
            settings.rag_min_context_score_reranked
            if settings.rag_enable_reranking
            else settings.rag_min_context_score
        ),
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )
