"""
===============================================================================
APPLICATION LAYER (Public API / Exports)
===============================================================================

Expone los puntos de entrada estables de la capa de aplicación:
  - DocumentIndex: índice RAG con snapshots copy-on-write
  - RetrievalEngine + LLMReranker: búsqueda en dos etapas
  - ContextBuilder: ensamblado del contexto con citas
  - HistoryCompressor: resumen de historial viejo
  - ToolLoopOrchestrator: ciclo modelo <-> herramientas
  - MessageOrchestrator: turno completo como stream de deltas
===============================================================================
"""

from .context_builder import ContextBuilder, build_context
from .history_compressor import HistoryCompressor
from .message_orchestrator import MessageOrchestrator, TurnOptions
from .rag_index import DocumentIndex, validate_index
from .reranker import LLMReranker
from .retrieval import RetrievalEngine, cosine_similarity
from .tool_loop import ToolLoopOrchestrator, ToolLoopOutcome

__all__ = [
    "ContextBuilder",
    "build_context",
    "HistoryCompressor",
    "MessageOrchestrator",
    "TurnOptions",
    "DocumentIndex",
    "validate_index",
    "LLMReranker",
    "RetrievalEngine",
    "cosine_similarity",
    "ToolLoopOrchestrator",
    "ToolLoopOutcome",
]
