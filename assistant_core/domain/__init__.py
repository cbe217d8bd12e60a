"""
===============================================================================
TARJETA CRC — domain/__init__.py
===============================================================================

Módulo:
    Exportaciones de la Capa de Dominio (API pública del dominio)

Responsabilidades:
    - Centralizar exports para imports limpios en application/interfaces.
    - Mantener estable el "surface area" del dominio.

Reglas:
    - Solo re-exporta contratos/entidades del dominio.
    - No importar infraestructura aquí.
===============================================================================
"""

from .entities import (
    ChunkEmbedding,
    ConversationMessage,
    Document,
    LLMMessage,
    LLMResponse,
    MessageRole,
    RagIndex,
    SearchResult,
    TextBlock,
    TextChunk,
    TokenUsage,
    ToolDefinition,
    ToolResult,
    ToolResultBlock,
    ToolUseBlock,
    ToolUseRequest,
)
from .repositories import ConversationStore, IndexStore
from .services import EmbeddingGateway, LLMGateway, TextChunkerService, ToolExecutor
from .value_objects import (
    DeltaType,
    SearchConfig,
    StreamDelta,
    ToolErrorKind,
    ToolFailure,
    ToolSuccess,
    coerce_tool_arguments,
)

__all__ = [
    # Entities
    "ChunkEmbedding",
    "ConversationMessage",
    "Document",
    "LLMMessage",
    "LLMResponse",
    "MessageRole",
    "RagIndex",
    "SearchResult",
    "TextBlock",
    "TextChunk",
    "TokenUsage",
    "ToolDefinition",
    "ToolResult",
    "ToolResultBlock",
    "ToolUseBlock",
    "ToolUseRequest",
    # Ports
    "ConversationStore",
    "IndexStore",
    "EmbeddingGateway",
    "LLMGateway",
    "TextChunkerService",
    "ToolExecutor",
    # Value objects
    "DeltaType",
    "SearchConfig",
    "StreamDelta",
    "ToolErrorKind",
    "ToolFailure",
    "ToolSuccess",
    "coerce_tool_arguments",
]
