"""
===============================================================================
TARJETA CRC — domain/entities.py
===============================================================================

Módulo:
    Entidades del Dominio (Document, TextChunk, RagIndex, ConversationMessage,
    tipos de intercambio con el LLM)

Responsabilidades:
    - Definir estructuras centrales del core (sin infraestructura).
    - Mantener invariantes simples en helpers mínimos.
    - Tipos wire-neutral para hablar con el LLM (bloques text / tool_use /
      tool_result), independientes del proveedor.

Colaboradores:
    - application/*: construyen/consumen estas entidades.
    - infrastructure/storage: serializa RagIndex y el historial.
    - infrastructure/services/llm: traduce LLMMessage al formato del proveedor.

Principios:
    - Sin dependencias a HTTP/SDKs.
    - Snapshots inmutables (frozen) donde hay lectores concurrentes.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple, Union
from uuid import uuid4


def _utcnow() -> datetime:
    """Fecha/hora UTC (helper interno)."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------------
# Knowledge base
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Document:
    """
    Documento indexado en la base de conocimiento.

    metadata["url"], metadata["path"] o metadata["file"] alimentan los links
    de cita del contexto.
    """

    id: str
    title: str
    content: str
    created_at: datetime = field(default_factory=_utcnow)
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TextChunk:
    """Fragmento contiguo de un documento; content == text[start_offset:end_offset]."""

    id: str
    document_id: str
    content: str
    chunk_index: int
    start_offset: int
    end_offset: int


@dataclass(frozen=True)
class ChunkEmbedding:
    chunk_id: str
    document_id: str
    content: str
    embedding: Tuple[float, ...]
    chunk_index: int

    @property
    def dimension(self) -> int:
        return len(self.embedding)


@dataclass(frozen=True)
class RagIndex:
    """
    Snapshot inmutable del índice.

    Invariantes:
      - toda ChunkEmbedding referencia un Document presente
      - todas las embeddings comparten dimensión
    """

    documents: Tuple[Document, ...] = ()
    embeddings: Tuple[ChunkEmbedding, ...] = ()
    last_updated: datetime = field(default_factory=_utcnow)

    @property
    def dimension(self) -> Optional[int]:
        return self.embeddings[0].dimension if self.embeddings else None

    @property
    def is_empty(self) -> bool:
        return not self.embeddings

    def document_by_id(self, document_id: str) -> Optional[Document]:
        for document in self.documents:
            if document.id == document_id:
                return document
        return None


@dataclass(frozen=True)
class SearchResult:
    """Resultado de retrieval (efímero)."""

    chunk: ChunkEmbedding
    similarity: float
    document_title: str
    rerank_score: Optional[float] = None

    def with_rerank_score(self, score: float) -> "SearchResult":
        return replace(self, rerank_score=score)

    @property
    def best_score(self) -> float:
        """Score usado para el piso de calidad: rerank si existe, si no coseno."""
        return self.rerank_score if self.rerank_score is not None else self.similarity


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ConversationMessage:
    """
    Mensaje del historial.

    Notas:
      - is_summary marca el mensaje que reemplaza turnos comprimidos.
      - input_tokens/output_tokens son el uso real reportado por el proveedor
        (si existe), preferido sobre la estimación por caracteres.
      - is_error marca burbujas de error que nunca se envían al modelo.
    """

    role: MessageRole
    content: str
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_utcnow)
    is_summary: bool = False
    summarized_message_count: Optional[int] = None
    summarized_tokens: Optional[int] = None
    tokens_saved: Optional[int] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    is_error: bool = False


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass(frozen=True)
class ToolUseRequest:
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    tool_use_id: str
    content: str
    is_error: bool = False


# ---------------------------------------------------------------------------
# LLM exchange (wire-neutral)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    content: str
    is_error: bool = False


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass(frozen=True)
class LLMMessage:
    role: Literal["user", "assistant"]
    content: Tuple[ContentBlock, ...]

    @classmethod
    def user_text(cls, text: str) -> "LLMMessage":
        return cls(role="user", content=(TextBlock(text),))

    @classmethod
    def assistant_text(cls, text: str) -> "LLMMessage":
        return cls(role="assistant", content=(TextBlock(text),))

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))


@dataclass(frozen=True)
class LLMResponse:
    content: Tuple[ContentBlock, ...]
    usage: TokenUsage = field(default_factory=TokenUsage)
    stop_reason: Optional[str] = None

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> Tuple[ToolUseBlock, ...]:
        return tuple(b for b in self.content if isinstance(b, ToolUseBlock))
