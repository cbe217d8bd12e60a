# =============================================================================
# FILE: domain/value_objects.py
# =============================================================================
"""
===============================================================================
DOMAIN: Value Objects (Immutable Domain Primitives)
===============================================================================

Name:
    Domain Value Objects

Qué es:
    Objetos de valor inmutables del core, iguales si sus atributos son iguales.

Contenido:
    - SearchConfig: parámetros del retrieval en dos etapas
    - ToolArgument (StringValue | NumberValue | BoolValue | NullValue |
      StructuredValue) + coerce_tool_arguments(): argumentos de tools tipados
    - ToolOutcome (ToolSuccess | ToolFailure): resultado de tool como dato
    - StreamDelta: unidad del stream de salida de un turno

Principios:
    - Inmutabilidad (frozen dataclasses)
    - Validación en constructor
    - Sin side effects
===============================================================================
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Final, Mapping, Optional, Tuple, Union

from .entities import SearchResult, TokenUsage, ToolResult, ToolUseRequest

# -----------------------------------------------------------------------------
# Search configuration
# -----------------------------------------------------------------------------
_MIN_SIMILARITY: Final[float] = -1.0
_MAX_SIMILARITY: Final[float] = 1.0


@dataclass(frozen=True, slots=True)
class SearchConfig:
    """
    Parámetros de búsqueda.

    Attributes:
        top_k: Cantidad final de resultados
        min_similarity: Umbral de coseno (etapa 1)
        enable_reranking: Activa el rerank por LLM (etapa 2)
        rerank_top_n: Candidatos que pasan a la etapa 2
        min_rerank_score: Umbral de rerank (etapa 2)
        use_hybrid_scoring: Ordena por combinación lineal en vez de solo rerank
        similarity_weight / rerank_weight: Pesos de la combinación híbrida
    """

    top_k: int = 5
    min_similarity: float = 0.0
    enable_reranking: bool = False
    rerank_top_n: int = 20
    min_rerank_score: float = 0.0
    use_hybrid_scoring: bool = True
    similarity_weight: float = 0.4
    rerank_weight: float = 0.6

    def __post_init__(self) -> None:
        if self.top_k < 1:
            raise ValueError("top_k must be >= 1")
        if self.rerank_top_n < 1:
            raise ValueError("rerank_top_n must be >= 1")
        if not _MIN_SIMILARITY <= self.min_similarity <= _MAX_SIMILARITY:
            raise ValueError("min_similarity must be between -1 and 1")
        if not 0.0 <= self.min_rerank_score <= 1.0:
            raise ValueError("min_rerank_score must be between 0 and 1")
        if self.similarity_weight < 0 or self.rerank_weight < 0:
            raise ValueError("scoring weights must be >= 0")

    @property
    def candidate_count(self) -> int:
        """Resultados que sobreviven la etapa 1."""
        return self.rerank_top_n if self.enable_reranking else self.top_k


# -----------------------------------------------------------------------------
# Tool arguments (tagged union + coerción total a str)
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StringValue:
    value: str

    def render(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class NumberValue:
    value: Union[int, float]

    def render(self) -> str:
        if isinstance(self.value, float) and not math.isfinite(self.value):
            return str(self.value)
        return json.dumps(self.value)


@dataclass(frozen=True, slots=True)
class BoolValue:
    value: bool

    def render(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True, slots=True)
class NullValue:
    def render(self) -> str:
        return "null"


@dataclass(frozen=True, slots=True)
class StructuredValue:
    """Listas/objetos JSON: se serializan como JSON, nunca con str()."""

    value: Any

    def render(self) -> str:
        return json.dumps(self.value, ensure_ascii=False, default=str)


ToolArgument = Union[StringValue, NumberValue, BoolValue, NullValue, StructuredValue]


def parse_tool_argument(raw: Any) -> ToolArgument:
    """Clasifica un valor JSON decodificado en su variante tipada."""
    if raw is None:
        return NullValue()
    # bool es subclase de int: va primero
    if isinstance(raw, bool):
        return BoolValue(raw)
    if isinstance(raw, (int, float)):
        return NumberValue(raw)
    if isinstance(raw, str):
        return StringValue(raw)
    return StructuredValue(raw)


def coerce_tool_arguments(raw_input: Mapping[str, Any]) -> Dict[str, str]:
    """Coerción total del input de un tool_use a Dict[str, str]."""
    return {str(k): parse_tool_argument(v).render() for k, v in raw_input.items()}


# -----------------------------------------------------------------------------
# Tool outcome (Result)
# -----------------------------------------------------------------------------


class ToolErrorKind(str, Enum):
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    EXECUTION_FAILED = "execution_failed"


@dataclass(frozen=True, slots=True)
class ToolSuccess:
    output: str

    @property
    def is_error(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class ToolFailure:
    kind: ToolErrorKind
    message: str

    @property
    def is_error(self) -> bool:
        return True


ToolOutcome = Union[ToolSuccess, ToolFailure]


# -----------------------------------------------------------------------------
# Stream deltas
# -----------------------------------------------------------------------------


class DeltaType(str, Enum):
    TEXT = "text"
    TOOL_CALL_REQUESTED = "tool_call_requested"
    TOOL_RESULT = "tool_result"
    USAGE_UPDATE = "usage_update"
    SOURCES = "sources"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class StreamDelta:
    """
    Unidad del stream de salida.

    Se construye con los constructores nombrados (StreamDelta.text(...), etc.);
    solo el payload correspondiente al tipo viene poblado.
    """

    type: DeltaType
    content: str = ""
    tool_call: Optional[ToolUseRequest] = None
    tool_result: Optional[ToolResult] = None
    usage: Optional[TokenUsage] = None
    sources: Tuple[SearchResult, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None

    @classmethod
    def text_delta(cls, text: str) -> "StreamDelta":
        return cls(type=DeltaType.TEXT, content=text)

    @classmethod
    def tool_call_requested(cls, request: ToolUseRequest) -> "StreamDelta":
        return cls(type=DeltaType.TOOL_CALL_REQUESTED, tool_call=request)

    @classmethod
    def tool_result_delta(cls, result: ToolResult) -> "StreamDelta":
        return cls(type=DeltaType.TOOL_RESULT, tool_result=result)

    @classmethod
    def usage_update(cls, usage: TokenUsage) -> "StreamDelta":
        return cls(type=DeltaType.USAGE_UPDATE, usage=usage)

    @classmethod
    def sources_delta(cls, results: Tuple[SearchResult, ...]) -> "StreamDelta":
        return cls(type=DeltaType.SOURCES, sources=tuple(results))

    @classmethod
    def complete(cls, **metadata: Any) -> "StreamDelta":
        return cls(type=DeltaType.COMPLETE, metadata=dict(metadata))

    @classmethod
    def error(cls, message: str, *, code: str = "GATEWAY_ERROR") -> "StreamDelta":
        return cls(type=DeltaType.ERROR, content=message, error_code=code)
