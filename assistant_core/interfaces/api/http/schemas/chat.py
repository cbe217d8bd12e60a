"""
===============================================================================
TARJETA CRC — schemas/chat.py
===============================================================================

Módulo:
    Schemas HTTP para el endpoint de chat (turno en streaming)

Responsabilidades:
    - DTO de request del turno y sus overrides opcionales.
    - Traducir el request a TurnOptions / SearchConfig del core.

Colaboradores:
    - application.message_orchestrator.TurnOptions
    - domain.value_objects.SearchConfig
===============================================================================
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

from .....application.message_orchestrator import TurnOptions
from .....domain.value_objects import SearchConfig


class SearchOverrides(BaseModel):
    """Overrides de retrieval por request (None = default del servidor)."""

    top_k: Annotated[int, Field(ge=1, le=50)] = 5
    min_similarity: Annotated[float, Field(ge=-1.0, le=1.0)] = 0.0
    enable_reranking: bool = False
    rerank_top_n: Annotated[int, Field(ge=1, le=200)] = 20
    min_rerank_score: Annotated[float, Field(ge=0.0, le=1.0)] = 0.0
    use_hybrid_scoring: bool = True

    def to_config(self) -> SearchConfig:
        return SearchConfig(
            top_k=self.top_k,
            min_similarity=self.min_similarity,
            enable_reranking=self.enable_reranking,
            rerank_top_n=max(self.rerank_top_n, self.top_k),
            min_rerank_score=self.min_rerank_score,
            use_hybrid_scoring=self.use_hybrid_scoring,
        )


class ChatMessageReq(BaseModel):
    """Turno del usuario. El stream de respuesta es SSE."""

    content: str = Field(..., min_length=1, max_length=100_000)
    use_rag: bool | None = None
    use_tools: bool | None = None
    compress_history: bool | None = None
    search: SearchOverrides | None = None
    min_context_score: Annotated[float | None, Field(ge=0.0, le=1.0)] = None
    max_tool_iterations: Annotated[int | None, Field(ge=1, le=50)] = None

    def to_options(self, defaults: TurnOptions) -> TurnOptions:
        return TurnOptions(
            use_rag=defaults.use_rag if self.use_rag is None else self.use_rag,
            use_tools=defaults.use_tools if self.use_tools is None else self.use_tools,
            compress_history=(
                defaults.compress_history
                if self.compress_history is None
                else self.compress_history
            ),
            search=self.search.to_config() if self.search else defaults.search,
            min_context_score=(
                defaults.min_context_score
                if self.min_context_score is None
                else self.min_context_score
            ),
            max_tool_iterations=(
                defaults.max_tool_iterations
                if self.max_tool_iterations is None
                else self.max_tool_iterations
            ),
        )


class HistoryMessageRes(BaseModel):
    id: str
    role: str
    content: str
    timestamp: str
    is_summary: bool = False
    input_tokens: int | None = None
    output_tokens: int | None = None


class HistoryRes(BaseModel):
    messages: list[HistoryMessageRes]


class CompressRes(BaseModel):
    compressed: bool
