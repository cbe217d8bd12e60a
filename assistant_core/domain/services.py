"""
===============================================================================
TARJETA CRC — domain/services.py
===============================================================================

Módulo:
    Puertos de Servicios Externos (Protocols)

Responsabilidades:
    - Definir contratos para los gateways (Embeddings / LLM) y el ejecutor de tools.
    - Proteger a application de detalles del proveedor.

Colaboradores:
    - infrastructure/services/*: implementaciones concretas (Google, Anthropic, fakes).
    - infrastructure/tools/registry.py: ToolExecutor in-process.
    - application/*: consumen estos puertos.

Reglas:
    - SOLO interfaces: nada de implementación.
    - Las fallas se reportan como GatewayError (crosscutting/exceptions.py).
===============================================================================
"""

from __future__ import annotations

from typing import AsyncIterator, Mapping, Optional, Protocol, Sequence

from .entities import LLMMessage, LLMResponse, TextChunk, ToolDefinition
from .value_objects import StreamDelta, ToolOutcome


class EmbeddingGateway(Protocol):
    """Contrato para generar embeddings."""

    async def embed(self, text: str) -> list[float]:
        """Embedding individual (queries)."""
        ...

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embeddings batch; un vector por texto, en el mismo orden."""
        ...


class LLMGateway(Protocol):
    """Contrato para el modelo de lenguaje."""

    async def complete(
        self,
        messages: Sequence[LLMMessage],
        *,
        system_prompt: str,
        tools: Optional[Sequence[ToolDefinition]] = None,
        temperature: float = 1.0,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """Respuesta completa (no streaming), con bloques text / tool_use."""
        ...

    def stream(
        self,
        messages: Sequence[LLMMessage],
        *,
        system_prompt: str,
        temperature: float = 1.0,
        max_tokens: int = 1024,
    ) -> AsyncIterator[StreamDelta]:
        """Stream de deltas text / usage_update (sin tools)."""
        ...


class ToolExecutor(Protocol):
    """Contrato para ejecutar una tool; los errores vuelven como ToolFailure."""

    async def execute(self, name: str, arguments: Mapping[str, str]) -> ToolOutcome:
        ...


class TextChunkerService(Protocol):
    """Contrato para partir texto en chunks de forma determinística."""

    def chunk(self, text: str, document_id: str) -> list[TextChunk]: ...
