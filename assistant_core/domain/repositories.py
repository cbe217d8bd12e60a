"""
===============================================================================
TARJETA CRC — domain/repositories.py
===============================================================================

Módulo:
    Puertos de persistencia (Protocols)

Responsabilidades:
    - Leer/escribir el snapshot del índice RAG completo (all-or-nothing).
    - Leer/escribir el historial de la conversación.

Colaboradores:
    - infrastructure/storage: JsonFileStore / InMemoryStore.
    - application.message_orchestrator: persiste tras cada mutación exitosa.
===============================================================================
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .entities import ConversationMessage, RagIndex


class IndexStore(Protocol):
    async def read_index(self) -> Optional[RagIndex]:
        """None si nunca se guardó un índice."""
        ...

    async def write_index(self, index: RagIndex) -> None: ...


class ConversationStore(Protocol):
    async def read_messages(self) -> list[ConversationMessage]: ...

    async def write_messages(self, messages: Sequence[ConversationMessage]) -> None: ...
