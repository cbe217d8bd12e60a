"""
===============================================================================
TARJETA CRC — infrastructure/storage/in_memory.py
===============================================================================

Clase:
    InMemoryStore

Responsabilidades:
    - Implementar IndexStore y ConversationStore en memoria (tests / modo efímero).
    - Guardar copias: el llamador no puede mutar lo persistido por referencia.

Colaboradores:
    - domain.repositories (contratos)
===============================================================================
"""

from __future__ import annotations

from typing import Optional, Sequence

from ...domain.entities import ConversationMessage, RagIndex


class InMemoryStore:
    def __init__(
        self,
        *,
        index: Optional[RagIndex] = None,
        messages: Sequence[ConversationMessage] = (),
    ) -> None:
        # RagIndex es inmutable: alcanza con la referencia
        self._index = index
        self._messages = list(messages)

    async def read_index(self) -> Optional[RagIndex]:
        return self._index

    async def write_index(self, index: RagIndex) -> None:
        self._index = index

    async def read_messages(self) -> list[ConversationMessage]:
        return list(self._messages)

    async def write_messages(self, messages: Sequence[ConversationMessage]) -> None:
        self._messages = list(messages)
