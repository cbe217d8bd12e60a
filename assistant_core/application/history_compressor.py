"""
===============================================================================
TARJETA CRC — application/history_compressor.py
===============================================================================

Clase:
    HistoryCompressor

Responsabilidades:
    - Estimar el costo en tokens del historial (uso real si existe, si no
      len(content) // chars_per_token).
    - Decidir si hay que comprimir: tokens elegibles desde el último resumen
      >= token_threshold.
    - Resumir el prefijo elegible más corto que alcanza el umbral y reemplazarlo
      por un único mensaje de resumen (role=system, is_summary=True).

Colaboradores:
    - LLMGateway.complete (resumen, temperature 0.3)
    - domain.entities.ConversationMessage

Reglas:
    - Elegibles: user/assistant, no-resumen, posteriores al último resumen.
    - Falla atómica: cualquier error del gateway devuelve la lista original.
    - Idempotente si no hay contenido elegible nuevo.
===============================================================================
"""

from __future__ import annotations

import math
from typing import Final, Optional, Sequence

from ..crosscutting.exceptions import GatewayError
from ..crosscutting.logger import logger
from ..domain.entities import ConversationMessage, LLMMessage, MessageRole
from ..domain.services import LLMGateway

DEFAULT_TOKEN_THRESHOLD: Final[int] = 800
DEFAULT_CHARS_PER_TOKEN: Final[int] = 4
SUMMARY_PREFIX: Final[str] = "Previous conversation summary:\n\n"

_SUMMARY_TEMPERATURE: Final[float] = 0.3
_SUMMARY_MAX_TOKENS: Final[int] = 4096
_SUMMARY_SYSTEM_PROMPT: Final[str] = (
    "You are a helpful conversation summarization assistant."
)

_SUMMARY_PROMPT: Final[str] = """You are a conversation summarization assistant. Summarize the following conversation between a user and an AI assistant.

Your summary must:
- Capture the main topics discussed
- Preserve key decisions, conclusions and action items
- Keep important facts, names, numbers and technical details
- Be written in the third person ("The user asked...", "The assistant explained...")
- Be concise: 2-4 paragraphs

Conversation:
{conversation}

Summary:"""

_ELIGIBLE_ROLES: Final[frozenset[MessageRole]] = frozenset(
    {MessageRole.USER, MessageRole.ASSISTANT}
)


class HistoryCompressor:
    def __init__(
        self,
        llm: LLMGateway,
        *,
        token_threshold: int = DEFAULT_TOKEN_THRESHOLD,
        chars_per_token: int = DEFAULT_CHARS_PER_TOKEN,
        max_summary_tokens: int = _SUMMARY_MAX_TOKENS,
    ):
        if token_threshold <= 0:
            raise ValueError("token_threshold must be > 0")
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be > 0")
        self._llm = llm
        self.token_threshold = token_threshold
        self.chars_per_token = chars_per_token
        self._max_summary_tokens = max_summary_tokens

    # ------------------------------------------------------------------
    # Token accounting
    # ------------------------------------------------------------------

    def estimate_tokens(self, message: ConversationMessage) -> int:
        recorded = (message.input_tokens or 0) + (message.output_tokens or 0)
        if recorded > 0:
            return recorded
        return len(message.content) // self.chars_per_token

    @staticmethod
    def _window_start(messages: Sequence[ConversationMessage]) -> int:
        for idx in range(len(messages) - 1, -1, -1):
            if messages[idx].is_summary:
                return idx + 1
        return 0

    @staticmethod
    def _is_eligible(message: ConversationMessage) -> bool:
        return message.role in _ELIGIBLE_ROLES and not message.is_summary

    def eligible_tokens(self, messages: Sequence[ConversationMessage]) -> int:
        start = self._window_start(messages)
        return sum(
            self.estimate_tokens(m) for m in messages[start:] if self._is_eligible(m)
        )

    def should_compress(self, messages: Sequence[ConversationMessage]) -> bool:
        return self.eligible_tokens(messages) >= self.token_threshold

    # ------------------------------------------------------------------
    # Compression
    # ------------------------------------------------------------------

    async def compress(
        self, messages: Sequence[ConversationMessage]
    ) -> list[ConversationMessage]:
        """
        Devuelve una lista nueva: antes-de-la-ventana + resumen + elegibles no
        seleccionados. Si no corresponde comprimir (o el resumen falla) devuelve
        una copia de la lista original.
        """
        original = list(messages)
        start = self._window_start(original)

        selected: list[int] = []
        total = 0
        for idx in range(start, len(original)):
            message = original[idx]
            if not self._is_eligible(message):
                continue
            selected.append(idx)
            total += self.estimate_tokens(message)
            if total >= self.token_threshold:
                break

        if total < self.token_threshold:
            return original

        summary_text = await self._summarize([original[i] for i in selected])
        if summary_text is None:
            return original

        content = SUMMARY_PREFIX + summary_text
        summary_tokens = math.ceil(len(content) / self.chars_per_token)
        summary = ConversationMessage(
            role=MessageRole.SYSTEM,
            content=content,
            is_summary=True,
            summarized_message_count=len(selected),
            summarized_tokens=total,
            tokens_saved=total - summary_tokens,
        )

        chosen = set(selected)
        remaining = [
            original[i] for i in range(start, len(original)) if i not in chosen
        ]

        logger.info(
            "History compressed",
            extra={
                "summarized_messages": len(selected),
                "summarized_tokens": total,
                "tokens_saved": summary.tokens_saved,
            },
        )
        return original[:start] + [summary] + remaining

    async def _summarize(
        self, messages: Sequence[ConversationMessage]
    ) -> Optional[str]:
        conversation = "\n\n".join(
            f"{'User' if m.role == MessageRole.USER else 'Assistant'}: {m.content}"
            for m in messages
        )
        try:
            response = await self._llm.complete(
                [LLMMessage.user_text(_SUMMARY_PROMPT.format(conversation=conversation))],
                system_prompt=_SUMMARY_SYSTEM_PROMPT,
                temperature=_SUMMARY_TEMPERATURE,
                max_tokens=self._max_summary_tokens,
            )
        except GatewayError as exc:
            logger.warning(
                "History compression failed, keeping original messages",
                extra={"error_code": exc.error_code, "error": exc.message},
            )
            return None

        text = response.text.strip()
        if not text:
            logger.warning("History compression returned an empty summary")
            return None
        return text
