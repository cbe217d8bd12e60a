"""
Name: Fake LLM Gateway (Deterministic Test Double)

Qué es
------
Implementación determinista de `LLMGateway` para tests/CI y para correr el
asistente sin credenciales (FAKE_LLM=1). Sin IO, sin SDKs.

Comportamiento
--------------
  - complete(): un único bloque de texto derivado de (system_prompt, último
    mensaje user); nunca pide tools.
  - stream(): el mismo texto en trozos fijos + usage_update inicial y final.
  - Uso de tokens estimado como len(texto) // 4.

CRC (Class-Responsibility-Collaboration)
----------------------------------------
Class: FakeLLMGateway
Responsibilities:
  - Respuestas deterministas (mismas entradas -> misma salida)
  - Stream incremental para probar el SSE
Collaborators:
  - domain.entities (LLMMessage, LLMResponse)
"""

from __future__ import annotations

import hashlib
from typing import AsyncIterator, Optional, Sequence

from ....crosscutting.logger import logger
from ....domain.entities import (
    LLMMessage,
    LLMResponse,
    TextBlock,
    TokenUsage,
    ToolDefinition,
)
from ....domain.value_objects import StreamDelta

_STREAM_CHUNK_SIZE = 16
_CHARS_PER_TOKEN = 4


def _last_user_text(messages: Sequence[LLMMessage]) -> str:
    for message in reversed(messages):
        if message.role == "user" and message.text.strip():
            return message.text.strip()
    return ""


def _build_answer(system_prompt: str, question: str) -> str:
    digest = hashlib.sha256(f"{system_prompt}|{question}".encode("utf-8")).hexdigest()[:16]
    return f"Respuesta simulada ({digest}) para: {question}"


def _estimate_usage(messages: Sequence[LLMMessage], system_prompt: str, answer: str) -> TokenUsage:
    prompt_chars = len(system_prompt) + sum(len(m.text) for m in messages)
    return TokenUsage(
        input_tokens=prompt_chars // _CHARS_PER_TOKEN,
        output_tokens=len(answer) // _CHARS_PER_TOKEN,
    )


class FakeLLMGateway:
    """R: Deterministic LLMGateway for tests/CI."""

    MODEL_ID = "fake-llm-v1"

    def __init__(self, *, stream_chunk_size: int = _STREAM_CHUNK_SIZE) -> None:
        if stream_chunk_size <= 0:
            raise ValueError("stream_chunk_size must be > 0")
        self._stream_chunk_size = stream_chunk_size
        logger.debug(
            "FakeLLMGateway initialized",
            extra={"model_id": self.MODEL_ID, "stream_chunk_size": stream_chunk_size},
        )

    async def complete(
        self,
        messages: Sequence[LLMMessage],
        *,
        system_prompt: str,
        tools: Optional[Sequence[ToolDefinition]] = None,
        temperature: float = 1.0,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        answer = _build_answer(system_prompt, _last_user_text(messages))
        return LLMResponse(
            content=(TextBlock(answer),),
            usage=_estimate_usage(messages, system_prompt, answer),
            stop_reason="end_turn",
        )

    async def stream(
        self,
        messages: Sequence[LLMMessage],
        *,
        system_prompt: str,
        temperature: float = 1.0,
        max_tokens: int = 1024,
    ) -> AsyncIterator[StreamDelta]:
        answer = _build_answer(system_prompt, _last_user_text(messages))
        usage = _estimate_usage(messages, system_prompt, answer)
        yield StreamDelta.usage_update(TokenUsage(input_tokens=usage.input_tokens))
        for start in range(0, len(answer), self._stream_chunk_size):
            yield StreamDelta.text_delta(answer[start : start + self._stream_chunk_size])
        yield StreamDelta.usage_update(usage)

    @property
    def model_id(self) -> str:
        return self.MODEL_ID
