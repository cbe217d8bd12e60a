"""
===============================================================================
TARJETA CRC — application/tool_loop.py
===============================================================================

Clase:
    ToolLoopOrchestrator

Responsabilidades:
    - Conducir el intercambio modelo <-> tools de un turno:
        complete(con tools) -> deltas -> ejecutar tool_use -> tool_result -> ...
    - Acotar el loop a max_iterations llamadas al modelo.
    - Convertir fallas de tools en tool_result con is_error=True (nunca excepciones).

Colaboradores:
    - LLMGateway.complete (no streaming: necesita los bloques tool_use completos)
    - ToolExecutor (infrastructure/tools/registry.py)
    - value_objects.coerce_tool_arguments

Máquina de estados:
    AWAITING_MODEL -> MODEL_RESPONDED_WITH_TEXT -> DONE
    AWAITING_MODEL -> MODEL_REQUESTED_TOOLS -> EXECUTING_TOOLS -> AWAITING_MODEL

Reglas:
    - La conversación es una copia local del turno; el mensaje assistant y el
      mensaje user con los tool_result se agregan juntos, recién cuando están
      todos los resultados. Cerrar el generador a mitad de turno no deja
      estado parcial en el historial del llamador.
    - Errores del gateway se propagan; el llamador decide cómo reportarlos.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Final, Optional, Sequence

from ..crosscutting.logger import logger
from ..domain.entities import (
    LLMMessage,
    TextBlock,
    TokenUsage,
    ToolDefinition,
    ToolResult,
    ToolResultBlock,
    ToolUseBlock,
    ToolUseRequest,
)
from ..domain.services import LLMGateway, ToolExecutor
from ..domain.value_objects import StreamDelta, ToolFailure, coerce_tool_arguments

DEFAULT_MAX_ITERATIONS: Final[int] = 10
DEFAULT_MAX_TOKENS: Final[int] = 8192


class ToolLoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    MODEL_RESPONDED_WITH_TEXT = "model_responded_with_text"
    MODEL_REQUESTED_TOOLS = "model_requested_tools"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


@dataclass(frozen=True)
class ToolLoopOutcome:
    """Resumen del loop, viaja en el delta `complete` (metadata["outcome"])."""

    iterations: int
    reached_iteration_limit: bool
    messages: tuple[LLMMessage, ...]
    text: str
    usage: TokenUsage


class ToolLoopOrchestrator:
    def __init__(
        self,
        llm: LLMGateway,
        executor: ToolExecutor,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        temperature: float = 1.0,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self._llm = llm
        self._executor = executor
        self.max_iterations = max_iterations
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def run(
        self,
        initial_messages: Sequence[LLMMessage],
        tools: Sequence[ToolDefinition],
        *,
        system_prompt: str,
        max_iterations: Optional[int] = None,
    ) -> AsyncIterator[StreamDelta]:
        limit = max_iterations or self.max_iterations
        conversation = list(initial_messages)
        iterations = 0
        text_parts: list[str] = []
        usage = TokenUsage()
        state = ToolLoopState.AWAITING_MODEL

        while iterations < limit:
            iterations += 1
            response = await self._llm.complete(
                conversation,
                system_prompt=system_prompt,
                tools=tools,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
            usage = usage + response.usage
            yield StreamDelta.usage_update(response.usage)

            assistant_blocks = []
            requests: list[ToolUseRequest] = []
            for block in response.content:
                if isinstance(block, TextBlock):
                    assistant_blocks.append(block)
                    text_parts.append(block.text)
                    yield StreamDelta.text_delta(block.text)
                elif isinstance(block, ToolUseBlock):
                    assistant_blocks.append(block)
                    request = ToolUseRequest(id=block.id, name=block.name, input=dict(block.input))
                    requests.append(request)
                    yield StreamDelta.tool_call_requested(request)

            assistant_message = LLMMessage(role="assistant", content=tuple(assistant_blocks))

            if not requests:
                state = ToolLoopState.MODEL_RESPONDED_WITH_TEXT
                if assistant_blocks:
                    conversation.append(assistant_message)
                logger.debug("Tool loop state", extra={"state": state.value, "iteration": iterations})
                break

            state = ToolLoopState.EXECUTING_TOOLS
            logger.info(
                "Executing tool calls",
                extra={
                    "iteration": iterations,
                    "tool_names": [r.name for r in requests],
                },
            )
            results: list[ToolResult] = []
            for request in requests:
                result = await self._execute(request)
                results.append(result)
                yield StreamDelta.tool_result_delta(result)

            conversation.append(assistant_message)
            conversation.append(
                LLMMessage(
                    role="user",
                    content=tuple(
                        ToolResultBlock(
                            tool_use_id=r.tool_use_id, content=r.content, is_error=r.is_error
                        )
                        for r in results
                    ),
                )
            )
            state = ToolLoopState.AWAITING_MODEL

        reached_limit = state != ToolLoopState.MODEL_RESPONDED_WITH_TEXT
        if reached_limit:
            logger.warning(
                "Tool loop reached max iterations",
                extra={"max_iterations": limit},
            )

        yield StreamDelta.complete(
            outcome=ToolLoopOutcome(
                iterations=iterations,
                reached_iteration_limit=reached_limit,
                messages=tuple(conversation),
                text="".join(text_parts),
                usage=usage,
            )
        )

    async def _execute(self, request: ToolUseRequest) -> ToolResult:
        arguments = coerce_tool_arguments(request.input)
        try:
            outcome = await self._executor.execute(request.name, arguments)
        except Exception as exc:
            # un executor que lanza se reporta al modelo igual que un ToolFailure
            logger.error(
                "Tool executor raised",
                exc_info=True,
                extra={"tool_name": request.name, "tool_use_id": request.id},
            )
            return ToolResult(tool_use_id=request.id, content=f"Error: {exc}", is_error=True)

        if isinstance(outcome, ToolFailure):
            logger.warning(
                "Tool call failed",
                extra={
                    "tool_name": request.name,
                    "kind": outcome.kind.value,
                    "error": outcome.message,
                },
            )
            return ToolResult(
                tool_use_id=request.id, content=f"Error: {outcome.message}", is_error=True
            )
        return ToolResult(tool_use_id=request.id, content=outcome.output)
