"""
===============================================================================
TARJETA CRC — infrastructure/tools/registry.py
===============================================================================

Clase:
    ToolRegistry

Responsabilidades:
    - Registrar tools in-process (definición + handler async).
    - Implementar ToolExecutor: ejecutar por nombre y devolver ToolOutcome.
    - Nunca propagar excepciones de handlers: se convierten en ToolFailure.

Colaboradores:
    - domain.services.ToolExecutor (contrato)
    - application.tool_loop (consumidor)
===============================================================================
"""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, Mapping

from ...crosscutting.logger import logger
from ...domain.entities import ToolDefinition
from ...domain.value_objects import ToolErrorKind, ToolFailure, ToolOutcome, ToolSuccess

ToolHandler = Callable[[Mapping[str, str]], Awaitable[str]]


class ToolRegistry:
    def __init__(self) -> None:
        self._definitions: Dict[str, ToolDefinition] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        if definition.name in self._definitions:
            raise ValueError(f"Tool '{definition.name}' is already registered")
        self._definitions[definition.name] = definition
        self._handlers[definition.name] = handler

    def definitions(self) -> list[ToolDefinition]:
        return list(self._definitions.values())

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    async def execute(self, name: str, arguments: Mapping[str, str]) -> ToolOutcome:
        handler = self._handlers.get(name)
        if handler is None:
            return ToolFailure(ToolErrorKind.UNKNOWN_TOOL, f"Unknown tool: {name}")

        definition = self._definitions[name]
        required = definition.input_schema.get("required") or []
        missing = [field for field in required if field not in arguments]
        if missing:
            return ToolFailure(
                ToolErrorKind.INVALID_ARGUMENTS,
                f"Missing required arguments: {', '.join(missing)}",
            )

        try:
            output = await handler(arguments)
        except Exception as exc:
            logger.warning(
                "Tool handler failed",
                exc_info=True,
                extra={"tool_name": name, "error_type": type(exc).__name__},
            )
            return ToolFailure(ToolErrorKind.EXECUTION_FAILED, str(exc) or type(exc).__name__)
        return ToolSuccess(output)
