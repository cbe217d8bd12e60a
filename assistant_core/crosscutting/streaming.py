"""
===============================================================================
MÓDULO: Streaming SSE (Server-Sent Events) para turnos del asistente
===============================================================================

Objetivo
--------
- Traducir el stream de StreamDelta del orquestador a eventos SSE
- Un evento por delta, nombrado por su tipo (text, sources, complete, ...)
- Manejar desconexión del cliente sin romper el worker/API

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  stream_deltas()

Responsabilidades:
  - Formatear eventos SSE
  - Serializar cada StreamDelta a un payload JSON chico y estable

Colaboradores:
  - application.message_orchestrator (produce los deltas)
  - interfaces.api.http.routers.chat
===============================================================================
"""

from __future__ import annotations

import json
from typing import Any, AsyncGenerator, AsyncIterator, Optional

from fastapi import Request
from fastapi.responses import StreamingResponse

from ..domain.entities import ConversationMessage, SearchResult, TokenUsage
from ..domain.value_objects import DeltaType, StreamDelta
from .logger import logger

_SNIPPET_CHARS = 200


def stream_deltas(
    deltas: AsyncIterator[StreamDelta],
    request: Optional[Request] = None,
) -> StreamingResponse:
    """
    SSE Events (uno por delta):
      - text: {"text": "..."}
      - tool_call_requested: {"id", "name", "input"}
      - tool_result: {"tool_use_id", "content", "is_error"}
      - usage_update: {"input_tokens", "output_tokens"}
      - sources: {"sources": [...]}
      - complete: {"message": {...}, "usage": {...}, ...}
      - error: {"error": "...", "code": "..."}
    """
    return StreamingResponse(
        _generate_sse(deltas, request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


async def _generate_sse(
    deltas: AsyncIterator[StreamDelta],
    request: Optional[Request],
) -> AsyncGenerator[str, None]:
    try:
        async for delta in deltas:
            if request is not None and await request.is_disconnected():
                logger.info("SSE: cliente desconectado")
                return
            yield _sse_event(delta.type.value, delta_payload(delta))
    except Exception as e:
        logger.error("SSE stream error", extra={"error": str(e)})
        yield _sse_event(
            DeltaType.ERROR.value,
            {"error": "Error durante streaming", "code": "STREAM_ERROR"},
        )
    finally:
        # Cierra el generador del turno si el cliente se fue a mitad de camino
        aclose = getattr(deltas, "aclose", None)
        if aclose is not None:
            await aclose()


# -----------------------------------------------------------------------------
# Serialización
# -----------------------------------------------------------------------------


def _usage(usage: Optional[TokenUsage]) -> dict[str, int]:
    usage = usage or TokenUsage()
    return {
        "input_tokens": usage.input_tokens,
        "output_tokens": usage.output_tokens,
    }


def _source(result: SearchResult) -> dict[str, Any]:
    return {
        "document_id": result.chunk.document_id,
        "document_title": result.document_title,
        "chunk_index": result.chunk.chunk_index,
        "similarity": result.similarity,
        "rerank_score": result.rerank_score,
        "snippet": result.chunk.content[:_SNIPPET_CHARS],
    }


def _message(message: ConversationMessage) -> dict[str, Any]:
    return {
        "id": message.id,
        "role": message.role.value,
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
    }


def delta_payload(delta: StreamDelta) -> dict[str, Any]:
    """Payload JSON del evento SSE correspondiente a `delta`."""
    if delta.type == DeltaType.TEXT:
        return {"text": delta.content}
    if delta.type == DeltaType.TOOL_CALL_REQUESTED and delta.tool_call:
        call = delta.tool_call
        return {"id": call.id, "name": call.name, "input": call.input}
    if delta.type == DeltaType.TOOL_RESULT and delta.tool_result:
        result = delta.tool_result
        return {
            "tool_use_id": result.tool_use_id,
            "content": result.content,
            "is_error": result.is_error,
        }
    if delta.type == DeltaType.USAGE_UPDATE:
        return _usage(delta.usage)
    if delta.type == DeltaType.SOURCES:
        return {"sources": [_source(r) for r in delta.sources]}
    if delta.type == DeltaType.ERROR:
        return {"error": delta.content, "code": delta.error_code}
    if delta.type == DeltaType.COMPLETE:
        payload: dict[str, Any] = {}
        for key, value in delta.metadata.items():
            if isinstance(value, ConversationMessage):
                payload[key] = _message(value)
            elif isinstance(value, TokenUsage):
                payload[key] = _usage(value)
            elif isinstance(value, (str, int, float, bool)) or value is None:
                payload[key] = value
        return payload
    return {}


def _sse_event(event: str, data: dict) -> str:
    # SSE: cada evento termina con doble newline
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"
