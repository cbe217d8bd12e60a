"""
===============================================================================
TARJETA CRC — app/interfaces/api/http/routers/chat.py
===============================================================================

Name:
    Chat Router

Responsibilities:
    - POST /chat/messages: turno completo como stream SSE de deltas.
    - Lectura / compresión / borrado del historial.
    - La validación del texto ocurre ANTES de abrir el stream
      (InvalidQueryError -> 400 vía exception handlers).

Collaborators:
    - application.message_orchestrator.MessageOrchestrator
    - crosscutting.streaming.stream_deltas
    - schemas.chat
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from .....application.message_orchestrator import MessageOrchestrator
from .....crosscutting.streaming import stream_deltas
from ..dependencies import get_orchestrator
from ..schemas.chat import ChatMessageReq, CompressRes, HistoryMessageRes, HistoryRes

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/messages")
async def send_message(
    req: ChatMessageReq,
    request: Request,
    orchestrator: MessageOrchestrator = Depends(get_orchestrator),
):
    deltas = orchestrator.send_message(
        req.content, req.to_options(orchestrator.default_options)
    )
    return stream_deltas(deltas, request)


@router.get("/history", response_model=HistoryRes)
async def get_history(orchestrator: MessageOrchestrator = Depends(get_orchestrator)):
    messages = await orchestrator.history()
    return HistoryRes(
        messages=[
            HistoryMessageRes(
                id=m.id,
                role=m.role.value,
                content=m.content,
                timestamp=m.timestamp.isoformat(),
                is_summary=m.is_summary,
                input_tokens=m.input_tokens,
                output_tokens=m.output_tokens,
            )
            for m in messages
        ]
    )


@router.post("/history/compress", response_model=CompressRes)
async def compress_history(
    orchestrator: MessageOrchestrator = Depends(get_orchestrator),
):
    return CompressRes(compressed=await orchestrator.compress_history())


@router.delete("/history", status_code=204)
async def clear_history(orchestrator: MessageOrchestrator = Depends(get_orchestrator)):
    await orchestrator.clear_history()
