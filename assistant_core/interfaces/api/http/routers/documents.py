"""
===============================================================================
TARJETA CRC — app/interfaces/api/http/routers/documents.py
===============================================================================

Name:
    Documents Router

Responsibilities:
    - Endpoints HTTP para la base de conocimiento (list/index/delete).
    - Los errores tipados (InvalidDocumentError, TooLargeError, GatewayError)
      se traducen en api/exception_handlers.py.

Collaborators:
    - application.message_orchestrator.MessageOrchestrator
    - schemas.documents
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from .....application.message_orchestrator import MessageOrchestrator
from ..dependencies import get_orchestrator
from ..schemas.documents import (
    DeleteDocumentRes,
    DocumentsListRes,
    DocumentSummaryRes,
    IndexDocumentReq,
)

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("", response_model=DocumentsListRes)
def list_documents(orchestrator: MessageOrchestrator = Depends(get_orchestrator)):
    return DocumentsListRes(
        documents=[
            DocumentSummaryRes.from_document(d) for d in orchestrator.list_documents()
        ]
    )


@router.post("", response_model=DocumentSummaryRes, status_code=201)
async def index_document(
    req: IndexDocumentReq,
    orchestrator: MessageOrchestrator = Depends(get_orchestrator),
):
    document = await orchestrator.index_document(req.title, req.content, req.metadata)
    return DocumentSummaryRes.from_document(document)


@router.delete("/{document_id}", response_model=DeleteDocumentRes)
async def delete_document(
    document_id: str,
    orchestrator: MessageOrchestrator = Depends(get_orchestrator),
):
    if not await orchestrator.remove_document(document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return DeleteDocumentRes(deleted=True)
