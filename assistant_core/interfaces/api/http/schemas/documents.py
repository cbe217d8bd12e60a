"""
===============================================================================
TARJETA CRC — schemas/documents.py
===============================================================================

Módulo:
    Schemas HTTP para la base de conocimiento (alta, listado, baja)

Colaboradores:
    - domain.entities.Document
===============================================================================
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .....domain.entities import Document

_PREVIEW_CHARS = 200


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------
class IndexDocumentReq(BaseModel):
    """Indexar un documento de texto plano."""

    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return v.strip()


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------
class DocumentSummaryRes(BaseModel):
    id: str
    title: str
    created_at: datetime
    metadata: dict[str, str]
    preview: str

    @classmethod
    def from_document(cls, document: Document) -> "DocumentSummaryRes":
        return cls(
            id=document.id,
            title=document.title,
            created_at=document.created_at,
            metadata=dict(document.metadata),
            preview=document.content[:_PREVIEW_CHARS],
        )


class DocumentsListRes(BaseModel):
    documents: list[DocumentSummaryRes]


class DeleteDocumentRes(BaseModel):
    deleted: bool
