"""
===============================================================================
TARJETA CRC — application/rag_index.py
===============================================================================

Clase:
    DocumentIndex

Responsabilidades:
    - Mantener la base de conocimiento: documentos + embeddings de sus chunks.
    - Ingestar documentos: chunk -> embed_batch -> publicar snapshot nuevo.
    - Borrar en cascada (documento + todas sus embeddings).
    - Restaurar un snapshot persistido validando invariantes.

Colaboradores:
    - TextChunkerService (infrastructure/text/chunker.py)
    - EmbeddingGateway
    - domain.entities.RagIndex (snapshot inmutable)

Concurrencia:
    - Un único escritor a la vez (asyncio.Lock).
    - Lectores usan snapshot() sin lock: siempre ven un índice completo.
    - El embedding se calcula fuera del lock; la validación de dimensión y la
      publicación ocurren dentro, contra el snapshot vigente.
===============================================================================
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, Mapping, Optional, Sequence
from uuid import uuid4

from ..crosscutting.exceptions import (
    EmbeddingDimensionMismatchError,
    InvalidDocumentError,
    OrphanedEmbeddingError,
    ProtocolError,
)
from ..crosscutting.logger import logger
from ..domain.entities import ChunkEmbedding, Document, RagIndex, _utcnow
from ..domain.services import EmbeddingGateway, TextChunkerService


def validate_index(index: RagIndex) -> None:
    """
    Verifica los invariantes de un snapshot.

    Raises:
        OrphanedEmbeddingError: embedding sin documento
        EmbeddingDimensionMismatchError: dimensiones heterogéneas
    """
    document_ids = {d.id for d in index.documents}
    dimension = index.dimension
    for emb in index.embeddings:
        if emb.document_id not in document_ids:
            raise OrphanedEmbeddingError(
                f"Embedding {emb.chunk_id} references unknown document {emb.document_id}"
            )
        if emb.dimension != dimension:
            raise EmbeddingDimensionMismatchError(
                f"Embedding {emb.chunk_id} has dimension {emb.dimension}, "
                f"index dimension is {dimension}"
            )


class DocumentIndex:
    """R: Índice RAG en memoria con publicación copy-on-write."""

    def __init__(
        self,
        chunker: TextChunkerService,
        embeddings: EmbeddingGateway,
        *,
        initial: Optional[RagIndex] = None,
        clock: Callable = _utcnow,
    ):
        self._chunker = chunker
        self._embeddings = embeddings
        self._clock = clock
        if initial is not None:
            validate_index(initial)
        self._snapshot = initial or RagIndex(last_updated=clock())
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> RagIndex:
        return self._snapshot

    @property
    def dimension(self) -> Optional[int]:
        return self._snapshot.dimension

    def list_documents(self) -> list[Document]:
        return list(self._snapshot.documents)

    def get_document(self, document_id: str) -> Optional[Document]:
        return self._snapshot.document_by_id(document_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_document(
        self,
        title: str,
        content: str,
        metadata: Optional[Mapping[str, str]] = None,
        *,
        document_id: Optional[str] = None,
    ) -> Document:
        """
        Ingesta completa de un documento.

        Falla sin efectos: si el chunking o el gateway fallan, el índice no cambia.
        """
        if not title.strip():
            raise InvalidDocumentError("Document title must not be empty")

        document = Document(
            id=document_id or str(uuid4()),
            title=title.strip(),
            content=content,
            created_at=self._clock(),
            metadata=dict(metadata or {}),
        )
        chunks = self._chunker.chunk(content, document.id)
        if not chunks:
            raise InvalidDocumentError("Document content must not be blank")

        vectors = await self._embeddings.embed_batch([c.content for c in chunks])
        if len(vectors) != len(chunks):
            raise ProtocolError(
                f"Embedding gateway returned {len(vectors)} vectors for {len(chunks)} chunks"
            )

        new_embeddings = tuple(
            ChunkEmbedding(
                chunk_id=chunk.id,
                document_id=document.id,
                content=chunk.content,
                embedding=tuple(float(x) for x in vector),
                chunk_index=chunk.chunk_index,
            )
            for chunk, vector in zip(chunks, vectors)
        )
        self._check_uniform(new_embeddings)

        async with self._write_lock:
            current = self._snapshot
            if current.document_by_id(document.id) is not None:
                raise InvalidDocumentError(f"Document {document.id} already indexed")
            expected = current.dimension
            got = new_embeddings[0].dimension
            if expected is not None and expected != got:
                raise EmbeddingDimensionMismatchError(
                    f"Embedding dimension {got} does not match index dimension {expected}"
                )
            self._snapshot = RagIndex(
                documents=current.documents + (document,),
                embeddings=current.embeddings + new_embeddings,
                last_updated=self._clock(),
            )

        logger.info(
            "Document indexed",
            extra={
                "document_id": document.id,
                "title": document.title,
                "chunk_count": len(chunks),
                "dimension": got,
            },
        )
        return document

    async def remove_document(self, document_id: str) -> bool:
        """Borra el documento y todas sus embeddings. False si no existía."""
        async with self._write_lock:
            current = self._snapshot
            if current.document_by_id(document_id) is None:
                return False
            self._snapshot = RagIndex(
                documents=tuple(d for d in current.documents if d.id != document_id),
                embeddings=tuple(
                    e for e in current.embeddings if e.document_id != document_id
                ),
                last_updated=self._clock(),
            )

        logger.info("Document removed", extra={"document_id": document_id})
        return True

    async def restore(self, index: RagIndex) -> None:
        """Reemplaza el snapshot; si el índice entrante es inválido se conserva el previo."""
        try:
            validate_index(index)
        except (OrphanedEmbeddingError, EmbeddingDimensionMismatchError) as exc:
            logger.error(
                "Rejected index restore",
                extra={"error_code": exc.error_code, "error": exc.message},
            )
            raise
        async with self._write_lock:
            self._snapshot = index
        logger.info(
            "Index restored",
            extra={
                "document_count": len(index.documents),
                "embedding_count": len(index.embeddings),
            },
        )

    async def clear(self) -> None:
        async with self._write_lock:
            self._snapshot = RagIndex(last_updated=self._clock())
        logger.info("Index cleared")

    # ------------------------------------------------------------------

    @staticmethod
    def _check_uniform(embeddings: Sequence[ChunkEmbedding]) -> None:
        dims: Dict[int, int] = {}
        for emb in embeddings:
            dims[emb.dimension] = dims.get(emb.dimension, 0) + 1
        if len(dims) > 1:
            raise EmbeddingDimensionMismatchError(
                f"Embedding gateway returned mixed dimensions: {sorted(dims)}"
            )
