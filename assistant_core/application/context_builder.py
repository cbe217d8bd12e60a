"""
Name: Context Builder (RAG Grounding Assembler)

Qué es
------
Construye el bloque de CONTEXTO que se inyecta en el system prompt:
  - encabezado "Context from knowledge base:"
  - un bloque por resultado: título, número de chunk (1-based), scores
    truncados a 3 decimales, link/archivo de origen, contenido y la forma
    exacta de citarlo
  - cierre con los links de las fuentes para citar
  - límite de tamaño total (max_chars): los bloques que no entran se omiten

Arquitectura
------------
- Capa: Application
- Rol: Assembler puro (no hace retrieval, no llama al LLM)

CRC (Class-Responsibility-Collaboration)
----------------------------------------
Class: ContextBuilder
Responsibilities:
  - Formatear SearchResult en bloques citables
  - Resolver el link de cada fuente desde la metadata del documento
Collaborators:
  - domain.entities.SearchResult / RagIndex
Constraints:
  - Función pura: mismo input -> mismo string
  - Lista vacía -> string vacío
"""

from __future__ import annotations

import math
from typing import Final, List, Optional, Sequence

from ..crosscutting.logger import logger
from ..domain.entities import Document, RagIndex, SearchResult

CONTEXT_HEADER: Final[str] = "Context from knowledge base:"
DEFAULT_MAX_CONTEXT_CHARS: Final[int] = 12000

CITATION_INSTRUCTIONS: Final[str] = """

IMPORTANT - Citation Instructions:
- When you use information from the knowledge base above, cite the source inline
  using the exact "Cite as" form shown for that source, e.g. [Source 1](https://example.com).
- Place each citation right after the sentence it supports.
- Only cite sources listed above. If they do not answer the question, say so
  instead of guessing."""


def _truncate_score(value: float) -> float:
    """Trunca (no redondea) a 3 decimales."""
    return math.trunc(value * 1000) / 1000


def resolve_source_link(document: Optional[Document]) -> Optional[str]:
    """
    Link de la fuente a partir de metadata["url"] | ["path"] | ["file"].

    Los paths locales se exponen como file://<path>.
    """
    if document is None:
        return None
    url = document.metadata.get("url")
    if url:
        return url
    path = document.metadata.get("path") or document.metadata.get("file")
    if path:
        return f"file://{path}"
    return None


class ContextBuilder:
    def __init__(self, max_chars: int = DEFAULT_MAX_CONTEXT_CHARS):
        if max_chars <= 0:
            raise ValueError("max_chars must be > 0")
        self.max_chars = max_chars

    def build(self, results: Sequence[SearchResult], index: RagIndex) -> str:
        if not results:
            return ""

        parts: List[str] = [CONTEXT_HEADER, "\n\n"]
        links: List[str] = []
        used = len(CONTEXT_HEADER) + 2
        dropped = 0
        emitted = 0

        for result in results:
            # Numbering counts emitted blocks only
            position = emitted + 1
            document = index.document_by_id(result.chunk.document_id)
            link = resolve_source_link(document)
            block = self._format_block(position, result, link)
            if used + len(block) > self.max_chars and position > 1:
                dropped += 1
                continue
            parts.append(block)
            used += len(block)
            emitted += 1
            if link:
                links.append(f"- [Source {position}]({link}) - {result.document_title}")

        if links:
            parts.append("Source links:\n" + "\n".join(links) + "\n")

        if dropped:
            logger.info(
                "Context truncated",
                extra={"dropped_results": dropped, "max_chars": self.max_chars},
            )
        return "".join(parts).rstrip() + "\n"

    @staticmethod
    def _format_block(position: int, result: SearchResult, link: Optional[str]) -> str:
        chunk_number = result.chunk.chunk_index + 1
        scores = f"similarity: {_truncate_score(result.similarity)}"
        if result.rerank_score is not None:
            scores += f", rerank: {_truncate_score(result.rerank_score)}"

        lines = [
            f"--- Source {position}: {result.document_title} "
            f"[Chunk #{chunk_number}] ({scores}) ---"
        ]
        if link and link.startswith("file://"):
            lines.append(f"File: {link[len('file://'):]}")
        elif link:
            lines.append(f"Link: {link}")

        citation = f"[Source {position}]({link})" if link else f"Source {position}"
        lines.append("")
        lines.append(result.chunk.content)
        lines.append("")
        lines.append(
            f"Cite as: {citation} - {result.document_title}, Chunk {chunk_number}"
        )
        return "\n".join(lines) + "\n\n"


def build_context(results: Sequence[SearchResult], index: RagIndex) -> str:
    """Atajo funcional con el límite por defecto."""
    return ContextBuilder().build(results, index)
