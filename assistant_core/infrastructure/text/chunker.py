"""
===============================================================================
CRC CARD — infrastructure/text/chunker.py
===============================================================================

Componente:
  Chunking de texto determinístico con overlap

Responsabilidades:
  - Partir documentos en TextChunk con offsets exactos sobre el texto original.
  - Preferir cortes naturales (fin de oración / salto de línea) dentro de la
    ventana, siempre que el corte no quede antes de la mitad de la ventana.
  - Ofrecer modos alternativos: por párrafos y por oraciones.

Colaboradores:
  - domain.entities.TextChunk
  - crosscutting.exceptions (TooLargeError, TooManyChunksError)

Invariantes:
  - chunk.content == text[chunk.start_offset:chunk.end_offset]
  - Avance estricto en cada paso: step = max(1, min(size - overlap, produced - overlap))
  - Techo de tamaño de texto y de cantidad de chunks
  - Misma entrada -> misma salida (ids incluidos)
===============================================================================
"""

from __future__ import annotations

import re
from typing import Final, Iterator
from uuid import NAMESPACE_URL, uuid5

from ...crosscutting.exceptions import TooLargeError, TooManyChunksError
from ...domain.entities import TextChunk

DEFAULT_CHUNK_SIZE: Final[int] = 500
DEFAULT_CHUNK_OVERLAP: Final[int] = 50
DEFAULT_MAX_TEXT_CHARS: Final[int] = 10_000_000
DEFAULT_MAX_CHUNKS: Final[int] = 100_000

_BREAK_CHARS: Final[str] = ".!?\n"
_PARAGRAPH_SEPARATOR: Final[re.Pattern[str]] = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_SEPARATOR: Final[re.Pattern[str]] = re.compile(r"[.!?]+\s+")

_CHUNK_ID_NAMESPACE: Final = uuid5(NAMESPACE_URL, "assistant-core/chunk")


def chunk_id_for(document_id: str, chunk_index: int) -> str:
    """Id estable de un chunk (mismo documento + índice -> mismo id)."""
    return str(uuid5(_CHUNK_ID_NAMESPACE, f"{document_id}:{chunk_index}"))


def _last_break(text: str, start: int, end: int) -> int:
    """Posición (relativa a start) del último corte natural en text[start:end], o -1."""
    window = text[start:end]
    return max(window.rfind(ch) for ch in _BREAK_CHARS)


class TextChunker:
    """
    Servicio de chunking por ventana deslizante.

    Diseño:
      - Valida parámetros al construir.
      - overlap >= chunk_size no se rechaza acá: el piso de avance (1) y el
        techo de chunks acotan el peor caso. Settings sí lo rechaza.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        *,
        max_text_chars: int = DEFAULT_MAX_TEXT_CHARS,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
        if chunk_overlap < 0:
            raise ValueError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
        if max_text_chars <= 0 or max_chunks <= 0:
            raise ValueError("max_text_chars and max_chunks must be > 0")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_text_chars = max_text_chars
        self.max_chunks = max_chunks

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def chunk(self, text: str, document_id: str) -> list[TextChunk]:
        """Chunking por ventana con corte natural y overlap."""
        if not self._accept(text):
            return []
        return self._build(text, document_id, self._window_spans(text, 0, len(text)))

    def chunk_by_paragraphs(self, text: str, document_id: str) -> list[TextChunk]:
        """
        Un chunk por párrafo (separados por líneas en blanco); los párrafos
        más largos que chunk_size se parten con la ventana normal.
        """
        if not self._accept(text):
            return []
        return self._build(text, document_id, self._paragraph_spans(text))

    def chunk_by_sentences(self, text: str, document_id: str) -> list[TextChunk]:
        """
        Agrupa oraciones completas hasta chunk_size; cada chunk nuevo arranca
        con los últimos chunk_overlap caracteres del anterior.
        """
        if not self._accept(text):
            return []
        return self._build(text, document_id, self._sentence_spans(text))

    # -------------------------------------------------------------------------
    # Span generators
    # -------------------------------------------------------------------------

    def _window_spans(self, text: str, lo: int, hi: int) -> Iterator[tuple[int, int]]:
        size = self.chunk_size
        start = lo
        while start < hi:
            end = min(start + size, hi)
            if end < hi:
                brk = _last_break(text, start, end)
                if brk > size // 2:
                    end = start + brk + 1
            yield start, end
            if end >= hi:
                return
            produced = end - start
            start += max(1, min(size - self.chunk_overlap, produced - self.chunk_overlap))

    def _paragraph_spans(self, text: str) -> Iterator[tuple[int, int]]:
        cursor = 0
        bounds: list[tuple[int, int]] = []
        for sep in _PARAGRAPH_SEPARATOR.finditer(text):
            bounds.append((cursor, sep.start()))
            cursor = sep.end()
        bounds.append((cursor, len(text)))

        for p_start, p_end in bounds:
            if p_end - p_start <= self.chunk_size:
                yield p_start, p_end
            else:
                yield from self._window_spans(text, p_start, p_end)

    def _sentence_spans(self, text: str) -> Iterator[tuple[int, int]]:
        sentences: list[tuple[int, int]] = []
        cursor = 0
        for sep in _SENTENCE_SEPARATOR.finditer(text):
            terminator_end = sep.start() + len(sep.group().rstrip())
            sentences.append((cursor, terminator_end))
            cursor = sep.end()
        if cursor < len(text):
            sentences.append((cursor, len(text.rstrip())))

        current: tuple[int, int] | None = None
        for s_start, s_end in sentences:
            if s_end <= s_start:
                continue
            if current is None:
                current = (s_start, s_end)
                continue
            c_start, c_end = current
            if s_end - c_start > self.chunk_size:
                yield current
                seeded = max(c_end - self.chunk_overlap, c_start + 1)
                current = (min(seeded, s_start), s_end)
            else:
                current = (c_start, s_end)
        if current is not None:
            yield current

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _accept(self, text: str) -> bool:
        if len(text) > self.max_text_chars:
            raise TooLargeError(
                f"Text too large ({len(text)} chars). "
                f"Maximum supported: {self.max_text_chars} chars"
            )
        return bool(text.strip())

    def _build(
        self, text: str, document_id: str, spans: Iterator[tuple[int, int]]
    ) -> list[TextChunk]:
        chunks: list[TextChunk] = []
        for start, end in spans:
            content = text[start:end]
            if not content.strip():
                continue
            if len(chunks) >= self.max_chunks:
                raise TooManyChunksError(
                    f"Chunking exceeded {self.max_chunks} chunks "
                    f"(chunk_size={self.chunk_size}, chunk_overlap={self.chunk_overlap})"
                )
            index = len(chunks)
            chunks.append(
                TextChunk(
                    id=chunk_id_for(document_id, index),
                    document_id=document_id,
                    content=content,
                    chunk_index=index,
                    start_offset=start,
                    end_offset=end,
                )
            )
        return chunks
