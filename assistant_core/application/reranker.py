# =============================================================================
# FILE: application/reranker.py
# =============================================================================
"""
===============================================================================
RERANKER (RAG Enhancement)
===============================================================================

Name:
    LLM Reranker

Business Goal:
    Mejorar la precisión del retrieval puntuando cada candidato con el LLM
    (query + chunk juntos), no solo por similitud vectorial.

Estrategia:
    1) Recibir candidatos ordenados por coseno (etapa 1).
    2) Un prompt determinístico por candidato (temperature 0, max 10 tokens).
    3) Parsear el primer token numérico de la respuesta, clamp a [0, 1].
    4) Si el LLM falla o responde basura: score de fallback (0.3 por defecto).

Concurrencia:
    - Los candidatos se puntúan en paralelo (asyncio.gather + Semaphore).
    - gather preserva el orden del input: el resultado es determinístico.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    LLMReranker

Responsibilities:
    - Asignar rerank_score a cada SearchResult.
    - Degradar con fallback ante errores del gateway (nunca propagarlos).

Collaborators:
    - LLMGateway.complete
    - SearchResult (domain)
===============================================================================
"""

from __future__ import annotations

import asyncio
import math
import re
from typing import Final, Optional, Sequence

from ..crosscutting.exceptions import GatewayError
from ..crosscutting.logger import logger
from ..domain.entities import LLMMessage, SearchResult
from ..domain.services import LLMGateway

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------
DEFAULT_FALLBACK_SCORE: Final[float] = 0.3
DEFAULT_MAX_CONCURRENCY: Final[int] = 4
_MAX_CONTENT_CHARS: Final[int] = 1500
_SCORE_MAX_TOKENS: Final[int] = 10

_NUMERIC_TOKEN: Final[re.Pattern[str]] = re.compile(
    r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"
)

_SYSTEM_PROMPT: Final[str] = (
    "You are a relevance scoring system. Respond with a single number only."
)

_RERANK_PROMPT: Final[str] = """You are a relevance scoring system. Rate how relevant the following document is to the user's query.

Query: {query}

Document:
{document}

Rate the relevance on a scale from 0.0 to 1.0, where:
- 1.0 = Highly relevant, directly answers the query
- 0.7 = Relevant, contains useful related information
- 0.5 = Somewhat relevant, tangentially related
- 0.3 = Slightly relevant, mentions similar topics
- 0.0 = Not relevant at all

Respond with ONLY a single decimal number between 0.0 and 1.0, nothing else.

Score:"""


def build_rerank_prompt(query: str, content: str) -> str:
    if len(content) > _MAX_CONTENT_CHARS:
        content = content[:_MAX_CONTENT_CHARS] + "..."
    return _RERANK_PROMPT.format(query=query, document=content)


def parse_rerank_score(response: str) -> Optional[float]:
    """
    Primer token (separado por whitespace) que sea un número, clamp a [0, 1].

    None si ningún token es numérico.
    """
    for token in response.split():
        if _NUMERIC_TOKEN.fullmatch(token):
            value = float(token)
            if math.isfinite(value):
                return min(1.0, max(0.0, value))
    return None


class LLMReranker:
    """R: Reranker que puntúa candidatos con el LLM (ver docstring del módulo)."""

    def __init__(
        self,
        llm: LLMGateway,
        *,
        fallback_score: float = DEFAULT_FALLBACK_SCORE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        if not 0.0 <= fallback_score <= 1.0:
            raise ValueError("fallback_score must be between 0 and 1")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._llm = llm
        self._fallback_score = fallback_score
        self._max_concurrency = max_concurrency

    @property
    def fallback_score(self) -> float:
        return self._fallback_score

    async def rerank(
        self, query: str, candidates: Sequence[SearchResult]
    ) -> list[SearchResult]:
        """Devuelve los candidatos (mismo orden) con rerank_score asignado."""
        if not candidates:
            return []

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(candidate: SearchResult) -> float:
            async with semaphore:
                return await self.score(query, candidate)

        scores = await asyncio.gather(*(_bounded(c) for c in candidates))

        logger.info(
            "Rerank completed",
            extra={
                "candidate_count": len(candidates),
                "fallback_count": sum(
                    1 for s in scores if s == self._fallback_score
                ),
            },
        )
        return [c.with_rerank_score(s) for c, s in zip(candidates, scores)]

    async def score(self, query: str, candidate: SearchResult) -> float:
        prompt = build_rerank_prompt(query, candidate.chunk.content)
        try:
            response = await self._llm.complete(
                [LLMMessage.user_text(prompt)],
                system_prompt=_SYSTEM_PROMPT,
                temperature=0.0,
                max_tokens=_SCORE_MAX_TOKENS,
            )
        except GatewayError as exc:
            logger.warning(
                "Rerank scoring failed, using fallback score",
                extra={
                    "chunk_id": candidate.chunk.chunk_id,
                    "error_code": exc.error_code,
                    "fallback_score": self._fallback_score,
                },
            )
            return self._fallback_score

        parsed = parse_rerank_score(response.text)
        if parsed is None:
            logger.warning(
                "Unparseable rerank score, using fallback",
                extra={"chunk_id": candidate.chunk.chunk_id, "response": response.text},
            )
            return self._fallback_score
        return parsed
