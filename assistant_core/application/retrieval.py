"""
===============================================================================
TARJETA CRC — application/retrieval.py
===============================================================================

Clase:
    RetrievalEngine

Responsabilidades:
    - Búsqueda en dos etapas sobre el snapshot vigente del índice:
        1) coseno contra todas las embeddings, umbral + orden estable
        2) (opcional) rerank por LLM, umbral + combinación híbrida
    - Validar la query antes de tocar gateways.

Colaboradores:
    - DocumentIndex (snapshot)
    - EmbeddingGateway (embedding de la query)
    - LLMReranker (etapa 2)

Notas:
    - Coseno en Python puro (sin numpy): índices chicos, un solo proceso.
    - sorted(..., reverse=True) es estable: empates conservan el orden del índice.
===============================================================================
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from ..crosscutting.exceptions import (
    ConfigurationError,
    EmbeddingDimensionMismatchError,
    InvalidQueryError,
)
from ..crosscutting.logger import logger
from ..domain.entities import SearchResult
from ..domain.services import EmbeddingGateway
from ..domain.value_objects import SearchConfig
from .rag_index import DocumentIndex
from .reranker import LLMReranker


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Similitud coseno en [-1, 1].

    - 0.0 si alguno de los vectores tiene norma 0.
    - Dimensiones distintas: EmbeddingDimensionMismatchError.
    """
    if len(a) != len(b):
        raise EmbeddingDimensionMismatchError(
            f"Cannot compare vectors of dimension {len(a)} and {len(b)}"
        )
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    value = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # redondeo de punto flotante
    return max(-1.0, min(1.0, value))


class RetrievalEngine:
    def __init__(
        self,
        index: DocumentIndex,
        embeddings: EmbeddingGateway,
        reranker: Optional[LLMReranker] = None,
    ):
        self._index = index
        self._embeddings = embeddings
        self._reranker = reranker

    @property
    def supports_reranking(self) -> bool:
        return self._reranker is not None

    async def search(
        self, query: str, config: Optional[SearchConfig] = None
    ) -> list[SearchResult]:
        config = config or SearchConfig()
        if not query.strip():
            raise InvalidQueryError("Search query must not be empty")
        if config.enable_reranking and self._reranker is None:
            raise ConfigurationError("Reranking requested but no reranker is configured")

        snapshot = self._index.snapshot()
        if snapshot.is_empty:
            return []

        query_vector = await self._embeddings.embed(query)
        if len(query_vector) != snapshot.dimension:
            raise EmbeddingDimensionMismatchError(
                f"Query embedding dimension {len(query_vector)} does not match "
                f"index dimension {snapshot.dimension}"
            )

        titles = {d.id: d.title for d in snapshot.documents}
        scored = [
            SearchResult(
                chunk=emb,
                similarity=cosine_similarity(query_vector, emb.embedding),
                document_title=titles.get(emb.document_id, "Unknown"),
            )
            for emb in snapshot.embeddings
        ]
        candidates = sorted(
            (r for r in scored if r.similarity >= config.min_similarity),
            key=lambda r: r.similarity,
            reverse=True,
        )[: config.candidate_count]

        if not config.enable_reranking or not candidates:
            logger.info(
                "Search completed",
                extra={
                    "indexed_chunks": len(scored),
                    "result_count": len(candidates),
                    "reranked": False,
                },
            )
            return candidates

        return await self._rerank(query, candidates, config)

    async def _rerank(
        self, query: str, candidates: list[SearchResult], config: SearchConfig
    ) -> list[SearchResult]:
        if self._reranker is None:
            raise ConfigurationError("Reranking requested but no reranker is configured")
        reranked = await self._reranker.rerank(query, candidates)
        kept = [r for r in reranked if (r.rerank_score or 0.0) >= config.min_rerank_score]

        if config.use_hybrid_scoring:

            def _key(r: SearchResult) -> float:
                return (
                    r.similarity * config.similarity_weight
                    + (r.rerank_score or 0.0) * config.rerank_weight
                )

        else:

            def _key(r: SearchResult) -> float:
                return r.rerank_score or 0.0

        results = sorted(kept, key=_key, reverse=True)[: config.top_k]
        logger.info(
            "Search completed",
            extra={
                "candidate_count": len(candidates),
                "result_count": len(results),
                "reranked": True,
                "hybrid": config.use_hybrid_scoring,
            },
        )
        return results
