"""
Name: Fake Embedding Gateway (Deterministic Test Double)

Qué es
------
Implementación **determinista** de `EmbeddingGateway` para tests/CI y para
correr el asistente sin credenciales (FAKE_EMBEDDINGS=1).

A diferencia de un hash puro del texto completo, usa *feature hashing* de
palabras: textos que comparten vocabulario quedan cerca en coseno, lo que
permite ejercitar el retrieval de punta a punta sin red.

CRC (Class-Responsibility-Collaboration)
----------------------------------------
Class: FakeEmbeddingGateway
Responsibilities:
  - Generar embeddings deterministas (query y batch)
  - Mantener dimensionalidad fija
Collaborators:
  - domain.services.EmbeddingGateway (contrato)
Constraints:
  - Sin IO / sin red
  - Misma entrada -> mismo vector
"""

from __future__ import annotations

import hashlib
import math
import re
from typing import Final, List, Sequence

from ...crosscutting.exceptions import InputError
from ...crosscutting.logger import logger

DEFAULT_EMBEDDING_DIMENSION: Final[int] = 256

_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"\w+", re.UNICODE)


def _bucket_and_sign(token: str, dimension: int) -> tuple[int, float]:
    """R: SHA-256 estable -> (bucket, signo)."""
    digest = hashlib.sha256(token.encode("utf-8")).digest()
    bucket = int.from_bytes(digest[:8], "big") % dimension
    sign = 1.0 if digest[8] & 1 else -1.0
    return bucket, sign


def _build_embedding(text: str, dimension: int) -> List[float]:
    vector = [0.0] * dimension
    for token in _TOKEN_PATTERN.findall(text.lower()):
        bucket, sign = _bucket_and_sign(token, dimension)
        vector[bucket] += sign

    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]


class FakeEmbeddingGateway:
    """R: Deterministic EmbeddingGateway for tests/CI."""

    MODEL_ID = "fake-embedding-v2"

    def __init__(self, *, dimension: int = DEFAULT_EMBEDDING_DIMENSION) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be > 0")
        self._dimension = dimension
        logger.debug(
            "FakeEmbeddingGateway initialized",
            extra={"dimension": self._dimension, "model_id": self.MODEL_ID},
        )

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        for idx, text in enumerate(texts):
            if not (text or "").strip():
                raise InputError(f"Batch text at index {idx} must not be empty")
        return [_build_embedding(text, self._dimension) for text in texts]

    async def embed(self, text: str) -> List[float]:
        if not (text or "").strip():
            raise InputError("Text to embed must not be empty")
        return _build_embedding(text, self._dimension)

    @property
    def model_id(self) -> str:
        return self.MODEL_ID

    @property
    def dimension(self) -> int:
        return self._dimension
