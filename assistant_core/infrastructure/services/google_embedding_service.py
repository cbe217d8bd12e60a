"""
Name: Google Embedding Gateway

Responsibilities:
  - Implement EmbeddingGateway for Google text-embedding-004 (768 dims)
  - Batch documents respecting the API limit
  - Differentiate task_type for documents vs queries
  - Retry transient errors with exponential backoff + jitter
  - Translate provider failures into the GatewayError taxonomy

Collaborators:
  - domain.services.EmbeddingGateway: interface implementation
  - google.genai: Google Gen AI SDK (async surface: client.aio)
  - retry: resilience helper for transient errors

Constraints:
  - Batch limit of 10 texts (Google API constraint)
  - Retries on 429, 5xx, timeouts
"""

from __future__ import annotations

import os
from typing import Callable, Iterator, Sequence

from google import genai

from ...crosscutting.exceptions import (
    AuthError,
    ConfigurationError,
    GatewayError,
    GatewayUnavailable,
    ProtocolError,
    RateLimited,
    ServerUnavailable,
)
from ...crosscutting.logger import logger
from .retry import create_retry_decorator, get_http_status_code, is_transient_error


def _batched(items: Sequence[str], batch_size: int) -> Iterator[list[str]]:
    """R: Yield items in fixed-size batches (preserves ordering)."""
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")
    for i in range(0, len(items), batch_size):
        yield list(items[i : i + batch_size])


def _to_gateway_error(exc: Exception) -> GatewayError:
    """R: SDK exception -> GatewayError (status code primero, transporte después)."""
    status = get_http_status_code(exc)
    if status in (401, 403):
        return AuthError(
            "Embedding provider rejected the API key. Check GOOGLE_API_KEY.",
            original_error=exc,
            status_code=status,
        )
    if status == 429:
        return RateLimited(original_error=exc, status_code=status)
    if status is not None and status >= 500:
        return ServerUnavailable(
            "Embedding provider is temporarily unavailable. Please try again later.",
            original_error=exc,
            status_code=status,
        )
    if status is None and is_transient_error(exc):
        return GatewayUnavailable(original_error=exc)
    return GatewayError(
        "Failed to call embedding provider", original_error=exc, status_code=status
    )


class GoogleEmbeddingGateway:
    """R: Google implementation of EmbeddingGateway."""

    MODEL_ID = "text-embedding-004"
    EXPECTED_DIMENSIONS = 768
    BATCH_LIMIT = 10

    TASK_DOCUMENT = "retrieval_document"
    TASK_QUERY = "retrieval_query"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: genai.Client | None = None,
        model_id: str | None = None,
        batch_limit: int | None = None,
        expected_dimensions: int | None = EXPECTED_DIMENSIONS,
        retry_decorator: Callable | None = None,
    ):
        """
        R: Initialize the gateway.

        Args:
            api_key: Google API key (preferred: inject via container/config)
            client: Optional pre-built genai.Client (useful for tests)
            model_id: Override model id (default: text-embedding-004)
            batch_limit: Override API batch limit (default: 10)
            expected_dimensions: Validate vector length (None to skip)
            retry_decorator: Optional tenacity retry decorator

        Raises:
            ConfigurationError: If no API key and no client are provided
        """
        resolved_key = (api_key or os.getenv("GOOGLE_API_KEY") or "").strip()
        if not resolved_key and client is None:
            logger.error("GoogleEmbeddingGateway: GOOGLE_API_KEY not configured")
            raise ConfigurationError("GOOGLE_API_KEY not configured")

        self._model_id = (model_id or self.MODEL_ID).strip()
        self._batch_limit = batch_limit or self.BATCH_LIMIT
        self._expected_dimensions = expected_dimensions
        self._client = client or genai.Client(api_key=resolved_key)

        decorator = retry_decorator or create_retry_decorator()
        self._embed_content = decorator(self._client.aio.models.embed_content)

        logger.info(
            "GoogleEmbeddingGateway initialized",
            extra={
                "model_id": self._model_id,
                "batch_limit": self._batch_limit,
                "expected_dimensions": self._expected_dimensions,
            },
        )

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """R: Embeddings para ingesta (task_type=retrieval_document)."""
        if not texts:
            return []

        results: list[list[float]] = []
        batch_count = 0
        for batch in _batched(texts, self._batch_limit):
            results.extend(await self._embed(contents=batch, task_type=self.TASK_DOCUMENT))
            batch_count += 1

        logger.info(
            "GoogleEmbeddingGateway: embedded texts",
            extra={
                "model_id": self._model_id,
                "text_count": len(texts),
                "batch_count": batch_count,
            },
        )
        return results

    async def embed(self, text: str) -> list[float]:
        """R: Embedding de una query (task_type=retrieval_query)."""
        vectors = await self._embed(contents=[text], task_type=self.TASK_QUERY)
        return vectors[0]

    async def _embed(self, *, contents: Sequence[str], task_type: str) -> list[list[float]]:
        try:
            resp = await self._embed_content(
                model=self._model_id,
                contents=list(contents),
                config={"task_type": task_type},
            )
        except GatewayError:
            raise
        except Exception as exc:
            logger.error(
                "GoogleEmbeddingGateway: embed_content failed",
                exc_info=True,
                extra={
                    "model_id": self._model_id,
                    "task_type": task_type,
                    "batch_size": len(contents),
                    "error_type": type(exc).__name__,
                },
            )
            raise _to_gateway_error(exc) from exc

        embeddings = getattr(resp, "embeddings", None) or []
        if len(embeddings) != len(contents):
            raise ProtocolError(
                f"Embedding response size mismatch: expected {len(contents)}, "
                f"got {len(embeddings)}"
            )

        vectors: list[list[float]] = []
        for idx, embedding in enumerate(embeddings):
            values = getattr(embedding, "values", None)
            if not values:
                raise ProtocolError(f"Empty embedding response at index {idx}")
            vector = [float(v) for v in values]
            if (
                self._expected_dimensions is not None
                and len(vector) != self._expected_dimensions
            ):
                raise ProtocolError(
                    "Unexpected embedding dimensionality: "
                    f"expected {self._expected_dimensions}, got {len(vector)}"
                )
            vectors.append(vector)

        return vectors

    @property
    def model_id(self) -> str:
        return self._model_id
