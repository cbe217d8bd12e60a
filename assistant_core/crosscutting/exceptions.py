"""
===============================================================================
MÓDULO: Excepciones tipadas del core del asistente
===============================================================================

Objetivo
--------
Errores internos coherentes, con:
- error_code estable (para la capa HTTP/SSE)
- error_id para correlación con logs
- message "humana" y accionable (sin filtrar secretos)

Taxonomía
---------
  CoreError
  ├── InputError            entrada inválida, se rechaza antes de llamar gateways
  ├── GatewayError          fallas de LLM / embeddings (retryable indica transitoria)
  ├── InvariantViolation    el índice RAG quedaría inconsistente
  ├── ConfigurationError
  └── PersistenceError

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  CoreError + subclases

Responsabilidades:
  - Estandarizar errores que luego se mapean a HTTP o a deltas de error
  - Generar error_id para rastreo

Colaboradores:
  - application.message_orchestrator (GatewayError -> delta "error")
  - interfaces.api.http (InputError -> 4xx)
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True)
class ErrorResponse:
    """Estructura mínima para responder errores de forma consistente."""

    error_code: str
    message: str
    error_id: str

    def to_dict(self) -> dict:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "error_id": self.error_id,
        }


class CoreError(Exception):
    """R: Base de todos los errores del core (error_code + error_id + message)."""

    error_code: str = "CORE_ERROR"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.error_code, message=self.message, error_id=self.error_id
        )


# -----------------------------------------------------------------------------
# Input errors
# -----------------------------------------------------------------------------


class InputError(CoreError):
    """Entrada inválida del llamador."""

    error_code: str = "INPUT_ERROR"


class TooLargeError(InputError):
    """Texto por encima del límite aceptado por el chunker."""

    error_code: str = "TEXT_TOO_LARGE"


class TooManyChunksError(InputError):
    """El chunking superó el techo de chunks (entrada degenerada)."""

    error_code: str = "TOO_MANY_CHUNKS"


class InvalidQueryError(InputError):
    error_code: str = "INVALID_QUERY"


class InvalidDocumentError(InputError):
    error_code: str = "INVALID_DOCUMENT"


# -----------------------------------------------------------------------------
# Gateway errors
# -----------------------------------------------------------------------------


class GatewayError(CoreError):
    """
    Falla de un proveedor externo (LLM o embeddings).

    `retryable` marca fallas transitorias; el core no reintenta, los adapters sí.
    """

    error_code: str = "GATEWAY_ERROR"
    retryable: bool = False
    default_user_message: str = "The AI provider returned an error. Please try again."

    def __init__(
        self,
        message: str = "",
        error_id: str | None = None,
        original_error: Exception | None = None,
        *,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(
            message or self.default_user_message,
            error_id=error_id,
            original_error=original_error,
        )

    @property
    def user_message(self) -> str:
        return self.message


class GatewayUnavailable(GatewayError):
    error_code: str = "GATEWAY_UNAVAILABLE"
    retryable: bool = True
    default_user_message: str = (
        "The AI provider could not be reached. Check your connection and try again."
    )


class ServerUnavailable(GatewayUnavailable):
    error_code: str = "SERVER_UNAVAILABLE"
    default_user_message: str = (
        "Claude API is temporarily unavailable. Please try again later."
    )


class AuthError(GatewayError):
    error_code: str = "AUTH_ERROR"
    default_user_message: str = (
        "Authentication failed. Please check your API key in Settings."
    )


class RateLimited(GatewayError):
    error_code: str = "RATE_LIMITED"
    retryable: bool = True
    default_user_message: str = "Rate limit exceeded. Please try again later."


class ProtocolError(GatewayError):
    """Respuesta o evento de stream malformado."""

    error_code: str = "PROTOCOL_ERROR"


# -----------------------------------------------------------------------------
# Invariants / config / persistence
# -----------------------------------------------------------------------------


class InvariantViolation(CoreError):
    error_code: str = "INVARIANT_VIOLATION"


class EmbeddingDimensionMismatchError(InvariantViolation):
    error_code: str = "EMBEDDING_DIMENSION_MISMATCH"


class OrphanedEmbeddingError(InvariantViolation):
    error_code: str = "ORPHANED_EMBEDDING"


class ConfigurationError(CoreError):
    error_code: str = "CONFIGURATION_ERROR"


class PersistenceError(CoreError):
    error_code: str = "PERSISTENCE_ERROR"
