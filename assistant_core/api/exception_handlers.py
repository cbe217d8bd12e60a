"""
===============================================================================
TARJETA CRC — api/exception_handlers.py (Manejo Centralizado de Excepciones)
===============================================================================

Responsabilidades:
  - Traducir CoreError y derivadas a respuestas HTTP JSON (ErrorResponse).
  - Centralizar logging de errores con request_id + error_id.
  - Evitar filtrar detalles internos en errores no controlados.

Mapeo:
  TooLargeError / TooManyChunksError -> 413
  InputError                          -> 400
  RateLimited                         -> 429
  GatewayUnavailable                  -> 503
  GatewayError                        -> 502
  InvariantViolation                  -> 409
  CoreError (resto)                   -> 500

Colaboradores:
  - crosscutting.exceptions
  - crosscutting.logger
===============================================================================
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from ..crosscutting.exceptions import (
    CoreError,
    ErrorResponse,
    GatewayError,
    GatewayUnavailable,
    InputError,
    InvariantViolation,
    RateLimited,
    TooLargeError,
    TooManyChunksError,
)
from ..crosscutting.logger import logger

_STATUS_BY_TYPE: tuple[tuple[type[CoreError], int], ...] = (
    (TooLargeError, 413),
    (TooManyChunksError, 413),
    (InputError, 400),
    (RateLimited, 429),
    (GatewayUnavailable, 503),
    (GatewayError, 502),
    (InvariantViolation, 409),
)


def status_for(exc: CoreError) -> int:
    for error_type, status_code in _STATUS_BY_TYPE:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _request_id_from(request: Request) -> str | None:
    return getattr(getattr(request, "state", None), "request_id", None)


async def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
    status_code = status_for(exc)
    request_id = _request_id_from(request)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "Error de servicio",
        extra={
            "error_code": exc.error_code,
            "error_id": exc.error_id,
            "error": exc.message,
            "status_code": status_code,
            "request_id": request_id,
        },
    )
    body = exc.to_response().to_dict()
    body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content=body)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback: log completo, respuesta genérica."""
    request_id = _request_id_from(request)
    logger.error(
        "Excepción no controlada",
        exc_info=exc,
        extra={"request_id": request_id, "error": str(exc)},
    )
    body = ErrorResponse(
        error_code="INTERNAL_ERROR",
        message="Error interno.",
        error_id=request_id or "",
    ).to_dict()
    body["request_id"] = request_id
    return JSONResponse(status_code=500, content=body)


def register_exception_handlers(app) -> None:
    app.add_exception_handler(CoreError, core_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = ["register_exception_handlers", "status_for"]
