"""
===============================================================================
TARJETA CRC — assistant_core/context.py (Contexto por turno)
===============================================================================

Responsabilidades:
  - Mantener contexto "turn-scoped" usando ContextVars (async-safe).
  - Correlacionar logs de un mismo turno sin pasar parámetros por todo el stack.
  - Proveer helpers mínimos: set_turn_context(), get_context_dict(), clear_context().

Colaboradores:
  - application.message_orchestrator: setea turn_id al iniciar un turno.
  - interfaces.api.http: setea request_id por request.
  - crosscutting.logger: enriquece logs leyendo get_context_dict().

Restricciones:
  - Solo tipos primitivos (str) para serialización segura.
  - Defaults vacíos ("") para evitar None y simplificar JSON.
===============================================================================
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Final

# =============================================================================
# ContextVars
# =============================================================================

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
turn_id_var: ContextVar[str] = ContextVar("turn_id", default="")
operation_var: ContextVar[str] = ContextVar("operation", default="")

_CTX_REQUEST_ID: Final[str] = "request_id"
_CTX_TURN_ID: Final[str] = "turn_id"
_CTX_OPERATION: Final[str] = "operation"


# =============================================================================
# API pública
# =============================================================================


def set_request_context(*, request_id: str = "") -> None:
    request_id_var.set(request_id or "")


def set_turn_context(*, turn_id: str = "", operation: str = "") -> None:
    """
    Setea el contexto del turno actual.

    Regla:
      - Strings vacíos significan "no disponible".
    """
    turn_id_var.set(turn_id or "")
    operation_var.set(operation or "")


def get_context_dict() -> dict[str, str]:
    """Devuelve el contexto actual como dict, omitiendo claves vacías."""
    ctx: dict[str, str] = {}

    if val := request_id_var.get():
        ctx[_CTX_REQUEST_ID] = val
    if val := turn_id_var.get():
        ctx[_CTX_TURN_ID] = val
    if val := operation_var.get():
        ctx[_CTX_OPERATION] = val

    return ctx


def clear_context() -> None:
    """Limpia el contexto al final del turno/request."""
    request_id_var.set("")
    turn_id_var.set("")
    operation_var.set("")
