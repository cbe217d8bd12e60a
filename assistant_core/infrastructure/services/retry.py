"""assistant_core.infrastructure.services.retry

Name: Retry Helper with Exponential Backoff + Jitter

Qué es
------
Utilidad de **resiliencia** para los adapters de proveedores (Anthropic,
Google). El core nunca reintenta: los reintentos viven acá, en el borde.

  - Clasificación de errores: **transient** (reintentar) vs **permanent** (fail-fast)
  - Decorator de `tenacity` con exponential backoff + jitter (sync y async)
  - Logging estructurado de cada intento

CRC (Component Card)
--------------------
Component: retry helper
Responsibilities:
  - Decidir qué errores son reintentables
  - Proveer un decorator estándar (tenacity) con backoff+jitter
Collaborators:
  - tenacity (motor de retry; detecta corutinas y reintenta con asyncio.sleep)
  - crosscutting.config.get_settings (attempts/delays)
  - crosscutting.exceptions.GatewayError (flag `retryable`)
Constraints:
  - Reintentar SOLO fallas transitorias (429, 5xx, timeouts, conexión)
  - No reintentar 400/401/403/404 ni errores de protocolo
"""

from __future__ import annotations

from typing import Callable, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ...crosscutting.config import get_settings
from ...crosscutting.exceptions import GatewayError
from ...crosscutting.logger import logger

T = TypeVar("T")


# ---------------------------------------------------------------------------
# HTTP code policies
# ---------------------------------------------------------------------------

TRANSIENT_HTTP_CODES: frozenset[int] = frozenset(
    {
        408,  # Request Timeout
        429,  # Too Many Requests
        500,
        502,
        503,
        504,
        529,  # Anthropic: overloaded
    }
)

PERMANENT_HTTP_CODES: frozenset[int] = frozenset({400, 401, 403, 404, 413, 422})


def get_http_status_code(exception: BaseException) -> int | None:
    """R: Extrae un status code HTTP desde distintos tipos de exception.

    Soporta:
      - GatewayError (atributo `status_code`)
      - google.genai.errors.APIError (atributo `code`)
      - httpx.HTTPStatusError (exception.response.status_code)
    """
    status_code = getattr(exception, "status_code", None)
    if isinstance(status_code, int):
        return status_code

    # R: `code` puede ser un status gRPC (< 100); solo aceptamos códigos HTTP.
    code = getattr(exception, "code", None)
    if isinstance(code, int) and code >= 100:
        return code

    resp = getattr(exception, "response", None)
    resp_status = getattr(resp, "status_code", None)
    if isinstance(resp_status, int):
        return resp_status

    return None


def is_transient_error(exception: BaseException) -> bool:
    """R: Decide si un error es transitorio (reintentar) o permanente (fail-fast).

    Reglas (en orden):
      1) GatewayError: manda su flag `retryable`.
      2) Status code HTTP conocido.
      3) Fallas de transporte httpx / timeouts / conexión.
      4) Default: no reintentar.
    """
    if isinstance(exception, GatewayError):
        return exception.retryable

    status_code = get_http_status_code(exception)
    if status_code is not None:
        if status_code in PERMANENT_HTTP_CODES:
            return False
        if status_code in TRANSIENT_HTTP_CODES or status_code >= 500:
            return True

    if isinstance(exception, (httpx.TimeoutException, httpx.TransportError)):
        return True

    if isinstance(exception, (TimeoutError, ConnectionError)):
        return True

    return False


def _log_retry(retry_state: RetryCallState) -> None:
    """R: Loguea cada intento antes de dormir (before_sleep)."""
    fn_name = getattr(retry_state.fn, "__name__", "unknown")
    wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None

    logger.warning(
        "Retrying provider call",
        extra={
            "function": fn_name,
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(float(wait_time), 2),
            "error": str(exc) if exc else None,
            "error_type": type(exc).__name__ if exc else None,
        },
    )


def create_retry_decorator(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """R: Crea un decorator `tenacity` con exponential backoff + jitter.

    - stop: `stop_after_attempt(max_attempts)`
    - wait: `wait_exponential_jitter(initial=base_delay, max=max_delay)`
    - retry: solo si `is_transient_error(exception)`
    - reraise: True (propaga la última excepción, no RetryError)
    """
    if max_attempts is None or base_delay is None or max_delay is None:
        settings = get_settings()
        max_attempts = settings.retry_max_attempts if max_attempts is None else max_attempts
        base_delay = (
            settings.retry_base_delay_seconds if base_delay is None else base_delay
        )
        max_delay = settings.retry_max_delay_seconds if max_delay is None else max_delay

    if max_attempts <= 0:
        raise ValueError("max_attempts must be > 0")
    if base_delay < 0:
        raise ValueError("base_delay must be >= 0")
    if max_delay <= 0:
        raise ValueError("max_delay must be > 0")

    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential_jitter(
            initial=float(base_delay), max=float(max_delay), jitter=float(base_delay)
        ),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry,
        reraise=True,
    )
