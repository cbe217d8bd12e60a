"""
===============================================================================
MÓDULO: Logger estructurado (JSON) con contexto de turno
===============================================================================

Objetivo
--------
Loguear cada turno del asistente de forma:
- Parseable (JSON, una línea por evento)
- Correlacionable (request_id / turn_id / operation)
- Segura (API keys de Anthropic/Google nunca llegan al log)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  JSONFormatter + setup_logger()

Responsabilidades:
  - Serializar LogRecord como JSON
  - Enriquecer con el contexto del turno (context.py)
  - Redactar claves sensibles y recortar payloads grandes (prompts, chunks)

Colaboradores:
  - assistant_core/context.py (ContextVars)
  - crosscutting/config.py (nivel y formato)
===============================================================================
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

# Atributos propios de LogRecord; todo lo demás se trata como "extra".
_RESERVED_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)


class _Redactor:
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      _Redactor

    Responsabilidades:
      - Ocultar valores de claves sensibles
      - Recortar strings largos (contenido de documentos, prompts)
      - Devolver siempre algo serializable

    Colaboradores:
      - JSONFormatter
    ----------------------------------------------------------------------------
    """

    SENSITIVE_KEYS = frozenset(
        {
            "password",
            "secret",
            "token",
            "authorization",
            "api_key",
            "apikey",
            "x-api-key",
            "anthropic_api_key",
            "google_api_key",
            "credential",
        }
    )

    # Texto de conversación y de documentos: solo un preview en los logs
    CONVERSATION_TEXT_KEYS = frozenset(
        {"content", "system_prompt", "prompt", "query", "snippet", "summary"}
    )

    def __init__(
        self, max_str: int = 4_000, max_depth: int = 4, max_conversation_text: int = 200
    ):
        self._max_str = max_str
        self._max_depth = max_depth
        self._max_conversation_text = max_conversation_text

    def sanitize(self, value: Any, *, depth: int = 0, key: str | None = None) -> Any:
        if key and key.lower() in self.SENSITIVE_KEYS:
            return "***REDACTED***"

        if depth > self._max_depth:
            return "***TRUNCATED***"

        if isinstance(value, str):
            limit = (
                self._max_conversation_text
                if key and key.lower() in self.CONVERSATION_TEXT_KEYS
                else self._max_str
            )
            if len(value) <= limit:
                return value
            return value[:limit] + f"…(truncated, {len(value)} chars)"

        if isinstance(value, (bytes, bytearray)):
            return f"<bytes {len(value)}B>"

        if isinstance(value, dict):
            return {
                str(k): self.sanitize(v, depth=depth + 1, key=str(k))
                for k, v in value.items()
            }

        if isinstance(value, (list, tuple)):
            return [self.sanitize(v, depth=depth + 1, key=key) for v in value]

        try:
            json.dumps(value)
            return value
        except (TypeError, ValueError):
            return str(value)


class JSONFormatter(logging.Formatter):
    """R: LogRecord -> JSON de una línea, con contexto de turno y stacktrace."""

    def __init__(self):
        super().__init__()
        self._redactor = _Redactor()

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "pid": os.getpid(),
        }

        from ..context import get_context_dict

        payload.update(get_context_dict())

        for k, v in record.__dict__.items():
            if k in _RESERVED_RECORD_ATTRS:
                continue
            payload[k] = self._redactor.sanitize(v, key=k)

        if record.exc_info:
            exc_type = record.exc_info[0].__name__ if record.exc_info[0] else None
            payload["exception"] = {
                "type": exc_type,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(
            payload, ensure_ascii=False, default=str, separators=(",", ":")
        )


def setup_logger(name: str = "assistant-core") -> logging.Logger:
    """
    Crea y configura el logger global.

    - Evita duplicar handlers si el módulo se reimporta
    - Respeta log_level / log_json de Settings cuando la config es válida
    """
    log = logging.getLogger(name)

    level = "INFO"
    use_json = True

    # Settings puede fallar (p.ej. falta ANTHROPIC_API_KEY); el logger no.
    try:
        from .config import get_settings

        s = get_settings()
        level = (s.log_level or "INFO").upper()
        use_json = s.log_json
    except ValueError:
        pass

    log.setLevel(getattr(logging, level, logging.INFO))

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            JSONFormatter()
            if use_json
            else logging.Formatter("%(levelname)s %(message)s")
        )
        log.addHandler(handler)

    return log


logger = setup_logger()
