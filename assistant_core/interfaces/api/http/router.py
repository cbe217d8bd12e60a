"""
===============================================================================
TARJETA CRC — router.py (Router raíz / Composición)
===============================================================================

Responsabilidades:
  - Definir el APIRouter raíz que se incluye en FastAPI (app.include_router).
  - Componer routers por feature (chat/documents).

Notas:
  - Este router se incluye desde api/main.py con prefix="/v1".
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter

from .routers.chat import router as chat_router
from .routers.documents import router as documents_router


def build_router() -> APIRouter:
    """Construye el router raíz v1 (sin efectos colaterales al importar)."""
    api_router = APIRouter()
    api_router.include_router(chat_router)
    api_router.include_router(documents_router)
    return api_router


router = build_router()

__all__ = ["router", "build_router"]
