"""
===============================================================================
TARJETA CRC — dependencies.py (Dependencias comunes de la capa HTTP)
===============================================================================

Responsabilidades:
  - Exponer el MessageOrchestrator a los routers vía Depends.
  - Punto único de override en tests (app.dependency_overrides).

Colaboradores:
  - container.get_message_orchestrator
===============================================================================
"""

from __future__ import annotations

from ....application.message_orchestrator import MessageOrchestrator
from ....container import get_message_orchestrator


def get_orchestrator() -> MessageOrchestrator:
    return get_message_orchestrator()
