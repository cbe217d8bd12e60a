"""Aplicación FastAPI (entrypoint, exception handlers)."""
