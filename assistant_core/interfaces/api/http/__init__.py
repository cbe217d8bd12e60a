"""Capa HTTP (FastAPI): routers, schemas y dependencias."""
