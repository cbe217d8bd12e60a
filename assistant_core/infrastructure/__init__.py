"""Adaptadores de infraestructura (LLM, embeddings, storage, tools)."""
