"""Core de contexto para un asistente conversacional (RAG, compresión, tools)."""
