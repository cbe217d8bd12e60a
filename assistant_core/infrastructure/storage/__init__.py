"""Stores de índice e historial (JSON en disco / memoria)."""
