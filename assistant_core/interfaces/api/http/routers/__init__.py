"""Routers HTTP por feature (chat, documents)."""
