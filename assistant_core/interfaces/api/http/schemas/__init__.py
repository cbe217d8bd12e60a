"""Schemas HTTP (DTOs de request/response) por feature."""
