"""
Name: JSON File Store (IndexStore + ConversationStore)

Responsibilities:
  - Persist the RAG index snapshot and the conversation history as JSON files
  - Load them back all-or-nothing (a corrupt file raises, never half-loads)
  - Write atomically: temp file in the same directory + os.replace

Collaborators:
  - pydantic.TypeAdapter: (de)serialization of the domain dataclasses
  - domain.repositories (IndexStore, ConversationStore)

Notes:
  - File IO runs in a worker thread (asyncio.to_thread) to keep the loop free
  - One writer per file is assumed (the orchestrator serializes mutations)
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Final, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from ...crosscutting.exceptions import PersistenceError
from ...crosscutting.logger import logger
from ...domain.entities import ConversationMessage, RagIndex

INDEX_FILENAME: Final[str] = "rag_index.json"
HISTORY_FILENAME: Final[str] = "conversation.json"

_INDEX_ADAPTER: Final = TypeAdapter(RagIndex)
_HISTORY_ADAPTER: Final = TypeAdapter(list[ConversationMessage])


def _atomic_write(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _read_bytes(path: Path) -> Optional[bytes]:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


class JsonFileStore:
    def __init__(self, directory: str | os.PathLike[str]):
        self._dir = Path(directory)
        self._index_path = self._dir / INDEX_FILENAME
        self._history_path = self._dir / HISTORY_FILENAME

    # ------------------------------------------------------------------
    # IndexStore
    # ------------------------------------------------------------------

    async def read_index(self) -> Optional[RagIndex]:
        raw = await self._read(self._index_path)
        if raw is None:
            return None
        try:
            return _INDEX_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            logger.error(
                "Stored index is corrupt",
                extra={"path": str(self._index_path), "error_count": exc.error_count()},
            )
            raise PersistenceError(
                f"Stored index at {self._index_path} is corrupt", original_error=exc
            ) from exc

    async def write_index(self, index: RagIndex) -> None:
        await self._write(self._index_path, _INDEX_ADAPTER.dump_json(index))
        logger.info(
            "Index saved",
            extra={
                "path": str(self._index_path),
                "document_count": len(index.documents),
                "embedding_count": len(index.embeddings),
            },
        )

    # ------------------------------------------------------------------
    # ConversationStore
    # ------------------------------------------------------------------

    async def read_messages(self) -> list[ConversationMessage]:
        raw = await self._read(self._history_path)
        if raw is None:
            return []
        try:
            return _HISTORY_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            raise PersistenceError(
                f"Stored conversation at {self._history_path} is corrupt",
                original_error=exc,
            ) from exc

    async def write_messages(self, messages: Sequence[ConversationMessage]) -> None:
        await self._write(self._history_path, _HISTORY_ADAPTER.dump_json(list(messages)))

    # ------------------------------------------------------------------

    async def _read(self, path: Path) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(_read_bytes, path)
        except OSError as exc:
            raise PersistenceError(f"Could not read {path}", original_error=exc) from exc

    async def _write(self, path: Path, payload: bytes) -> None:
        try:
            await asyncio.to_thread(_atomic_write, path, payload)
        except OSError as exc:
            logger.error("Persist failed", exc_info=True, extra={"path": str(path)})
            raise PersistenceError(f"Could not write {path}", original_error=exc) from exc
