"""
===============================================================================
TARJETA CRC — application/message_orchestrator.py
===============================================================================

Clase:
    MessageOrchestrator

Responsabilidades:
    - Ejecutar un turno completo del asistente como stream de StreamDelta:
        1) leer historial
        2) comprimir historial (best-effort)
        3) retrieval + piso de calidad + ensamblado de contexto
        4) system prompt = base [+ contexto + instrucciones de cita]
        5) con tools: ToolLoopOrchestrator / sin tools: LLMGateway.stream
        6) persistir user + assistant SOLO si el turno terminó bien
    - Operaciones de la base de conocimiento con persistencia del snapshot.

Colaboradores:
    - DocumentIndex, RetrievalEngine, ContextBuilder
    - HistoryCompressor, ToolLoopOrchestrator, LLMGateway
    - ConversationStore / IndexStore (domain/repositories.py)

Errores:
    - Query vacía: InvalidQueryError antes de cualquier llamada (sincrónico).
    - GatewayError durante la generación: delta "error" con mensaje accionable,
      nada se persiste (re-invocar con el mismo texto es seguro).
    - Fallas de compresión y de retrieval degradan con warning.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Final, Mapping, Optional, Sequence
from uuid import uuid4

from ..context import clear_context, set_turn_context
from ..crosscutting.exceptions import (
    EmbeddingDimensionMismatchError,
    GatewayError,
    InvalidQueryError,
)
from ..crosscutting.logger import logger
from ..domain.entities import (
    ConversationMessage,
    Document,
    LLMMessage,
    MessageRole,
    SearchResult,
    TokenUsage,
    ToolDefinition,
)
from ..domain.repositories import ConversationStore, IndexStore
from ..domain.services import LLMGateway
from ..domain.value_objects import DeltaType, SearchConfig, StreamDelta
from .context_builder import CITATION_INSTRUCTIONS, ContextBuilder
from .history_compressor import HistoryCompressor
from .rag_index import DocumentIndex
from .retrieval import RetrievalEngine
from .tool_loop import ToolLoopOrchestrator, ToolLoopOutcome

DEFAULT_SYSTEM_PROMPT: Final[str] = "You are Claude, a helpful AI assistant."
DEFAULT_MAX_TOKENS: Final[int] = 8192


@dataclass(frozen=True)
class TurnOptions:
    """Opciones por turno; None significa "usar el default del orquestador"."""

    use_rag: bool = True
    use_tools: bool = True
    compress_history: bool = True
    search: Optional[SearchConfig] = None
    min_context_score: Optional[float] = None
    max_tool_iterations: Optional[int] = None


def to_llm_messages(messages: Sequence[ConversationMessage]) -> list[LLMMessage]:
    """
    Historial -> mensajes del proveedor.

    - Resúmenes y mensajes system viajan con role "user".
    - Burbujas de error y mensajes vacíos no se envían.
    """
    out: list[LLMMessage] = []
    for message in messages:
        if message.is_error or not message.content.strip():
            continue
        if message.role == MessageRole.ASSISTANT:
            out.append(LLMMessage.assistant_text(message.content))
        else:
            out.append(LLMMessage.user_text(message.content))
    return out


class MessageOrchestrator:
    def __init__(
        self,
        *,
        llm: LLMGateway,
        index: DocumentIndex,
        retrieval: RetrievalEngine,
        context_builder: ContextBuilder,
        compressor: HistoryCompressor,
        tool_loop: ToolLoopOrchestrator,
        conversations: ConversationStore,
        index_store: Optional[IndexStore] = None,
        tools: Sequence[ToolDefinition] = (),
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        default_search: Optional[SearchConfig] = None,
        default_options: Optional[TurnOptions] = None,
        min_context_score: float = 0.0,
        temperature: float = 1.0,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self._llm = llm
        self._index = index
        self._retrieval = retrieval
        self._context_builder = context_builder
        self._compressor = compressor
        self._tool_loop = tool_loop
        self._conversations = conversations
        self._index_store = index_store
        self._tools = tuple(tools)
        self._system_prompt = system_prompt
        self._default_search = default_search or SearchConfig()
        self._default_options = default_options or TurnOptions()
        self._min_context_score = min_context_score
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def default_options(self) -> TurnOptions:
        return self._default_options

    # =========================================================================
    # Turn
    # =========================================================================

    def send_message(
        self, user_text: str, options: Optional[TurnOptions] = None
    ) -> AsyncIterator[StreamDelta]:
        """Valida y devuelve el stream del turno (se ejecuta al iterarlo)."""
        if not user_text or not user_text.strip():
            raise InvalidQueryError("Message must not be empty")
        return self._run_turn(user_text, options or self._default_options)

    async def _run_turn(
        self, user_text: str, options: TurnOptions
    ) -> AsyncIterator[StreamDelta]:
        set_turn_context(turn_id=str(uuid4()), operation="send_message")
        try:
            history = await self._conversations.read_messages()
            if options.compress_history:
                history = await self._compressor.compress(history)

            user_message = ConversationMessage(role=MessageRole.USER, content=user_text)
            system_prompt = self._system_prompt

            if options.use_rag:
                results = await self._retrieve(user_text, options)
                if results:
                    yield StreamDelta.sources_delta(tuple(results))
                    context = self._context_builder.build(results, self._index.snapshot())
                    system_prompt = f"{self._system_prompt}\n\n{context}{CITATION_INSTRUCTIONS}"

            messages = to_llm_messages(history + [user_message])
            text = ""
            usage = TokenUsage()
            completion: dict = {}

            try:
                if self._tools and options.use_tools:
                    async for delta in self._tool_loop.run(
                        messages,
                        self._tools,
                        system_prompt=system_prompt,
                        max_iterations=options.max_tool_iterations,
                    ):
                        if delta.type == DeltaType.COMPLETE:
                            outcome: ToolLoopOutcome = delta.metadata["outcome"]
                            text, usage = outcome.text, outcome.usage
                            completion = {
                                "iterations": outcome.iterations,
                                "reached_iteration_limit": outcome.reached_iteration_limit,
                            }
                            continue
                        yield delta
                else:
                    parts: list[str] = []
                    async for delta in self._llm.stream(
                        messages,
                        system_prompt=system_prompt,
                        temperature=self._temperature,
                        max_tokens=self._max_tokens,
                    ):
                        if delta.type == DeltaType.TEXT:
                            parts.append(delta.content)
                        elif delta.type == DeltaType.USAGE_UPDATE and delta.usage:
                            usage = delta.usage
                        yield delta
                    text = "".join(parts)
            except GatewayError as exc:
                logger.warning(
                    "Turn failed on gateway error",
                    extra={"error_code": exc.error_code, "error_id": exc.error_id},
                )
                yield StreamDelta.error(exc.user_message, code=exc.error_code)
                return

            assistant_message = ConversationMessage(
                role=MessageRole.ASSISTANT,
                content=text,
                input_tokens=usage.input_tokens or None,
                output_tokens=usage.output_tokens or None,
            )
            await self._conversations.write_messages(
                history + [user_message, assistant_message]
            )
            logger.info(
                "Turn completed",
                extra={
                    "input_tokens": usage.input_tokens,
                    "output_tokens": usage.output_tokens,
                    "history_size": len(history) + 2,
                },
            )
            yield StreamDelta.complete(
                message=assistant_message, usage=usage, **completion
            )
        finally:
            clear_context()

    async def _retrieve(self, query: str, options: TurnOptions) -> list[SearchResult]:
        config = options.search or self._default_search
        try:
            results = await self._retrieval.search(query, config)
        except (GatewayError, EmbeddingDimensionMismatchError) as exc:
            logger.warning(
                "Retrieval failed, answering without context",
                extra={"error_code": exc.error_code, "error": exc.message},
            )
            return []

        floor = (
            self._min_context_score
            if options.min_context_score is None
            else options.min_context_score
        )
        if results and max(r.best_score for r in results) < floor:
            logger.info(
                "Retrieved context below quality floor",
                extra={"result_count": len(results), "min_context_score": floor},
            )
            return []
        return results

    # =========================================================================
    # History
    # =========================================================================

    async def history(self) -> list[ConversationMessage]:
        return await self._conversations.read_messages()

    async def compress_history(self) -> bool:
        """Compresión manual; True si el historial cambió."""
        history = await self._conversations.read_messages()
        compressed = await self._compressor.compress(history)
        if compressed == history:
            return False
        await self._conversations.write_messages(compressed)
        return True

    async def clear_history(self) -> None:
        await self._conversations.write_messages([])

    # =========================================================================
    # Knowledge base
    # =========================================================================

    async def index_document(
        self, title: str, content: str, metadata: Optional[Mapping[str, str]] = None
    ) -> Document:
        document = await self._index.add_document(title, content, metadata)
        await self._persist_index()
        return document

    async def remove_document(self, document_id: str) -> bool:
        removed = await self._index.remove_document(document_id)
        if removed:
            await self._persist_index()
        return removed

    def list_documents(self) -> list[Document]:
        return self._index.list_documents()

    async def clear_index(self) -> None:
        await self._index.clear()
        await self._persist_index()

    async def load_index(self) -> bool:
        """Restaura el snapshot persistido; False si no hay nada guardado."""
        if self._index_store is None:
            return False
        stored = await self._index_store.read_index()
        if stored is None:
            return False
        await self._index.restore(stored)
        return True

    async def _persist_index(self) -> None:
        if self._index_store is not None:
            await self._index_store.write_index(self._index.snapshot())
