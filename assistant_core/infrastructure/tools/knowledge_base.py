"""
Name: Knowledge Base Search Tool

Responsibilities:
  - Expose the retrieval engine to the model as a callable tool
    ("search_knowledge_base"), so it can run follow-up searches mid-turn
  - Parse the string-coerced arguments (query, top_k) and format the hits

Collaborators:
  - application.retrieval.RetrievalEngine
  - infrastructure.tools.registry.ToolRegistry (registration)
"""

from __future__ import annotations

from typing import Final, Mapping

from ...application.retrieval import RetrievalEngine
from ...domain.entities import ToolDefinition
from ...domain.value_objects import SearchConfig
from .registry import ToolRegistry

TOOL_NAME: Final[str] = "search_knowledge_base"
_MAX_TOP_K: Final[int] = 10

KNOWLEDGE_BASE_TOOL: Final[ToolDefinition] = ToolDefinition(
    name=TOOL_NAME,
    description=(
        "Search the user's indexed documents and return the most relevant "
        "passages with their titles and similarity scores."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "What to look for."},
            "top_k": {
                "type": "integer",
                "description": f"Number of passages to return (1-{_MAX_TOP_K}).",
            },
        },
        "required": ["query"],
    },
)


def _parse_top_k(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(float(raw))
    except ValueError as exc:
        raise ValueError(f"top_k must be a number, got {raw!r}") from exc
    return max(1, min(_MAX_TOP_K, value))


def register_knowledge_base_tool(
    registry: ToolRegistry,
    retrieval: RetrievalEngine,
    *,
    base_config: SearchConfig | None = None,
) -> None:
    config = base_config or SearchConfig()

    async def _handler(arguments: Mapping[str, str]) -> str:
        top_k = _parse_top_k(arguments.get("top_k"), config.top_k)
        results = await retrieval.search(
            arguments["query"],
            SearchConfig(
                top_k=top_k,
                min_similarity=config.min_similarity,
                enable_reranking=False,
            ),
        )
        if not results:
            return "No matching passages found."
        return "\n\n".join(
            f"[{i}] {r.document_title} (chunk {r.chunk.chunk_index + 1}, "
            f"similarity {r.similarity:.3f})\n{r.chunk.content}"
            for i, r in enumerate(results, start=1)
        )

    registry.register(KNOWLEDGE_BASE_TOOL, _handler)
