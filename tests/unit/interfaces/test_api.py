"""
Name: HTTP API Unit Tests

Responsibilities:
  - Test the documents endpoints (list/index/delete, error mapping)
  - Test the chat SSE endpoint and history endpoints
  - Test request id propagation and the health check

Notes:
  - The orchestrator dependency is overridden with offline doubles
  - The lifespan is disabled (no settings / container access)
"""

import json

import pytest
from doubles import KeywordEmbeddingGateway, ScriptedLLMGateway
from fastapi.testclient import TestClient

from assistant_core.api.main import create_app
from assistant_core.application.context_builder import ContextBuilder
from assistant_core.application.history_compressor import HistoryCompressor
from assistant_core.application.message_orchestrator import MessageOrchestrator
from assistant_core.application.rag_index import DocumentIndex
from assistant_core.application.retrieval import RetrievalEngine
from assistant_core.application.tool_loop import ToolLoopOrchestrator
from assistant_core.crosscutting.config import get_settings
from assistant_core.domain.value_objects import SearchConfig
from assistant_core.infrastructure.storage.in_memory import InMemoryStore
from assistant_core.infrastructure.text.chunker import TextChunker
from assistant_core.infrastructure.tools.registry import ToolRegistry
from assistant_core.interfaces.api.http.dependencies import get_orchestrator


def _orchestrator(llm) -> MessageOrchestrator:
    embeddings = KeywordEmbeddingGateway(["python", "rust"])
    index = DocumentIndex(TextChunker(200, 20), embeddings)
    return MessageOrchestrator(
        llm=llm,
        index=index,
        retrieval=RetrievalEngine(index, embeddings),
        context_builder=ContextBuilder(),
        compressor=HistoryCompressor(llm),
        tool_loop=ToolLoopOrchestrator(llm, ToolRegistry()),
        conversations=InMemoryStore(),
        default_search=SearchConfig(min_similarity=0.5),
    )


def _events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = block.split("\n")
        events.append((lines[0][len("event: "):], json.loads(lines[1][len("data: "):])))
    return events


@pytest.fixture
def llm():
    return ScriptedLLMGateway(stream_text=("Hola", " mundo"))


@pytest.fixture
def client(llm):
    app = create_app(with_lifespan=False)
    orchestrator = _orchestrator(llm)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    return TestClient(app)


@pytest.mark.unit
class TestHealthAndRequestId:
    def test_healthz_reports_environment(self, client, monkeypatch):
        monkeypatch.setenv("APP_ENV", "staging")
        get_settings.cache_clear()
        try:
            response = client.get("/healthz")
        finally:
            get_settings.cache_clear()

        assert response.status_code == 200
        assert response.json() == {"ok": True, "env": "staging"}

    def test_routes_mounted(self, client):
        paths = {route.path for route in client.app.routes}

        assert {
            "/healthz",
            "/v1/documents",
            "/v1/documents/{document_id}",
            "/v1/chat/messages",
            "/v1/chat/history",
            "/v1/chat/history/compress",
        } <= paths

    def test_request_id_echoed(self, client):
        response = client.get("/v1/documents", headers={"X-Request-Id": "req-abc"})

        assert response.headers["x-request-id"] == "req-abc"

    def test_request_id_generated(self, client):
        response = client.get("/v1/documents")

        assert len(response.headers["x-request-id"]) == 36


@pytest.mark.unit
class TestDocumentsEndpoints:
    def test_index_list_delete(self, client):
        created = client.post(
            "/v1/documents",
            json={"title": " Guide ", "content": "python rust", "metadata": {"url": "https://g"}},
        )
        assert created.status_code == 201
        document = created.json()
        assert document["title"] == "Guide"
        assert document["preview"] == "python rust"

        listed = client.get("/v1/documents").json()["documents"]
        assert [d["id"] for d in listed] == [document["id"]]

        deleted = client.delete(f"/v1/documents/{document['id']}")
        assert deleted.json() == {"deleted": True}
        assert client.get("/v1/documents").json() == {"documents": []}

    def test_delete_unknown_is_404(self, client):
        assert client.delete("/v1/documents/missing").status_code == 404

    def test_blank_content_is_400(self, client):
        response = client.post("/v1/documents", json={"title": "Doc", "content": "   "})

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "INVALID_DOCUMENT"
        assert body["request_id"] == response.headers["x-request-id"]

    def test_missing_title_is_422(self, client):
        assert client.post("/v1/documents", json={"content": "x"}).status_code == 422


@pytest.mark.unit
class TestChatEndpoints:
    def test_message_streams_sse(self, client):
        response = client.post("/v1/chat/messages", json={"content": "Hi"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _events(response.text)
        assert [name for name, _ in events] == ["text", "text", "usage_update", "complete"]
        assert events[0][1] == {"text": "Hola"}
        assert events[-1][1]["message"]["content"] == "Hola mundo"
        assert events[-1][1]["usage"] == {"input_tokens": 12, "output_tokens": 3}

    def test_history_after_turn(self, client):
        client.post("/v1/chat/messages", json={"content": "Hi"})

        messages = client.get("/v1/chat/history").json()["messages"]

        assert [(m["role"], m["content"]) for m in messages] == [
            ("user", "Hi"),
            ("assistant", "Hola mundo"),
        ]
        assert messages[1]["output_tokens"] == 3

    def test_clear_history(self, client):
        client.post("/v1/chat/messages", json={"content": "Hi"})

        assert client.delete("/v1/chat/history").status_code == 204
        assert client.get("/v1/chat/history").json() == {"messages": []}

    def test_compress_short_history(self, client):
        response = client.post("/v1/chat/history/compress")

        assert response.json() == {"compressed": False}

    def test_blank_message_is_400(self, client):
        response = client.post("/v1/chat/messages", json={"content": "   "})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_QUERY"

    def test_empty_message_is_422(self, client):
        assert client.post("/v1/chat/messages", json={"content": ""}).status_code == 422

    def test_search_overrides_validated(self, client):
        response = client.post(
            "/v1/chat/messages", json={"content": "Hi", "search": {"top_k": 0}}
        )

        assert response.status_code == 422

    def test_rag_sources_event(self, client):
        client.post("/v1/documents", json={"title": "Guide", "content": "python rust"})

        response = client.post("/v1/chat/messages", json={"content": "python"})

        name, data = _events(response.text)[0]
        assert name == "sources"
        assert data["sources"][0]["document_title"] == "Guide"
