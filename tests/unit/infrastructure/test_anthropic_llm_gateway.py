"""
Name: Anthropic LLM Gateway Tests

Responsibilities:
  - Test payload mapping and response parsing
  - Test HTTP status -> GatewayError mapping
  - Test retry of transient failures on non-streaming calls
  - Test SSE stream parsing (text, usage, error events)

Notes:
  - Offline: httpx.MockTransport stands in for the Messages API
"""

import json

import httpx
import pytest
from doubles import collect

from assistant_core.crosscutting.exceptions import (
    AuthError,
    ConfigurationError,
    GatewayError,
    GatewayUnavailable,
    ProtocolError,
    RateLimited,
    ServerUnavailable,
)
from assistant_core.domain.entities import (
    LLMMessage,
    TextBlock,
    TokenUsage,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
)
from assistant_core.domain.value_objects import DeltaType
from assistant_core.infrastructure.services.llm.anthropic_llm_gateway import (
    AnthropicLLMGateway,
    build_payload,
    map_status_error,
    parse_response,
)
from assistant_core.infrastructure.services.retry import create_retry_decorator

_KEY = "sk-ant-test"


def _gateway(handler, *, attempts: int = 2) -> AnthropicLLMGateway:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://api.test/v1"
    )
    return AnthropicLLMGateway(
        _KEY,
        model="claude-test",
        client=client,
        retry_decorator=create_retry_decorator(
            max_attempts=attempts, base_delay=0, max_delay=0.01
        ),
    )


def _ok_body(text: str = "Hello") -> dict:
    return {
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": 11, "output_tokens": 4},
        "stop_reason": "end_turn",
    }


def _sse(*events: dict) -> bytes:
    return "".join(
        f"event: {e['type']}\ndata: {json.dumps(e)}\n\n" for e in events
    ).encode()


@pytest.mark.unit
class TestPayloadAndParsing:
    def test_build_payload_maps_blocks_and_tools(self):
        tool = ToolDefinition(name="t", description="d", input_schema={"type": "object"})
        messages = [
            LLMMessage.user_text("hi"),
            LLMMessage(role="assistant", content=(ToolUseBlock("tu1", "t", {"a": 1}),)),
            LLMMessage(role="user", content=(ToolResultBlock("tu1", "out", is_error=True),)),
        ]

        payload = build_payload(
            model="m", messages=messages, system_prompt="sys", tools=[tool],
            temperature=0.5, max_tokens=100,
        )

        assert payload["system"] == "sys"
        assert payload["tools"] == [
            {"name": "t", "description": "d", "input_schema": {"type": "object"}}
        ]
        assert payload["messages"][1]["content"][0] == {
            "type": "tool_use", "id": "tu1", "name": "t", "input": {"a": 1},
        }
        assert payload["messages"][2]["content"][0] == {
            "type": "tool_result", "tool_use_id": "tu1", "content": "out", "is_error": True,
        }
        assert "stream" not in payload

    def test_parse_response_with_tool_use(self):
        response = parse_response(
            {
                "content": [
                    {"type": "text", "text": "Let me check."},
                    {"type": "tool_use", "id": "tu1", "name": "w", "input": {"c": "x"}},
                    {"type": "thinking", "thinking": "ignored"},
                ],
                "usage": {"input_tokens": 5, "output_tokens": 7},
                "stop_reason": "tool_use",
            }
        )

        assert response.text == "Let me check."
        assert response.tool_uses == (ToolUseBlock("tu1", "w", {"c": "x"}),)
        assert response.usage == TokenUsage(5, 7)
        assert response.stop_reason == "tool_use"

    @pytest.mark.parametrize(
        "data",
        [
            None,
            {"usage": {}},
            {"content": [{"type": "tool_use", "name": "w"}]},
            {"content": [{"type": "tool_use", "id": "1", "name": "w", "input": "x"}]},
        ],
    )
    def test_parse_response_malformed(self, data):
        with pytest.raises(ProtocolError):
            parse_response(data)


@pytest.mark.unit
class TestStatusMapping:
    @pytest.mark.parametrize(
        "status,error_type",
        [
            (401, AuthError),
            (403, AuthError),
            (429, RateLimited),
            (500, ServerUnavailable),
            (529, ServerUnavailable),
        ],
    )
    def test_known_statuses(self, status, error_type):
        error = map_status_error(status)

        assert isinstance(error, error_type)
        assert error.status_code == status

    def test_user_messages(self):
        assert map_status_error(401).user_message == (
            "Authentication failed. Please check your API key in Settings."
        )
        assert map_status_error(429).user_message == (
            "Rate limit exceeded. Please try again later."
        )
        assert map_status_error(503).user_message == (
            "Claude API is temporarily unavailable. Please try again later."
        )

    def test_other_status_carries_detail(self):
        body = json.dumps({"error": {"type": "invalid_request_error", "message": "bad"}})

        error = map_status_error(400, body)

        assert type(error) is GatewayError
        assert error.message == "Claude API error (400): bad"
        assert error.retryable is False


@pytest.mark.unit
class TestGatewayConstruction:
    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            AnthropicLLMGateway("", model="m")

    def test_malformed_key(self):
        with pytest.raises(AuthError):
            AnthropicLLMGateway("not-a-key", model="m")


@pytest.mark.unit
class TestComplete:
    @pytest.mark.asyncio
    async def test_success_sends_headers_and_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["headers"] = request.headers
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_ok_body("Hi there"))

        gateway = _gateway(handler)

        response = await gateway.complete(
            [LLMMessage.user_text("hello")], system_prompt="sys", max_tokens=50
        )

        assert response.content == (TextBlock("Hi there"),)
        assert response.usage == TokenUsage(11, 4)
        assert captured["url"] == "https://api.test/v1/messages"
        assert captured["headers"]["x-api-key"] == _KEY
        assert captured["headers"]["anthropic-version"] == "2023-06-01"
        assert captured["body"]["model"] == "claude-test"
        assert captured["body"]["max_tokens"] == 50
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(529, json={"error": {"type": "overloaded_error"}})
            return httpx.Response(200, json=_ok_body())

        response = await _gateway(handler).complete(
            [LLMMessage.user_text("x")], system_prompt=""
        )

        assert response.text == "Hello"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_auth_failure_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401, json={"error": {"message": "invalid x-api-key"}})

        with pytest.raises(AuthError):
            await _gateway(handler, attempts=3).complete(
                [LLMMessage.user_text("x")], system_prompt=""
            )
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayUnavailable):
            await _gateway(handler, attempts=1).complete(
                [LLMMessage.user_text("x")], system_prompt=""
            )

    @pytest.mark.asyncio
    async def test_invalid_json_is_protocol_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>oops</html>")

        with pytest.raises(ProtocolError):
            await _gateway(handler).complete([LLMMessage.user_text("x")], system_prompt="")


@pytest.mark.unit
class TestStream:
    @pytest.mark.asyncio
    async def test_stream_text_and_usage(self):
        body = _sse(
            {"type": "message_start", "message": {"usage": {"input_tokens": 9, "output_tokens": 1}}},
            {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hel"}},
            {"type": "ping"},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "lo"}},
            {"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 6}},
            {"type": "message_stop"},
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(
                200, content=body, headers={"content-type": "text/event-stream"}
            )

        deltas = await collect(
            _gateway(handler).stream([LLMMessage.user_text("x")], system_prompt="")
        )

        assert [d.type for d in deltas] == [
            DeltaType.USAGE_UPDATE,
            DeltaType.TEXT,
            DeltaType.TEXT,
            DeltaType.USAGE_UPDATE,
        ]
        assert "".join(d.content for d in deltas if d.type == DeltaType.TEXT) == "Hello"
        assert deltas[-1].usage == TokenUsage(9, 6)

    @pytest.mark.asyncio
    async def test_stream_error_event(self):
        body = _sse(
            {"type": "message_start", "message": {"usage": {"input_tokens": 1}}},
            {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        with pytest.raises(ServerUnavailable):
            await collect(
                _gateway(handler).stream([LLMMessage.user_text("x")], system_prompt="")
            )

    @pytest.mark.asyncio
    async def test_stream_malformed_event(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"data: {not json\n\n")

        with pytest.raises(ProtocolError):
            await collect(
                _gateway(handler).stream([LLMMessage.user_text("x")], system_prompt="")
            )

    @pytest.mark.asyncio
    async def test_stream_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": {"type": "rate_limit_error"}})

        with pytest.raises(RateLimited):
            await collect(
                _gateway(handler).stream([LLMMessage.user_text("x")], system_prompt="")
            )
