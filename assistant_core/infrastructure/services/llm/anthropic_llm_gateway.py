"""
Name: Anthropic LLM Gateway (Messages API over httpx)

Responsibilities:
  - Implement LLMGateway.complete (non-streaming, tools supported)
  - Implement LLMGateway.stream (SSE: text deltas + usage updates)
  - Translate wire-neutral LLMMessage/ToolDefinition into the Messages API payload
  - Map HTTP / SSE failures into the GatewayError taxonomy

Collaborators:
  - httpx.AsyncClient
  - retry.create_retry_decorator (non-streaming calls only)
  - domain.entities (LLMMessage, LLMResponse, content blocks)

Constraints:
  - Header x-api-key + anthropic-version
  - 401/403 -> AuthError, 429 -> RateLimited, 5xx/529 -> ServerUnavailable,
    timeouts/transport -> GatewayUnavailable, malformed JSON/SSE -> ProtocolError
  - A started stream is never retried (partial output already reached the caller)
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Callable, Dict, Final, Optional, Sequence

import httpx

from ....crosscutting.exceptions import (
    AuthError,
    ConfigurationError,
    GatewayError,
    GatewayUnavailable,
    ProtocolError,
    RateLimited,
    ServerUnavailable,
)
from ....crosscutting.logger import logger
from ....domain.entities import (
    ContentBlock,
    LLMMessage,
    LLMResponse,
    TextBlock,
    TokenUsage,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
)
from ....domain.value_objects import StreamDelta
from ..retry import create_retry_decorator

DEFAULT_BASE_URL: Final[str] = "https://api.anthropic.com/v1"
DEFAULT_API_VERSION: Final[str] = "2023-06-01"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 120.0


# ---------------------------------------------------------------------------
# Payload mapping
# ---------------------------------------------------------------------------


def _block_to_wire(block: ContentBlock) -> Dict[str, Any]:
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ToolUseBlock):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    return {
        "type": "tool_result",
        "tool_use_id": block.tool_use_id,
        "content": block.content,
        "is_error": block.is_error,
    }


def build_payload(
    *,
    model: str,
    messages: Sequence[LLMMessage],
    system_prompt: str,
    tools: Optional[Sequence[ToolDefinition]],
    temperature: float,
    max_tokens: int,
    stream: bool = False,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": [
            {"role": m.role, "content": [_block_to_wire(b) for b in m.content]}
            for m in messages
        ],
    }
    if system_prompt:
        payload["system"] = system_prompt
    if tools:
        payload["tools"] = [
            {"name": t.name, "description": t.description, "input_schema": t.input_schema}
            for t in tools
        ]
    if stream:
        payload["stream"] = True
    return payload


def parse_response(data: Any) -> LLMResponse:
    """R: JSON de /messages -> LLMResponse (bloques desconocidos se ignoran)."""
    if not isinstance(data, dict) or not isinstance(data.get("content"), list):
        raise ProtocolError("Malformed response from Claude API: missing content")

    blocks: list[ContentBlock] = []
    for raw in data["content"]:
        kind = raw.get("type") if isinstance(raw, dict) else None
        if kind == "text":
            blocks.append(TextBlock(text=str(raw.get("text", ""))))
        elif kind == "tool_use":
            if "id" not in raw or "name" not in raw:
                raise ProtocolError("Malformed tool_use block from Claude API")
            tool_input = raw.get("input") or {}
            if not isinstance(tool_input, dict):
                raise ProtocolError("tool_use input must be a JSON object")
            blocks.append(ToolUseBlock(id=raw["id"], name=raw["name"], input=tool_input))

    usage = data.get("usage") or {}
    return LLMResponse(
        content=tuple(blocks),
        usage=TokenUsage(
            input_tokens=int(usage.get("input_tokens", 0) or 0),
            output_tokens=int(usage.get("output_tokens", 0) or 0),
        ),
        stop_reason=data.get("stop_reason"),
    )


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _error_detail(body: str) -> str:
    try:
        parsed = json.loads(body)
    except ValueError:
        return body[:200]
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", ""))
    return body[:200]


def map_status_error(status_code: int, body: str = "") -> GatewayError:
    if status_code == 401:
        return AuthError(status_code=status_code)
    if status_code == 403:
        return AuthError(
            "Access forbidden. Your API key may not have access to this model.",
            status_code=status_code,
        )
    if status_code == 429:
        return RateLimited(status_code=status_code)
    if status_code >= 500:
        return ServerUnavailable(status_code=status_code)
    detail = _error_detail(body)
    return GatewayError(
        f"Claude API error ({status_code}): {detail}" if detail else "",
        status_code=status_code,
    )


_STREAM_ERROR_TYPES: Final[Dict[str, type[GatewayError]]] = {
    "authentication_error": AuthError,
    "permission_error": AuthError,
    "rate_limit_error": RateLimited,
    "overloaded_error": ServerUnavailable,
    "api_error": ServerUnavailable,
}


def map_stream_error(error: Dict[str, Any]) -> GatewayError:
    error_cls = _STREAM_ERROR_TYPES.get(str(error.get("type", "")))
    if error_cls is not None:
        return error_cls()
    return GatewayError(str(error.get("message", "")))


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class AnthropicLLMGateway:
    """R: LLMGateway sobre la Messages API de Anthropic."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        retry_decorator: Callable | None = None,
    ):
        key = (api_key or "").strip()
        if not key:
            logger.error("AnthropicLLMGateway: ANTHROPIC_API_KEY not configured")
            raise ConfigurationError("ANTHROPIC_API_KEY not configured")
        if not key.startswith("sk-ant-"):
            raise AuthError("Invalid API key format. Anthropic keys start with 'sk-ant-'.")

        self._model = model
        self._headers = {
            "x-api-key": key,
            "anthropic-version": api_version,
            "content-type": "application/json",
        }
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds
        )
        decorator = retry_decorator or create_retry_decorator()
        self._post_messages = decorator(self._post_messages_once)

        logger.info("AnthropicLLMGateway initialized", extra={"model": self._model})

    @property
    def model(self) -> str:
        return self._model

    async def aclose(self) -> None:
        await self._client.aclose()

    async def complete(
        self,
        messages: Sequence[LLMMessage],
        *,
        system_prompt: str,
        tools: Optional[Sequence[ToolDefinition]] = None,
        temperature: float = 1.0,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        payload = build_payload(
            model=self._model,
            messages=messages,
            system_prompt=system_prompt,
            tools=tools,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        data = await self._post_messages(payload)
        response = parse_response(data)
        logger.debug(
            "Claude completion received",
            extra={
                "model": self._model,
                "stop_reason": response.stop_reason,
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )
        return response

    async def _post_messages_once(self, payload: Dict[str, Any]) -> Any:
        try:
            resp = await self._client.post("/messages", json=payload, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise GatewayUnavailable(
                "The request to Claude API timed out. Please try again.",
                original_error=exc,
            ) from exc
        except httpx.TransportError as exc:
            raise GatewayUnavailable(original_error=exc) from exc

        if resp.status_code >= 400:
            error = map_status_error(resp.status_code, resp.text)
            logger.error(
                "Claude API returned an error",
                extra={"status_code": resp.status_code, "error_code": error.error_code},
            )
            raise error

        try:
            return resp.json()
        except ValueError as exc:
            raise ProtocolError(
                "Malformed response from Claude API", original_error=exc
            ) from exc

    async def stream(
        self,
        messages: Sequence[LLMMessage],
        *,
        system_prompt: str,
        temperature: float = 1.0,
        max_tokens: int = 1024,
    ) -> AsyncIterator[StreamDelta]:
        payload = build_payload(
            model=self._model,
            messages=messages,
            system_prompt=system_prompt,
            tools=None,
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
        )
        try:
            async with self._client.stream(
                "POST", "/messages", json=payload, headers=self._headers
            ) as resp:
                if resp.status_code >= 400:
                    body = (await resp.aread()).decode("utf-8", errors="replace")
                    raise map_status_error(resp.status_code, body)

                async for delta in self._parse_sse(resp.aiter_lines()):
                    yield delta
        except httpx.TimeoutException as exc:
            raise GatewayUnavailable(
                "The request to Claude API timed out. Please try again.",
                original_error=exc,
            ) from exc
        except httpx.TransportError as exc:
            raise GatewayUnavailable(original_error=exc) from exc

    @staticmethod
    async def _parse_sse(lines: AsyncIterator[str]) -> AsyncIterator[StreamDelta]:
        usage = TokenUsage()
        async for line in lines:
            if not line.startswith("data:"):
                continue
            raw = line[len("data:") :].strip()
            if not raw:
                continue
            try:
                event = json.loads(raw)
            except ValueError as exc:
                raise ProtocolError(
                    "Malformed stream event from Claude API", original_error=exc
                ) from exc
            if not isinstance(event, dict):
                raise ProtocolError("Malformed stream event from Claude API")

            event_type = event.get("type")
            if event_type == "message_start":
                start_usage = (event.get("message") or {}).get("usage") or {}
                usage = TokenUsage(
                    input_tokens=int(start_usage.get("input_tokens", 0) or 0),
                    output_tokens=int(start_usage.get("output_tokens", 0) or 0),
                )
                yield StreamDelta.usage_update(usage)
            elif event_type == "content_block_delta":
                delta = event.get("delta") or {}
                if delta.get("type") == "text_delta" and delta.get("text"):
                    yield StreamDelta.text_delta(delta["text"])
            elif event_type == "message_delta":
                delta_usage = event.get("usage") or {}
                usage = TokenUsage(
                    input_tokens=usage.input_tokens,
                    output_tokens=int(
                        delta_usage.get("output_tokens", usage.output_tokens) or 0
                    ),
                )
                yield StreamDelta.usage_update(usage)
            elif event_type == "message_stop":
                return
            elif event_type == "error":
                raise map_stream_error(event.get("error") or {})
