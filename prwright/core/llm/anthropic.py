"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any

from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic

from prwright.config import LLMConfig
from prwright.core.llm.base import LLMProvider
from prwright.core.llm.types import LLMMessage, LLMResponse, ToolCall
from prwright.errors import ModelError

_EMPTY_SCHEMA = {"type": "object", "properties": {}}


def _to_anthropic_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "name": t["name"],
            "description": t.get("description", ""),
            "input_schema": t.get("parameters") or _EMPTY_SCHEMA,
        }
        for t in tools
    ]


def _to_response(message: Any) -> LLMResponse:
    text_parts: list[str] = []
    calls: list[ToolCall] = []
    for block in message.content:
        if block.type == "text":
            text_parts.append(block.text)
        elif block.type == "tool_use":
            calls.append(ToolCall(id=block.id, name=block.name, arguments=block.input))
    return LLMResponse(
        content="".join(text_parts),
        tool_calls=calls,
        stop_reason=message.stop_reason,
        input_tokens=message.usage.input_tokens,
        output_tokens=message.usage.output_tokens,
    )


class AnthropicProvider(LLMProvider):
    def __init__(self, config: LLMConfig) -> None:
        self._config = config
        # SDK retries disabled; prwright.core.retry owns backoff
        self._client = AsyncAnthropic(api_key=config.api_key or None, max_retries=0)

    async def complete(
        self,
        messages: list[LLMMessage],
        system: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        request: dict[str, Any] = {
            "model": model or self._config.model,
            "max_tokens": max_tokens or self._config.max_tokens,
            "temperature": self._config.temperature if temperature is None else temperature,
            # tool_use / tool_result block lists pass through unchanged
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = _to_anthropic_tools(tools)

        try:
            message = await self._client.messages.create(**request)
        except APIStatusError as e:
            raise ModelError(str(e), status_code=e.status_code) from e
        except APIConnectionError as e:
            raise ModelError(f"upstream connection failed: {e}") from e
        return _to_response(message)

    async def close(self) -> None:
        await self._client.close()
