"""OpenAI-compatible chat completions provider (ollama, vllm, llama.cpp server)."""

from __future__ import annotations

import json
import re
from typing import Any
from uuid import uuid4

import httpx

from prwright.config import LLMConfig
from prwright.core.llm.base import LLMProvider
from prwright.core.llm.types import LLMMessage, LLMResponse, ToolCall
from prwright.errors import ModelError
from prwright.utils.logging import get_logger

log = get_logger(__name__)

# Text protocol for servers that drop the ``tools`` field
_ACTION_RE = re.compile(r"Action:\s*(\w+)\s*\nAction Input:\s*(\{.*\})", re.DOTALL)

_TEXT_TOOL_HINT = """\
If you cannot emit native tool calls, call a tool by replying with exactly:
Action: <tool name>
Action Input: <JSON object of arguments>
Available tools: {names}"""


def _parse_react_response(text: str) -> tuple[str, list[ToolCall]]:
    """Split ``Action:``/``Action Input:`` text into leading content and one tool call."""
    match = _ACTION_RE.search(text)
    if match is None:
        return text, []
    raw_args = match.group(2)
    try:
        args: dict[str, Any] | str = json.loads(raw_args)
    except json.JSONDecodeError:
        # Left as a string; the tool loop reports the parse failure to the model
        args = raw_args
    call = ToolCall(id=uuid4().hex[:12], name=match.group(1), arguments=args)
    return text[: match.start()].strip(), [call]


def _flatten_blocks(blocks: list[dict[str, Any]]) -> str:
    lines: list[str] = []
    for block in blocks:
        kind = block.get("type")
        if kind == "text":
            lines.append(block["text"])
        elif kind == "tool_use":
            lines.append(
                f"Action: {block.get('name', '')}\n"
                f"Action Input: {json.dumps(block.get('input', {}))}"
            )
        elif kind == "tool_result":
            lines.append(f"[Tool Result]: {block.get('content', '')}")
    return "\n".join(lines)


def _to_openai_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": t.get("parameters", {}),
            },
        }
        for t in tools
    ]


def _native_tool_calls(raw_calls: list[dict[str, Any]]) -> list[ToolCall]:
    calls: list[ToolCall] = []
    for raw in raw_calls:
        fn = raw.get("function", {})
        args = fn.get("arguments", "{}")
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError:
                log.debug("tool_arguments_not_json", tool=fn.get("name"))
        calls.append(ToolCall(id=raw.get("id") or uuid4().hex[:12], name=fn.get("name", ""),
                              arguments=args))
    return calls


class LocalProvider(LLMProvider):
    def __init__(self, config: LLMConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.local_endpoint.rstrip("/"), timeout=120,
        )

    async def complete(
        self,
        messages: list[LLMMessage],
        system: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        if tools:
            hint = _TEXT_TOOL_HINT.format(names=", ".join(t["name"] for t in tools))
            system = f"{system}\n\n{hint}" if system else hint

        api_messages: list[dict[str, Any]] = []
        if system:
            api_messages.append({"role": "system", "content": system})
        for msg in messages:
            content = msg.content if isinstance(msg.content, str) else _flatten_blocks(msg.content)
            api_messages.append({"role": msg.role, "content": content})

        body: dict[str, Any] = {
            "model": model or self._config.model,
            "messages": api_messages,
            "max_tokens": max_tokens or self._config.max_tokens,
            "temperature": self._config.temperature if temperature is None else temperature,
        }
        if tools:
            body["tools"] = _to_openai_tools(tools)

        data = await self._post("/chat/completions", body)
        choice = data["choices"][0]
        message = choice["message"]
        text = message.get("content") or ""

        if message.get("tool_calls"):
            calls = _native_tool_calls(message["tool_calls"])
        elif tools:
            text, calls = _parse_react_response(text)
        else:
            calls = []

        usage = data.get("usage") or {}
        return LLMResponse(
            content=text,
            tool_calls=calls,
            stop_reason=choice.get("finish_reason"),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.post(path, json=body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ModelError(
                f"{e.response.status_code} {e.response.reason_phrase}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TransportError as e:
            raise ModelError(f"upstream temporarily unreachable: {e}") from e
        return resp.json()
