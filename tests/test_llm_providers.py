"""Tests for the Anthropic and OpenAI-compatible providers."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from prwright.config import LLMConfig
from prwright.core.llm import AnthropicProvider, LLMMessage, LocalProvider, create_provider
from prwright.core.llm.local import _parse_react_response
from prwright.core.retry import is_transient
from prwright.errors import ModelError

TOOLS = [{
    "name": "read_file",
    "description": "Read a file",
    "parameters": {"type": "object", "properties": {"path": {"type": "string"}}},
}]


def _local(handler):
    config = LLMConfig(provider="local", model="qwen", local_endpoint="http://llm.test/v1")
    client = httpx.AsyncClient(
        base_url="http://llm.test/v1", transport=httpx.MockTransport(handler),
    )
    return LocalProvider(config, client=client)


class TestCreateProvider:
    def test_local(self):
        assert isinstance(create_provider(LLMConfig(provider="local")), LocalProvider)

    def test_anthropic_default(self):
        assert isinstance(create_provider(LLMConfig(api_key="sk-test")), AnthropicProvider)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_provider(LLMConfig(provider="openai"))


class TestReActParsing:
    def test_action(self):
        text = 'Thought: look first\nAction: read_file\nAction Input: {"path": "a.txt"}'
        content, calls = _parse_react_response(text)
        assert content == "Thought: look first"
        assert calls[0].name == "read_file"
        assert calls[0].arguments == {"path": "a.txt"}

    def test_bad_json_passed_through_as_string(self):
        _, calls = _parse_react_response("Action: read_file\nAction Input: {path: a}")
        assert calls[0].arguments == "{path: a}"

    def test_plain_text(self):
        content, calls = _parse_react_response("All done.")
        assert content == "All done."
        assert calls == []


class TestLocalProvider:
    async def test_native_tool_calls(self):
        sent = {}

        def handler(request):
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={
                "choices": [{
                    "finish_reason": "tool_calls",
                    "message": {
                        "content": None,
                        "tool_calls": [{
                            "id": "call_1",
                            "function": {"name": "read_file", "arguments": '{"path": "x"}'},
                        }],
                    },
                }],
                "usage": {"prompt_tokens": 10, "completion_tokens": 3},
            })

        provider = _local(handler)
        resp = await provider.complete(
            [LLMMessage(role="user", content="hi")], system="sys", tools=TOOLS,
        )
        await provider.close()

        assert sent["model"] == "qwen"
        system = sent["messages"][0]
        assert system["role"] == "system"
        assert system["content"].startswith("sys\n\n")
        assert "Available tools: read_file" in system["content"]
        assert sent["tools"][0]["function"]["name"] == "read_file"
        assert resp.tool_calls[0].id == "call_1"
        assert resp.tool_calls[0].arguments == {"path": "x"}
        assert resp.input_tokens == 10

    async def test_react_fallback(self):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {
                "content": 'Action: read_file\nAction Input: {"path": "README.md"}',
            }}]})

        provider = _local(handler)
        resp = await provider.complete([LLMMessage(role="user", content="hi")], tools=TOOLS)
        await provider.close()
        assert resp.tool_calls[0].arguments == {"path": "README.md"}

    async def test_structured_content_flattened(self):
        sent = {}

        def handler(request):
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        provider = _local(handler)
        await provider.complete([
            LLMMessage(role="assistant", content=[
                {"type": "text", "text": "reading"},
                {"type": "tool_use", "id": "t", "name": "read_file", "input": {"path": "a"}},
            ]),
            LLMMessage(role="user", content=[
                {"type": "tool_result", "tool_use_id": "t", "content": '{"content": "A"}'},
            ]),
        ], model="other")
        await provider.close()
        assert sent["model"] == "other"
        assert sent["messages"][0]["content"] == (
            'reading\nAction: read_file\nAction Input: {"path": "a"}'
        )
        assert sent["messages"][1]["content"] == '[Tool Result]: {"content": "A"}'

    async def test_status_error_mapped(self):
        def handler(request):
            return httpx.Response(503, text="Service Unavailable")

        provider = _local(handler)
        with pytest.raises(ModelError) as exc_info:
            await provider.complete([LLMMessage(role="user", content="hi")])
        await provider.close()
        assert exc_info.value.status_code == 503
        assert is_transient(exc_info.value)

    async def test_transport_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = _local(handler)
        with pytest.raises(ModelError) as exc_info:
            await provider.complete([LLMMessage(role="user", content="hi")])
        await provider.close()
        assert exc_info.value.status_code is None
        assert is_transient(exc_info.value)


class TestAnthropicProvider:
    async def test_builds_request_and_parses_blocks(self):
        provider = AnthropicProvider(LLMConfig(api_key="sk-test", model="claude-x"))
        create = AsyncMock(return_value=SimpleNamespace(
            stop_reason="tool_use",
            usage=SimpleNamespace(input_tokens=5, output_tokens=7),
            content=[
                SimpleNamespace(type="text", text="Let me look."),
                SimpleNamespace(type="tool_use", id="tu_1", name="read_file", input={"path": "a"}),
            ],
        ))
        provider._client.messages.create = create

        resp = await provider.complete(
            [LLMMessage(role="user", content="hi")], system="sys", tools=TOOLS, max_tokens=100,
        )
        await provider.close()

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "claude-x"
        assert kwargs["system"] == "sys"
        assert kwargs["max_tokens"] == 100
        assert kwargs["tools"][0]["input_schema"] == TOOLS[0]["parameters"]
        assert resp.content == "Let me look."
        assert resp.tool_calls[0].name == "read_file"
        assert resp.output_tokens == 7
