"""Provider-neutral message and response shapes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant"]


@dataclass
class LLMMessage:
    role: Role
    # Plain text, or Anthropic-style blocks (text / tool_use / tool_result)
    content: str | list[dict[str, Any]]


@dataclass
class ToolCall:
    id: str
    name: str
    # Some models send the arguments object JSON-encoded
    arguments: dict[str, Any] | str


@dataclass
class LLMResponse:
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)
