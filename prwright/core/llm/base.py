"""Model runner interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from prwright.core.llm.types import LLMMessage, LLMResponse


class LLMProvider(ABC):
    """One chat-completion call per ``complete``.

    Tools are passed as ``{"name", "description", "parameters"}`` dicts and
    translated by each provider. Failures raise ``ModelError`` carrying the
    HTTP status when there is one; providers never retry on their own.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        system: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> LLMResponse: ...

    async def close(self) -> None:
        return None
