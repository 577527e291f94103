"""Model providers behind one ``LLMProvider`` interface."""

from prwright.config import LLMConfig
from prwright.core.llm.anthropic import AnthropicProvider
from prwright.core.llm.base import LLMProvider
from prwright.core.llm.local import LocalProvider
from prwright.core.llm.types import LLMMessage, LLMResponse, ToolCall

__all__ = [
    "AnthropicProvider",
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "LocalProvider",
    "ToolCall",
    "create_provider",
]

_PROVIDERS: dict[str, type[LLMProvider]] = {
    "anthropic": AnthropicProvider,
    "local": LocalProvider,
}


def create_provider(config: LLMConfig) -> LLMProvider:
    try:
        provider_cls = _PROVIDERS[config.provider]
    except KeyError:
        raise ValueError(
            f"Unknown LLM provider {config.provider!r}; expected one of {', '.join(_PROVIDERS)}"
        ) from None
    return provider_cls(config)
