"""Retry/backoff around model calls.

This is the only place model flakiness is absorbed: callers treat a returned
``LLMResponse`` as authoritative and let any raised error propagate.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from prwright.core.llm import LLMMessage, LLMProvider, LLMResponse
from prwright.errors import ModelError
from prwright.utils.logging import get_logger

log = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 529})

# Substring signatures for errors that carry no status code
_TRANSIENT_SIGNATURES = (
    "502",
    "bad gateway",
    "upstream",
    "temporarily",
    "1031",
    "overloaded",
    "rate limit",
)


def is_transient(error: BaseException) -> bool:
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status in RETRYABLE_STATUS_CODES
    message = str(error).lower()
    return any(sig in message for sig in _TRANSIENT_SIGNATURES)


async def call_with_retry(
    llm: LLMProvider,
    messages: list[LLMMessage],
    *,
    model: str | None = None,
    system: str | None = None,
    tools: list[dict[str, Any]] | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
    max_retries: int = 3,
    base_delay: float = 1.0,
    sleep: SleepFn = asyncio.sleep,
) -> LLMResponse:
    """Invoke ``llm.complete``, retrying transient failures with linear backoff.

    Waits ``base_delay * (attempt + 1)`` seconds between attempts, so the
    default budget of 3 retries sleeps 1s, 2s and 3s. Non-transient errors
    propagate immediately; the last error is re-raised once the budget is spent.
    """
    for attempt in range(max_retries + 1):
        try:
            return await llm.complete(
                messages=messages,
                system=system,
                tools=tools,
                temperature=temperature,
                max_tokens=max_tokens,
                model=model,
            )
        except Exception as e:
            if not is_transient(e) or attempt == max_retries:
                raise
            delay = base_delay * (attempt + 1)
            log.warning(
                "model_call_retry",
                model=model,
                attempt=attempt + 1,
                max_attempts=max_retries + 1,
                delay=delay,
                error=str(e),
            )
            await sleep(delay)
    raise ModelError("Unknown error calling model")


async def call_with_fallback(
    llm: LLMProvider,
    messages: list[LLMMessage],
    *,
    model: str | None,
    fallback_model: str | None,
    **kwargs: Any,
) -> LLMResponse:
    """Try the primary model (with retries), then the fallback model once."""
    try:
        return await call_with_retry(llm, messages, model=model, **kwargs)
    except Exception as e:
        if not fallback_model or fallback_model == model:
            raise
        log.warning("primary_model_failed", model=model, fallback=fallback_model, error=str(e))
        return await call_with_retry(llm, messages, model=fallback_model, **kwargs)
