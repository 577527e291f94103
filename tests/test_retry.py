"""Tests for model-call retry classification and backoff."""

from unittest.mock import AsyncMock

import pytest

from prwright.core.llm import LLMMessage, LLMResponse
from prwright.core.retry import call_with_fallback, call_with_retry, is_transient
from prwright.errors import ModelError

MESSAGES = [LLMMessage(role="user", content="hi")]


class TestIsTransient:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504, 529])
    def test_retryable_status(self, status):
        assert is_transient(ModelError("boom", status_code=status)) is True

    def test_status_code_wins_over_message(self):
        assert is_transient(ModelError("upstream said no", status_code=400)) is False

    @pytest.mark.parametrize("message", [
        "502 Bad Gateway",
        "error code: 1031",
        "Upstream connection reset",
        "Service temporarily unavailable",
        "Model is overloaded",
        "Rate limit exceeded",
    ])
    def test_signature_without_status(self, message):
        assert is_transient(RuntimeError(message)) is True

    def test_permanent(self):
        assert is_transient(ValueError("invalid api key")) is False


class TestCallWithRetry:
    async def test_success_first_try(self, mock_llm):
        mock_llm.complete.return_value = LLMResponse(content="ok")
        sleep = AsyncMock()
        resp = await call_with_retry(mock_llm, MESSAGES, model="m", sleep=sleep)
        assert resp.content == "ok"
        sleep.assert_not_awaited()
        assert mock_llm.complete.call_args.kwargs["model"] == "m"

    async def test_linear_backoff_then_success(self, mock_llm):
        mock_llm.complete.side_effect = [
            ModelError("overloaded", status_code=529),
            ModelError("bad gateway", status_code=502),
            LLMResponse(content="ok"),
        ]
        sleep = AsyncMock()
        resp = await call_with_retry(mock_llm, MESSAGES, sleep=sleep, base_delay=1.0)
        assert resp.content == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_budget_exhausted_reraises_last(self, mock_llm):
        errors = [ModelError(f"upstream {i}") for i in range(4)]
        mock_llm.complete.side_effect = errors
        sleep = AsyncMock()
        with pytest.raises(ModelError) as exc_info:
            await call_with_retry(mock_llm, MESSAGES, max_retries=3, sleep=sleep)
        assert exc_info.value is errors[-1]
        assert mock_llm.complete.await_count == 4
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 3.0]

    async def test_non_transient_not_retried(self, mock_llm):
        mock_llm.complete.side_effect = ModelError("invalid request", status_code=400)
        sleep = AsyncMock()
        with pytest.raises(ModelError):
            await call_with_retry(mock_llm, MESSAGES, sleep=sleep)
        assert mock_llm.complete.await_count == 1
        sleep.assert_not_awaited()


class TestCallWithFallback:
    async def test_fallback_model_used(self, mock_llm):
        mock_llm.complete.side_effect = [
            ModelError("invalid model", status_code=404),
            LLMResponse(content="from fallback"),
        ]
        resp = await call_with_fallback(
            mock_llm, MESSAGES, model="primary", fallback_model="secondary",
        )
        assert resp.content == "from fallback"
        models = [c.kwargs["model"] for c in mock_llm.complete.call_args_list]
        assert models == ["primary", "secondary"]

    async def test_no_fallback_configured(self, mock_llm):
        mock_llm.complete.side_effect = ModelError("invalid", status_code=400)
        with pytest.raises(ModelError):
            await call_with_fallback(mock_llm, MESSAGES, model="primary", fallback_model=None)
        assert mock_llm.complete.await_count == 1
