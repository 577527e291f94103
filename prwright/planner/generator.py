"""Change-set generation with structural validation and corrective retries."""

from __future__ import annotations

import json
from typing import Any, Callable

from prwright.core.llm import LLMMessage, LLMProvider
from prwright.core.retry import call_with_fallback
from prwright.errors import ChangeSetValidationError
from prwright.models import FILE_ACTIONS, FileChange, TaskRequest
from prwright.utils.logging import get_logger

log = get_logger(__name__)

MAX_ATTEMPTS = 3
_DESCRIPTION_LIMIT = 500

_GENERATE_PROMPT = """\
You are a code generation assistant. Output ONLY valid JSON.

{context}

User request: {description}

RULES:
1. Use exact file paths from the structure above
2. For HTML files at root, use "index.html" not "assets/index.html"
3. Keep changes minimal and focused
4. For adding content to existing files, include the full updated file

Output JSON array:
[{{"path":"filename","content":"file content","action":"create|update"}}]

Output ONLY the JSON array. Start with [ end with ]"""

_REJECTION_BLOCK = """

PREVIOUS ATTEMPT WAS REJECTED: {reason}
Fix this problem and output the complete JSON array again."""


class ChangeSetParseError(ValueError):
    pass


def extract_json_array(text: str) -> Any:
    """Strip code fences and decode the span from the first ``[`` to the last ``]``."""
    cleaned = text.replace("```json", "").replace("```", "").strip()
    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if start == -1 or end == -1 or end < start:
        raise ChangeSetParseError("No valid JSON array found in AI response")
    try:
        return json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as e:
        raise ChangeSetParseError(f"Invalid JSON in AI response: {e.msg} at position {e.pos}") from e


def validate_changes(data: Any) -> str | None:
    """Return a description of the first structural problem, or None if valid."""
    if not isinstance(data, list):
        return f"Expected a JSON array of changes, got {type(data).__name__}"
    if not data:
        return "AI returned an empty changes array"
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            return f"Change at index {i} must be an object, got {type(item).__name__}"
        path = item.get("path")
        if not isinstance(path, str) or not path.strip():
            return f"Change at index {i} has a missing or empty 'path'"
        if not isinstance(item.get("content"), str):
            return f"Change at index {i} ('{path}') has a missing or non-string 'content'"
        action = item.get("action")
        if action not in FILE_ACTIONS:
            return (
                f"Change at index {i} ('{path}') has invalid 'action' {action!r}; "
                f"expected one of {', '.join(FILE_ACTIONS)}"
            )
    return None


class ChangeSetGenerator:
    def __init__(
        self,
        llm: LLMProvider,
        model: str | None = None,
        fallback_model: str | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        context_char_limit: int = 6000,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        add_progress: Callable[[str], None] | None = None,
    ) -> None:
        self._llm = llm
        self._model = model
        self._fallback_model = fallback_model
        self._max_attempts = max_attempts
        self._context_char_limit = context_char_limit
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._add_progress = add_progress or (lambda _msg: None)

    def build_prompt(
        self, request: TaskRequest, repo_context: str, rejection: str | None = None
    ) -> str:
        description = request.description
        if len(description) > _DESCRIPTION_LIMIT:
            description = description[:_DESCRIPTION_LIMIT] + "..."
        context = repo_context
        if len(context) > self._context_char_limit:
            context = context[: self._context_char_limit] + "\n... (structure truncated)"
        prompt = _GENERATE_PROMPT.format(context=context, description=description)
        if rejection:
            prompt += _REJECTION_BLOCK.format(reason=rejection)
        return prompt

    async def generate(self, request: TaskRequest, repo_context: str) -> list[FileChange]:
        """Ask the model for a change set, retrying with feedback until it validates.

        Raises ``ChangeSetValidationError`` carrying the last rejection reason
        once every attempt has failed. Model call errors propagate unchanged.
        """
        last_error = ""
        for attempt in range(1, self._max_attempts + 1):
            self._add_progress(
                "Using AI to analyze and generate code changes..."
                if attempt == 1
                else f"Retrying generation (attempt {attempt}/{self._max_attempts})..."
            )
            prompt = self.build_prompt(request, repo_context, rejection=last_error or None)
            response = await call_with_fallback(
                self._llm,
                [LLMMessage(role="user", content=prompt)],
                model=self._model,
                fallback_model=self._fallback_model,
                max_tokens=4096,
                max_retries=self._max_retries,
                base_delay=self._retry_base_delay,
            )
            log.debug("generation_response", attempt=attempt, text=response.content[:500])

            try:
                data = extract_json_array(response.content)
            except ChangeSetParseError as e:
                last_error = str(e)
                log.warning("generation_rejected", attempt=attempt, reason=last_error)
                self._add_progress(f"Attempt {attempt} rejected: {last_error}")
                continue

            problem = validate_changes(data)
            if problem:
                last_error = problem
                log.warning("generation_rejected", attempt=attempt, reason=last_error)
                self._add_progress(f"Attempt {attempt} rejected: {last_error}")
                continue

            changes = [
                FileChange(path=item["path"], content=item["content"], action=item["action"])
                for item in data
            ]
            self._add_progress(f"Generated {len(changes)} file change(s)")
            return changes

        raise ChangeSetValidationError(self._max_attempts, last_error)
