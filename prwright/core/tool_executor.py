"""Autonomous tool-use loop: the model explores, edits and opens the PR itself."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Awaitable, Callable

from prwright.core.llm import LLMMessage, LLMProvider, ToolCall
from prwright.core.retry import call_with_retry
from prwright.core.system_prompt import build_loop_nudge, build_system_prompt, build_user_prompt
from prwright.errors import GitHubAPIError
from prwright.models import TaskResult, ToolCallRecord
from prwright.tools.base import ToolContext
from prwright.tools.registry import ToolRegistry, build_registry
from prwright.utils.logging import get_logger

log = get_logger(__name__)

MAX_STEPS = 15
# Consecutive identical tool-call rounds tolerated before a nudge is injected
MAX_REPEATED_CALLS = 2

StepHook = Callable[[], Awaitable[None]]


def call_signature(calls: list[ToolCall]) -> str:
    return "|".join(
        f"{c.name}:{json.dumps(c.arguments if c.arguments is not None else {}, sort_keys=True)}"
        for c in calls
    )


def coerce_arguments(raw: Any) -> dict[str, Any]:
    """Decode arguments a model sent as a JSON string. Raises ValueError if unusable."""
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Could not parse stringified arguments: {e.msg}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"Arguments must be a JSON object, got {type(raw).__name__}")
    return raw


async def ensure_branch_exists(ctx: ToolContext, source: str, branch: str) -> None:
    """Create ``branch`` from ``source`` unless it already exists."""
    ctx.add_progress(f"Ensuring working branch {branch} exists (source: {source})...")
    try:
        await ctx.github.get_ref(ctx.repo.owner, ctx.repo.repo, branch)
    except GitHubAPIError as e:
        if not e.is_not_found:
            raise
    else:
        ctx.add_progress(f"Branch {branch} already exists.")
        return

    base_ref = await ctx.github.get_ref(ctx.repo.owner, ctx.repo.repo, source)
    await ctx.github.create_ref(ctx.repo.owner, ctx.repo.repo, branch, base_ref["object"]["sha"])
    ctx.add_progress(f"Branch {branch} created from {source}.")


class ReActExecutor:
    """Runs the reason/act loop over the repository tools for one task."""

    def __init__(
        self,
        llm: LLMProvider,
        model: str | None = None,
        max_steps: int = MAX_STEPS,
        max_repeated_calls: int = MAX_REPEATED_CALLS,
        max_changes_per_commit: int = 10,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        self._llm = llm
        self._model = model
        self._max_steps = max_steps
        self._max_repeated_calls = max_repeated_calls
        self._max_changes = max_changes_per_commit
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self.records: list[ToolCallRecord] = []

    async def run(
        self,
        ctx: ToolContext,
        registry: ToolRegistry | None = None,
        on_step: StepHook | None = None,
    ) -> TaskResult:
        request = ctx.request
        if not request.branch_name:
            # Derive once so every tool falls back to the same branch
            request = replace(request, branch_name=request.resolved_branch_name())
            ctx = replace(ctx, request=request)
        registry = registry or build_registry(ctx, max_changes=self._max_changes)
        target = request.target_branch or "main"
        branch = request.branch_name
        self.records = []

        system = build_system_prompt()
        messages: list[LLMMessage] = [
            LLMMessage(role="user", content=build_user_prompt(ctx.repo, request, branch)),
        ]
        schemas = registry.schemas()

        pr_output: dict[str, Any] | None = None
        committed = False
        last_signature = ""
        repeat_count = 0

        try:
            # create_pull_request needs a valid head even if the model never branches
            await ensure_branch_exists(ctx, target, branch)

            for step in range(self._max_steps):
                response = await call_with_retry(
                    self._llm,
                    messages,
                    model=self._model,
                    system=system,
                    tools=schemas,
                    max_tokens=4096,
                    max_retries=self._max_retries,
                    base_delay=self._retry_base_delay,
                )

                if not response.wants_tools:
                    if response.content:
                        messages.append(LLMMessage(role="assistant", content=response.content))
                    log.info("react_finished_without_tools", step=step)
                    break

                signature = call_signature(response.tool_calls)
                if signature == last_signature:
                    repeat_count += 1
                else:
                    repeat_count = 0
                    last_signature = signature

                if repeat_count >= self._max_repeated_calls:
                    tool_name = response.tool_calls[0].name
                    ctx.add_progress(
                        f'Loop detected: "{tool_name}" called {repeat_count + 1} times '
                        "with same args. Injecting guidance."
                    )
                    if response.content:
                        messages.append(LLMMessage(role="assistant", content=response.content))
                    messages.append(LLMMessage(role="user", content=build_loop_nudge(tool_name)))
                    repeat_count = 0
                    last_signature = ""
                    if on_step:
                        await on_step()
                    continue

                assistant_content: list[dict[str, Any]] = []
                if response.content:
                    assistant_content.append({"type": "text", "text": response.content})
                tool_results_content: list[dict[str, Any]] = []

                # Sequential on purpose: a commit must land before the PR preflight
                for tc in response.tool_calls:
                    record = await self._execute_call(ctx, registry, tc)
                    self.records.append(record)
                    assistant_content.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": record.arguments if isinstance(record.arguments, dict) else {},
                    })
                    tool_results_content.append({
                        "type": "tool_result",
                        "tool_use_id": tc.id,
                        "content": json.dumps(record.result),
                        "is_error": record.failed,
                    })

                    if tc.name == "commit_files" and record.result.get("successCount", 0) > 0:
                        committed = True
                    if tc.name == "create_pull_request" and record.result.get("success"):
                        pr_output = record.result

                messages.append(LLMMessage(role="assistant", content=assistant_content))
                messages.append(LLMMessage(role="user", content=tool_results_content))

                if on_step:
                    await on_step()

                if pr_output:
                    if not committed:
                        log.warning("pr_opened_without_commit", branch=pr_output.get("branchName"))
                    ctx.add_progress("PR created - finishing agent loop.")
                    break
        except Exception as e:
            log.exception("react_error", repo=ctx.repo.full_name)
            ctx.add_progress(f"ReAct error: {e}")
            return TaskResult(success=False, error=str(e))

        if pr_output:
            return TaskResult(
                success=True,
                pr_url=pr_output.get("prUrl"),
                branch_name=pr_output.get("branchName") or branch,
            )
        return TaskResult(
            success=False,
            branch_name=branch,
            error="ReAct agent did not complete PR creation",
        )

    async def _execute_call(
        self, ctx: ToolContext, registry: ToolRegistry, tc: ToolCall
    ) -> ToolCallRecord:
        tool = registry.get(tc.name)
        if tool is None:
            msg = f"Unknown tool requested by model: {tc.name}"
            ctx.add_progress(msg)
            return ToolCallRecord(name=tc.name, arguments=tc.arguments, result={"error": msg})

        try:
            args = coerce_arguments(tc.arguments)
        except ValueError as e:
            ctx.add_progress(f"Warning: Could not parse stringified arguments for {tc.name}")
            return ToolCallRecord(name=tc.name, arguments=tc.arguments, result={"error": str(e)})

        ctx.add_progress(f"Tool: {tc.name}({json.dumps(args)[:80]}...)")
        log.info("tool_executing", tool=tc.name, args=list(args))
        try:
            result = await tool.execute(**args)
        except Exception as e:
            # Infrastructure failures go back to the model like any other tool error
            log.warning("tool_failed", tool=tc.name, error=str(e))
            ctx.add_progress(f"Tool error in {tc.name}: {e}")
            return ToolCallRecord(name=tc.name, arguments=args, result={"error": str(e)})

        if not result.success:
            ctx.add_progress(f"Tool error in {tc.name}: {result.error}")
        return ToolCallRecord(name=tc.name, arguments=args, result=result.payload())
