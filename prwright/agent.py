"""PR agent: one instance per repository, owning its task state and GitHub connection."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

from prwright.config import Settings
from prwright.core.llm import LLMProvider
from prwright.core.state import AgentTaskState, StateSink
from prwright.core.store import StateStore
from prwright.core.tool_executor import ReActExecutor
from prwright.errors import GitHubNotConnectedError, InvalidRepoLocatorError
from prwright.github.base import RepositoryClient
from prwright.github.client import GitHubClient
from prwright.models import TaskRequest, TaskResult, parse_repo_locator
from prwright.planner.engine import PlanExecutor
from prwright.planner.generator import ChangeSetGenerator
from prwright.tools.base import ToolContext
from prwright.utils.logging import get_logger

log = get_logger(__name__)

GitHubFactory = Callable[[str], RepositoryClient]


class PRAgent:
    """Task executor facade.

    ``run_planned`` and ``run_autonomous`` always return a ``TaskResult``;
    failures are reported through it and through the progress log, never raised.
    One task runs at a time per instance; starting a new one replaces the
    previous terminal state.
    """

    def __init__(
        self,
        settings: Settings,
        llm: LLMProvider,
        instance_id: str = "default",
        store: StateStore | None = None,
        github_factory: GitHubFactory | None = None,
    ) -> None:
        self.settings = settings
        self.instance_id = instance_id
        self._llm = llm
        self._store = store
        self._github_factory = github_factory or (
            lambda token: GitHubClient(token, settings.github)
        )
        self._github: RepositoryClient | None = None
        # Set by disconnect(); the configured token is not used again until a new one is set
        self._disconnected = False
        self.sink = StateSink(instance_id)

    async def start(self) -> None:
        """Restore the last checkpoint; a task caught mid-flight is marked failed."""
        if self._store is None:
            return
        saved = await self._store.load(self.instance_id)
        if saved is None:
            return
        self.sink = StateSink(self.instance_id, saved)
        if saved.status not in ("idle", "completed", "error"):
            log.warning("task_interrupted", instance=self.instance_id, status=saved.status)
            self.sink.finish(TaskResult(
                success=False, error="Task was interrupted before completion",
            ))
            await self._checkpoint()

    async def stop(self) -> None:
        if self._github is not None:
            await self._github.close()
            self._github = None

    def snapshot(self) -> AgentTaskState:
        return self.sink.snapshot()

    async def _checkpoint(self) -> None:
        if self._store is not None:
            await self._store.save(self.instance_id, self.sink.snapshot())

    # --- GitHub connection ---

    async def _stored_token(self) -> str | None:
        if self._disconnected:
            return None
        if self._store is not None:
            token = await self._store.load_token(self.instance_id)
            if token:
                return token
        return self.settings.github.token or None

    async def ensure_github_connection(self) -> RepositoryClient | None:
        """Return the live client, lazily restoring it from stored credentials."""
        if self._github is not None:
            return self._github
        token = await self._stored_token()
        if not token:
            return None
        log.info("github_connection_restored", instance=self.instance_id)
        self._github = self._github_factory(token)
        return self._github

    async def set_github_token(self, token: str) -> dict[str, Any]:
        self.sink.set_connection(False)
        github = self._github_factory(token)
        try:
            user = await github.get_user()
        except Exception as e:
            await github.close()
            self._github = None
            log.warning("github_token_rejected", error=str(e))
            self.sink.set_connection(False, error=f"Failed to connect to GitHub: {e}")
            await self._checkpoint()
            return {"connected": False, "error": str(e)}

        if self._github is not None:
            await self._github.close()
        self._github = github
        self._disconnected = False
        username = user.get("login", "")
        if self._store is not None:
            await self._store.save_token(self.instance_id, token, username)
        self.sink.set_connection(True, username)
        await self._checkpoint()
        log.info("github_connected", username=username)
        return {"connected": True, "username": username}

    async def check_github_status(self) -> dict[str, Any]:
        if self._github is None:
            return {"connected": False}
        try:
            user = await self._github.get_user()
        except Exception as e:
            log.warning("github_status_failed", error=str(e))
            await self._github.close()
            self._github = None
            self.sink.set_connection(False)
            return {"connected": False}
        return {"connected": True, "username": user.get("login")}

    async def disconnect(self) -> dict[str, Any]:
        if self._github is not None:
            await self._github.close()
            self._github = None
        if self._store is not None:
            await self._store.delete_token(self.instance_id)
        self._disconnected = True
        self.sink.set_connection(False)
        self.sink.reset()
        await self._checkpoint()
        return {"disconnected": True}

    async def reset(self) -> None:
        self.sink.reset()
        await self._checkpoint()

    def get_status(self) -> dict[str, Any]:
        state = self.sink.snapshot()
        return {
            "status": state.status,
            "github_connected": state.github_connected,
            "github_username": state.github_username,
            "progress_messages": state.progress_messages,
            "result": state.result.to_dict() if state.result else None,
            "plan": state.plan.to_dict() if state.plan else None,
        }

    # --- Task invocation ---

    def _generator(self) -> ChangeSetGenerator:
        llm_cfg = self.settings.llm
        return ChangeSetGenerator(
            self._llm,
            model=llm_cfg.model,
            fallback_model=llm_cfg.fallback_model,
            max_attempts=self.settings.agent.generation_attempts,
            context_char_limit=self.settings.agent.context_char_limit,
            max_retries=llm_cfg.max_retries,
            retry_base_delay=llm_cfg.retry_base_delay,
            add_progress=self.sink.append_progress,
        )

    def _with_defaults(self, request: TaskRequest) -> TaskRequest:
        """Fill in the target branch and freeze the working branch name for this task."""
        return replace(
            request,
            branch_name=request.resolved_branch_name(),
            target_branch=request.target_branch or self.settings.agent.default_target_branch,
        )

    async def _finish(self, result: TaskResult) -> TaskResult:
        self.sink.finish(result)
        await self._checkpoint()
        log.info(
            "task_finished",
            instance=self.instance_id,
            success=result.success,
            pr_url=result.pr_url,
            error=result.error,
        )
        return result

    async def run_planned(self, request: TaskRequest) -> TaskResult:
        request = self._with_defaults(request)
        self.sink.begin_task(request, with_plan=True)
        await self._checkpoint()

        executor = PlanExecutor(
            self._generator(),
            self.sink,
            self.ensure_github_connection,
            on_step=self._checkpoint,
        )
        try:
            result = await executor.run(request)
        except Exception as e:
            log.exception("planned_task_crashed", instance=self.instance_id)
            self.sink.append_progress(f"Error: {e}")
            result = TaskResult(success=False, error=str(e))
        return await self._finish(result)

    async def run_autonomous(self, request: TaskRequest) -> TaskResult:
        request = self._with_defaults(request)
        self.sink.begin_task(request)
        await self._checkpoint()

        try:
            repo = parse_repo_locator(request.repo_url)
            github = await self.ensure_github_connection()
            if github is None:
                raise GitHubNotConnectedError()
        except (InvalidRepoLocatorError, GitHubNotConnectedError) as e:
            self.sink.append_progress(f"Error: {e}")
            return await self._finish(TaskResult(success=False, error=str(e)))

        self.sink.append_progress(f"Starting autonomous PR creation for {repo.full_name}")
        self.sink.set_status("generating")
        ctx = ToolContext(
            github=github,
            repo=repo,
            request=request,
            add_progress=self.sink.append_progress,
        )
        llm_cfg = self.settings.llm
        agent_cfg = self.settings.agent
        executor = ReActExecutor(
            self._llm,
            model=llm_cfg.model,
            max_steps=agent_cfg.max_steps,
            max_repeated_calls=agent_cfg.max_repeated_calls,
            max_changes_per_commit=agent_cfg.max_changes_per_commit,
            max_retries=llm_cfg.max_retries,
            retry_base_delay=llm_cfg.retry_base_delay,
        )
        result = await executor.run(ctx, on_step=self._checkpoint)
        if not result.success:
            self.sink.append_progress(f"Error: {result.error}")
        return await self._finish(result)
