"""Deterministic seven-step pipeline from request to pull request."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from prwright.core.state import StateSink
from prwright.errors import GitHubAPIError, GitHubNotConnectedError, PlanStepError
from prwright.github.base import RepositoryClient, decode_content
from prwright.models import FileChange, RepoLocator, TaskRequest, TaskResult, parse_repo_locator
from prwright.planner.generator import ChangeSetGenerator
from prwright.planner.models import PLAN_STEPS
from prwright.tools.change_tools import apply_file_change, build_pr_body, ensure_commits_ahead
from prwright.utils.logging import get_logger

log = get_logger(__name__)

ConnectFn = Callable[[], Awaitable["RepositoryClient | None"]]
StepHook = Callable[[], Awaitable[None]]

_INDEX_PREVIEW_CHARS = 1000
_CONTEXT_FILES = ("index.html", "README.md")


@dataclass
class _PlanRun:
    request: TaskRequest
    repo: RepoLocator | None = None
    github: RepositoryClient | None = None
    repo_context: str = ""
    changes: list[FileChange] = field(default_factory=list)
    branch: str = ""
    target: str = "main"
    result: TaskResult | None = None


class PlanExecutor:
    """Runs the fixed plan, recording each step's lifecycle in the sink.

    The sink must already hold a fresh plan (``StateSink.begin_task(...,
    with_plan=True)``). ``run`` never raises: a fatal step marks itself
    ``error``, later steps stay ``pending`` and a failed ``TaskResult`` comes back.
    """

    def __init__(
        self,
        generator: ChangeSetGenerator,
        sink: StateSink,
        connect: ConnectFn,
        on_step: StepHook | None = None,
    ) -> None:
        self._generator = generator
        self._sink = sink
        self._connect = connect
        self._on_step = on_step
        self._handlers: dict[str, Callable[[_PlanRun], Awaitable[None]]] = {
            "validate_input": self._validate_input,
            "ensure_github": self._ensure_github,
            "fetch_repo": self._fetch_repo,
            "generate_changes": self._generate_changes,
            "create_branch": self._create_branch,
            "apply_changes": self._apply_changes,
            "create_pr": self._create_pr,
        }

    def _progress(self, message: str) -> None:
        self._sink.append_progress(message)

    async def _checkpoint(self) -> None:
        if self._on_step:
            await self._on_step()

    async def run(self, request: TaskRequest) -> TaskResult:
        run = _PlanRun(request=request)

        for index, (step_id, label) in enumerate(PLAN_STEPS):
            self._sink.set_plan_step(index, "running")
            await self._checkpoint()
            try:
                await self._handlers[step_id](run)
            except Exception as e:
                message = str(e) or type(e).__name__
                log.warning("plan_step_failed", step=step_id, error=message)
                self._sink.set_plan_step(index, "error", message)
                self._progress(f"Error: {message}")
                await self._checkpoint()
                return TaskResult(success=False, branch_name=run.branch or None, error=message)
            self._sink.set_plan_step(index, "completed")
            log.info("plan_step_completed", step=step_id, label=label)
            await self._checkpoint()

        assert run.result is not None
        return run.result

    # --- Steps ---

    async def _validate_input(self, run: _PlanRun) -> None:
        run.repo = parse_repo_locator(run.request.repo_url)
        if not run.request.description.strip():
            raise PlanStepError("validate_input", "Description must not be empty")
        run.branch = run.request.resolved_branch_name()
        run.target = run.request.target_branch or "main"
        self._progress(f"Starting PR creation for {run.repo.full_name}")

    async def _ensure_github(self, run: _PlanRun) -> None:
        self._sink.set_status("connecting")
        github = await self._connect()
        if github is None:
            raise GitHubNotConnectedError()
        run.github = github

    async def _fetch_repo(self, run: _PlanRun) -> None:
        assert run.github is not None and run.repo is not None
        self._sink.set_status("analyzing")
        self._progress("Fetching repository contents...")
        owner, name = run.repo.owner, run.repo.repo
        lines: list[str] = []
        try:
            contents = await run.github.get_repo_contents(owner, name)
            lines.append("Repository structure:")
            for item in contents:
                lines.append(f"- {item.get('path')} ({item.get('type')})")
                if item.get("type") != "dir":
                    continue
                try:
                    sub_contents = await run.github.get_repo_contents(owner, name, item["path"])
                except GitHubAPIError as e:
                    log.debug("subdir_list_failed", path=item.get("path"), error=str(e))
                    continue
                for sub in sub_contents:
                    lines.append(f"  - {sub.get('path')} ({sub.get('type')})")

            for path in _CONTEXT_FILES:
                try:
                    text = decode_content(await run.github.get_file_content(owner, name, path))
                except GitHubAPIError:
                    continue
                if not text:
                    continue
                if path == "index.html":
                    lines.append(
                        f"\nindex.html exists at root (first {_INDEX_PREVIEW_CHARS} chars):\n"
                        f"{text[:_INDEX_PREVIEW_CHARS]}..."
                    )
                else:
                    lines.append(f"\n{path}:\n{text}")
            self._progress("Repository contents fetched")
        except Exception as e:
            # Generation can proceed without context
            log.warning("repo_fetch_failed", repo=run.repo.full_name, error=str(e))
            self._progress(f"Note: Could not fetch repo contents: {e}")
        run.repo_context = "\n".join(lines)

    async def _generate_changes(self, run: _PlanRun) -> None:
        self._sink.set_status("generating")
        run.changes = await self._generator.generate(run.request, run.repo_context)
        self._sink.set_generated_changes(run.changes)

    async def _create_branch(self, run: _PlanRun) -> None:
        assert run.github is not None and run.repo is not None
        self._sink.set_status("creating_pr")
        self._progress(f"Creating branch: {run.branch}")
        target_ref = await run.github.get_ref(run.repo.owner, run.repo.repo, run.target)
        await run.github.create_ref(
            run.repo.owner, run.repo.repo, run.branch, target_ref["object"]["sha"]
        )
        self._progress(f"Branch {run.branch} created")

    async def _apply_changes(self, run: _PlanRun) -> None:
        assert run.github is not None and run.repo is not None
        for change in run.changes:
            if change.action == "delete":
                log.warning("delete_not_supported", path=change.path)
                self._progress(f"Skipping delete for {change.path} (not supported)")
                continue
            self._progress(
                f"{'Creating' if change.action == 'create' else 'Updating'} {change.path}..."
            )
            try:
                await apply_file_change(
                    run.github, run.repo, change, run.branch,
                    run.request.description, self._progress,
                )
            except Exception as e:
                log.warning("commit_failed", path=change.path, error=str(e))
                self._progress(f"Warning: Could not {change.action} {change.path}: {e}")
                continue
            self._progress(f"{change.path} committed")

    async def _create_pr(self, run: _PlanRun) -> None:
        assert run.github is not None and run.repo is not None
        self._progress("Checking for commits between base and feature branch...")
        await ensure_commits_ahead(run.github, run.repo, run.target, run.branch)

        self._progress("Creating pull request...")
        pr: dict[str, Any] = await run.github.create_pull_request(
            run.repo.owner,
            run.repo.repo,
            run.request.description[:100],
            build_pr_body(run.request.description, run.changes),
            run.branch,
            run.target,
        )
        self._progress("Pull request created successfully!")
        run.result = TaskResult(success=True, pr_url=pr.get("html_url"), branch_name=run.branch)
