"""Write-side repository tools: committing files and opening the pull request."""

from __future__ import annotations

from typing import Any

from prwright.errors import GitHubAPIError, PreflightError
from prwright.github.base import RepositoryClient
from prwright.models import FileChange, RepoLocator
from prwright.tools.base import BaseTool, ProgressFn, ToolContext, ToolResult
from prwright.tools.params import CommitFilesParams, CreatePullRequestParams
from prwright.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_MAX_CHANGES = 10
PR_FOOTER = "*Created by prwright*"


def commit_message(change: FileChange, description: str) -> str:
    return f"{change.action}: {change.path} - {description[:50]}"


def build_pr_body(description: str, changes: list[FileChange] | None = None) -> str:
    parts = [f"## Summary\n\n{description}"]
    if changes:
        lines = "\n".join(f"- {c.action}: `{c.path}`" for c in changes)
        parts.append(f"## Changes\n\n{lines}")
    parts.append(f"---\n{PR_FOOTER}")
    return "\n\n".join(parts)


async def apply_file_change(
    github: RepositoryClient,
    repo: RepoLocator,
    change: FileChange,
    branch: str,
    description: str,
    add_progress: ProgressFn,
) -> None:
    """Create or update one file on ``branch``.

    An update whose file is missing becomes a create. Any other lookup or
    commit failure is raised.
    """
    sha: str | None = None
    if change.action == "update":
        # The contents API needs the current blob sha to replace a file
        try:
            existing = await github.get_file_content(repo.owner, repo.repo, change.path, branch)
            sha = existing.get("sha")
            add_progress(f"Found existing file {change.path}, updating...")
        except GitHubAPIError as e:
            if not e.is_not_found:
                log.warning("sha_lookup_failed", path=change.path, error=str(e))
                raise
            add_progress(f"File {change.path} not found on {branch}, will create instead")

    await github.create_or_update_file(
        repo.owner,
        repo.repo,
        change.path,
        change.content,
        commit_message(change, description),
        branch,
        sha,
    )


async def ensure_commits_ahead(
    github: RepositoryClient, repo: RepoLocator, base: str, head: str
) -> int:
    """Fail unless ``head`` has at least one commit that ``base`` lacks."""
    try:
        cmp = await github.compare_commits(repo.owner, repo.repo, base, head)
    except Exception as e:
        raise PreflightError(f"Preflight check failed: {e}") from e

    ahead_by = cmp.get("ahead_by") if isinstance(cmp, dict) else None
    if not isinstance(ahead_by, int):
        raise PreflightError("Preflight check failed: Could not compare branches")
    if ahead_by <= 0:
        raise PreflightError(
            f"Preflight check failed: No commits between {base} and {head}. Use "
            "commit_files to create at least one commit before creating a PR."
        )
    return ahead_by


class CommitFilesTool(BaseTool):
    params_model = CommitFilesParams

    def __init__(self, ctx: ToolContext, max_changes: int = DEFAULT_MAX_CHANGES) -> None:
        super().__init__(ctx)
        self._max_changes = max_changes

    @property
    def name(self) -> str:
        return "commit_files"

    @property
    def description(self) -> str:
        return (
            "Commit one or more file changes to a branch. IMPORTANT: For 'update' "
            "actions, you MUST include the COMPLETE file content with your modifications "
            "added to the existing code. Never delete existing code unless explicitly "
            "requested. Read the file first, then modify it, then commit the full "
            "modified version."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "branchName": {
                    "type": "string",
                    "description": "Branch to commit to",
                },
                "changes": {
                    "type": "array",
                    "description": "List of file changes to apply",
                    "items": {
                        "type": "object",
                        "properties": {
                            "path": {
                                "type": "string",
                                "description": "File path to create or update",
                            },
                            "content": {
                                "type": "string",
                                "description": (
                                    "Complete file content (for updates: existing code "
                                    "+ modifications)"
                                ),
                            },
                            "action": {
                                "type": "string",
                                "enum": ["create", "update"],
                                "description": "Whether to create a new file or update an existing one",
                            },
                        },
                        "required": ["path", "content", "action"],
                    },
                },
            },
            "required": ["branchName", "changes"],
        }

    def _valid_changes(self, raw: list[Any]) -> list[FileChange]:
        ctx = self._ctx
        valid: list[FileChange] = []
        for entry in raw:
            if not isinstance(entry, dict):
                ctx.add_progress("Skipping invalid change entry (not an object)")
                continue
            path = entry.get("path")
            if not isinstance(path, str) or not path.strip():
                ctx.add_progress("Skipping invalid change entry (missing path)")
                continue
            content = entry.get("content")
            if not isinstance(content, str):
                ctx.add_progress(f"Skipping {path}: missing content")
                continue
            action = entry.get("action")
            if action == "delete":
                ctx.add_progress(f"Skipping delete for {path} (not supported)")
                continue
            valid.append(FileChange(
                path=path,
                content=content,
                action="update" if action == "update" else "create",
            ))
        return valid

    async def run(self, params: CommitFilesParams) -> ToolResult:
        ctx = self._ctx
        branch_name = params.branchName or ctx.request.resolved_branch_name()
        changes = params.changes

        if not changes:
            return ToolResult(
                success=False,
                error=(
                    "No changes provided or the 'changes' value could not be parsed. "
                    "Ensure 'changes' is a JSON array (not a string) with entries like: "
                    '[{"path":"file.css","content":"body{background:black}","action":"update"}]'
                ),
            )

        valid = self._valid_changes(changes)
        if not valid:
            return ToolResult(
                success=False,
                error=(
                    "All change entries were invalid (missing path or content). Each entry "
                    "must have: path (string), content (string), action ('create' | 'update')."
                ),
            )

        if len(valid) > self._max_changes:
            log.warning("commit_batch_truncated", requested=len(valid), limit=self._max_changes)
            ctx.add_progress(
                f"Warning: {len(valid)} changes requested, limiting to first "
                f"{self._max_changes}. Commit in smaller batches if you need more."
            )
        batch = valid[: self._max_changes]

        results: list[dict[str, str]] = []
        for change in batch:
            ctx.add_progress(
                f"{'Creating' if change.action == 'create' else 'Updating'} {change.path}..."
            )
            try:
                await apply_file_change(
                    ctx.github, ctx.repo, change, branch_name,
                    ctx.request.description, ctx.add_progress,
                )
            except Exception as e:
                results.append({"path": change.path, "status": f"error: {e}"})
                ctx.add_progress(f"Error: {change.path} failed - {e}")
                continue
            results.append({"path": change.path, "status": "ok"})
            ctx.add_progress(f"{change.path} committed successfully")

        success_count = sum(1 for r in results if r["status"] == "ok")
        error_count = len(results) - success_count
        ctx.add_progress(f"Committed {success_count} file(s), {error_count} error(s)")
        return ToolResult(
            success=True,
            data={"results": results, "successCount": success_count, "errorCount": error_count},
        )


class CreatePullRequestTool(BaseTool):
    params_model = CreatePullRequestParams

    @property
    def name(self) -> str:
        return "create_pull_request"

    @property
    def description(self) -> str:
        return (
            "Create a pull request from a branch to the target branch. Call this after "
            "all files are committed."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "branchName": {
                    "type": "string",
                    "description": "Source branch for the PR",
                },
                "targetBranch": {
                    "type": "string",
                    "description": "Target branch (default: main)",
                },
                "title": {
                    "type": "string",
                    "description": "PR title (defaults to description)",
                },
            },
            "required": ["branchName"],
        }

    async def run(self, params: CreatePullRequestParams) -> ToolResult:
        ctx = self._ctx
        branch_name = params.branchName or ctx.request.resolved_branch_name()
        base = params.targetBranch or ctx.request.target_branch or "main"
        description = ctx.request.description
        title = params.title or description[:100]

        ctx.add_progress("Checking for commits between base and feature branch...")
        try:
            await ensure_commits_ahead(ctx.github, ctx.repo, base, branch_name)
        except PreflightError as e:
            return ToolResult(success=False, error=str(e))

        ctx.add_progress("Creating pull request...")
        try:
            pr = await ctx.github.create_pull_request(
                ctx.repo.owner,
                ctx.repo.repo,
                title,
                build_pr_body(description),
                branch_name,
                base,
            )
        except GitHubAPIError as e:
            if "already exists" not in str(e):
                raise
            ctx.add_progress("A pull request already exists for this branch - treating as success.")
            return ToolResult(
                success=True,
                data={
                    "success": True,
                    "prUrl": f"https://github.com/{ctx.repo.full_name}/pulls",
                    "branchName": branch_name,
                    "alreadyExists": True,
                },
            )

        ctx.add_progress("Pull request created successfully!")
        return ToolResult(
            success=True,
            data={
                "success": True,
                "prUrl": pr.get("html_url"),
                "branchName": branch_name,
                "prNumber": pr.get("number"),
            },
        )
