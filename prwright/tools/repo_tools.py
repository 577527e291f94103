"""Read-side repository tools plus branch creation."""

from __future__ import annotations

from typing import Any

from prwright.errors import GitHubAPIError
from prwright.github.base import decode_content
from prwright.tools.base import BaseTool, ToolResult
from prwright.tools.params import CreateBranchParams, ReadFileParams, RepoStructureParams
from prwright.utils.logging import get_logger

log = get_logger(__name__)

_LARGE_FILE_CHARS = 10_000


def _is_not_found(error: Exception) -> bool:
    if isinstance(error, GitHubAPIError) and error.is_not_found:
        return True
    message = str(error)
    return "404" in message or "Not Found" in message


def _is_already_exists(error: Exception) -> bool:
    if isinstance(error, GitHubAPIError) and error.status_code == 422:
        return True
    message = str(error)
    return "already exists" in message or "422" in message


class GetRepoStructureTool(BaseTool):
    params_model = RepoStructureParams

    @property
    def name(self) -> str:
        return "get_repo_structure"

    @property
    def description(self) -> str:
        return (
            "Get the file and directory structure of the repository. Returns a list "
            "of paths with their types (file or dir). Use this first to understand "
            "the project layout."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Subpath to list (e.g. 'src' or '' for root)",
                },
            },
            "required": [],
        }

    async def run(self, params: RepoStructureParams) -> ToolResult:
        path = params.path or ""
        ctx = self._ctx
        ctx.add_progress(f"Listing repository structure at {path or 'root'}...")
        try:
            contents = await ctx.github.get_repo_contents(ctx.repo.owner, ctx.repo.repo, path)
        except GitHubAPIError as e:
            return ToolResult(success=False, error=f"Failed to list {path or 'root'}: {e}")

        structure = [{"path": item.get("path"), "type": item.get("type")} for item in contents]
        ctx.add_progress(f"Found {len(structure)} items")
        return ToolResult(success=True, data={"structure": structure})


class ReadFileTool(BaseTool):
    params_model = ReadFileParams

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return (
            "Read the contents of a file from the repository. IMPORTANT: You MUST only "
            "use paths that were returned by get_repo_structure. NEVER guess or invent "
            "paths like 'public/index.html' - always call get_repo_structure first. "
            "Always read a file BEFORE modifying it to preserve existing code."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Full path to the file (e.g. 'index.html' or 'src/main.ts')",
                },
                "ref": {
                    "type": "string",
                    "description": "Optional: branch/ref to read from (defaults to the default branch)",
                },
            },
            "required": ["path"],
        }

    async def run(self, params: ReadFileParams) -> ToolResult:
        path = params.path
        ref = params.ref or None
        ctx = self._ctx
        ctx.add_progress(f"Reading {path}{f' from {ref}' if ref else ''}...")

        try:
            payload = await ctx.github.get_file_content(ctx.repo.owner, ctx.repo.repo, path, ref)
        except Exception as e:
            if _is_not_found(e):
                return ToolResult(
                    success=False,
                    error=(
                        f'File "{path}" does not exist in the repository. Do NOT guess '
                        "another path. Call get_repo_structure to list the actual files "
                        "and directories, then use one of the returned paths."
                    ),
                )
            return ToolResult(success=False, error=f"Failed to read {path}: {e}")

        text = decode_content(payload)
        if len(text) > _LARGE_FILE_CHARS:
            ctx.add_progress(f"File {path} is very large ({len(text)} chars)")
        # Full content is always returned so edits can preserve the whole file
        return ToolResult(
            success=True,
            data={"path": path, "content": text, "truncated": False, "length": len(text)},
        )


class CreateBranchTool(BaseTool):
    params_model = CreateBranchParams

    @property
    def name(self) -> str:
        return "create_branch"

    @property
    def description(self) -> str:
        return (
            "Create a new branch from the target branch. Must be called before "
            "committing any changes."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "branchName": {
                    "type": "string",
                    "description": "Name for the new branch (e.g. 'feature/dark-mode')",
                },
                "fromBranch": {
                    "type": "string",
                    "description": "Branch to create from (default: main)",
                },
            },
            "required": ["branchName"],
        }

    async def run(self, params: CreateBranchParams) -> ToolResult:
        branch_name = params.branchName.strip()
        source = params.fromBranch or "main"
        ctx = self._ctx
        if not branch_name:
            return ToolResult(success=False, error="branchName is required")

        ctx.add_progress(f"Creating branch {branch_name} from {source}...")
        try:
            source_ref = await ctx.github.get_ref(ctx.repo.owner, ctx.repo.repo, source)
            await ctx.github.create_ref(
                ctx.repo.owner, ctx.repo.repo, branch_name, source_ref["object"]["sha"]
            )
        except Exception as e:
            if _is_already_exists(e):
                ctx.add_progress(f"Branch {branch_name} already exists, continuing...")
                return ToolResult(
                    success=True,
                    data={"success": True, "branchName": branch_name, "alreadyExists": True},
                )
            return ToolResult(success=False, error=f"Failed to create branch: {e}")

        ctx.add_progress(f"Branch {branch_name} created successfully")
        return ToolResult(success=True, data={"success": True, "branchName": branch_name})
