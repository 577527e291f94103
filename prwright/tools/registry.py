"""Fixed catalog of repository tools for one task."""

from __future__ import annotations

from typing import Any

from prwright.tools.base import BaseTool, ToolContext
from prwright.tools.change_tools import DEFAULT_MAX_CHANGES, CommitFilesTool, CreatePullRequestTool
from prwright.tools.repo_tools import CreateBranchTool, GetRepoStructureTool, ReadFileTool

TOOL_NAMES = (
    "get_repo_structure",
    "read_file",
    "create_branch",
    "commit_files",
    "create_pull_request",
)


class ToolRegistry:
    def __init__(self, tools: list[BaseTool]) -> None:
        self._tools: dict[str, BaseTool] = {t.name: t for t in tools}

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [t.to_schema() for t in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_registry(ctx: ToolContext, max_changes: int = DEFAULT_MAX_CHANGES) -> ToolRegistry:
    """Bind the five repository tools to one task's context."""
    return ToolRegistry([
        GetRepoStructureTool(ctx),
        ReadFileTool(ctx),
        CreateBranchTool(ctx),
        CommitFilesTool(ctx, max_changes=max_changes),
        CreatePullRequestTool(ctx),
    ])
