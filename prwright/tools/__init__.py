"""Repository tools exposed to the model."""

from prwright.tools.base import BaseTool, ToolContext, ToolResult
from prwright.tools.params import parse_if_stringified
from prwright.tools.change_tools import CommitFilesTool, CreatePullRequestTool
from prwright.tools.registry import TOOL_NAMES, ToolRegistry, build_registry
from prwright.tools.repo_tools import CreateBranchTool, GetRepoStructureTool, ReadFileTool

__all__ = [
    "BaseTool",
    "ToolContext",
    "ToolResult",
    "parse_if_stringified",
    "GetRepoStructureTool",
    "ReadFileTool",
    "CreateBranchTool",
    "CommitFilesTool",
    "CreatePullRequestTool",
    "ToolRegistry",
    "TOOL_NAMES",
    "build_registry",
]
