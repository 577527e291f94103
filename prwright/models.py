"""Typed task models shared by both executors."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

from prwright.errors import InvalidRepoLocatorError

FileAction = Literal["create", "update", "delete"]
FILE_ACTIONS: tuple[str, ...] = ("create", "update", "delete")

_REPO_PATTERNS = [
    re.compile(r"github\.com/([^/]+)/([^/\s]+)"),
    re.compile(r"^([^/\s]+)/([^/\s]+)$"),
]


@dataclass(frozen=True)
class RepoLocator:
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repo_locator(value: str) -> RepoLocator:
    """Parse ``owner/repo`` or a github.com URL. Raises InvalidRepoLocatorError."""
    text = (value or "").strip()
    for pattern in _REPO_PATTERNS:
        match = pattern.search(text)
        if match:
            repo = match.group(2)
            if repo.endswith(".git"):
                repo = repo[:-4]
            repo = repo.rstrip("/")
            if match.group(1) and repo:
                return RepoLocator(owner=match.group(1), repo=repo)
    raise InvalidRepoLocatorError(text)


def derive_branch_name(description: str, now_ms: int | None = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    slug = re.sub(r"[^a-z0-9]", "-", description[:20], flags=re.IGNORECASE).lower()
    return f"feature/{stamp}-{slug}"


@dataclass(frozen=True)
class TaskRequest:
    repo_url: str
    description: str
    branch_name: str | None = None
    target_branch: str = "main"

    def resolved_branch_name(self, now_ms: int | None = None) -> str:
        return self.branch_name or derive_branch_name(self.description, now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo_url": self.repo_url,
            "description": self.description,
            "branch_name": self.branch_name,
            "target_branch": self.target_branch,
        }


@dataclass
class FileChange:
    path: str
    content: str
    action: FileAction = "update"

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "content": self.content, "action": self.action}


@dataclass
class TaskResult:
    success: bool
    pr_url: str | None = None
    branch_name: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "pr_url": self.pr_url,
            "branch_name": self.branch_name,
            "error": self.error,
        }


@dataclass
class ToolCallRecord:
    name: str
    arguments: dict[str, Any] | str
    result: dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return "error" in self.result
