"""Repository client interface consumed by the tools and the plan executor."""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from typing import Any


def encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(payload: dict[str, Any]) -> str:
    """Decode the base64 ``content`` field of a contents API response."""
    raw = payload.get("content") or ""
    if not raw:
        return ""
    return base64.b64decode(raw.replace("\n", "")).decode("utf-8", errors="replace")


class RepositoryClient(ABC):
    """Hosted repository operations.

    Every failure raises ``GitHubAPIError``; a 404 is the signal callers use
    to tell "missing" apart from other errors.
    """

    @abstractmethod
    async def get_user(self) -> dict[str, Any]: ...

    @abstractmethod
    async def get_repo_contents(
        self, owner: str, repo: str, path: str = ""
    ) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def get_file_content(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> dict[str, Any]: ...

    @abstractmethod
    async def get_ref(self, owner: str, repo: str, branch: str) -> dict[str, Any]: ...

    @abstractmethod
    async def create_ref(
        self, owner: str, repo: str, branch: str, sha: str
    ) -> dict[str, Any]: ...

    @abstractmethod
    async def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> dict[str, Any]: ...

    @abstractmethod
    async def create_pull_request(
        self, owner: str, repo: str, title: str, body: str, head: str, base: str
    ) -> dict[str, Any]: ...

    @abstractmethod
    async def compare_commits(
        self, owner: str, repo: str, base: str, head: str
    ) -> dict[str, Any]: ...

    async def close(self) -> None:
        """Release network resources. Override if needed."""
