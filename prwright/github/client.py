"""GitHub REST API client over httpx."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from prwright.config import GitHubConfig
from prwright.errors import GitHubAPIError
from prwright.github.base import RepositoryClient, encode_content
from prwright.utils.logging import get_logger

log = get_logger(__name__)


class GitHubClient(RepositoryClient):
    def __init__(
        self,
        token: str,
        config: GitHubConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or GitHubConfig()
        self._client = httpx.AsyncClient(
            base_url=self._config.api_url.rstrip("/"),
            timeout=self._config.timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": self._config.user_agent,
            },
        )

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        log.debug("github_request", method=method, endpoint=endpoint)
        try:
            resp = await self._client.request(method, endpoint, **kwargs)
        except httpx.TransportError as e:
            # No response; reported as the gateway status a proxy would have sent
            status = 504 if isinstance(e, httpx.TimeoutException) else 503
            raise GitHubAPIError(status, f"upstream temporarily unreachable: {e}") from e
        if resp.is_error:
            raise GitHubAPIError(resp.status_code, resp.text)
        return resp.json()

    async def get_user(self) -> dict[str, Any]:
        return await self._request("GET", "/user")

    async def get_repo_contents(
        self, owner: str, repo: str, path: str = ""
    ) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/repos/{owner}/{repo}/contents/{quote(path)}")
        # A file path returns a single object, not a listing
        return data if isinstance(data, list) else [data]

    async def get_file_content(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> dict[str, Any]:
        params = {"ref": ref} if ref else None
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/contents/{quote(path)}", params=params
        )

    async def get_ref(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}")

    async def create_ref(
        self, owner: str, repo: str, branch: str, sha: str
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, str] = {
            "message": message,
            "content": encode_content(content),
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        return await self._request(
            "PUT", f"/repos/{owner}/{repo}/contents/{quote(path)}", json=body
        )

    async def create_pull_request(
        self, owner: str, repo: str, title: str, body: str, head: str, base: str
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )

    async def compare_commits(
        self, owner: str, repo: str, base: str, head: str
    ) -> dict[str, Any]:
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/compare/{quote(base)}...{quote(head)}"
        )

    async def close(self) -> None:
        await self._client.aclose()
