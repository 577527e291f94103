"""Shared fixtures: an in-memory GitHub repository and a scripted model."""

import base64
import hashlib
from unittest.mock import AsyncMock

import pytest

from prwright.errors import GitHubAPIError
from prwright.github.base import RepositoryClient
from prwright.models import RepoLocator, TaskRequest
from prwright.tools.base import ToolContext


def _sha(*parts: str) -> str:
    return hashlib.sha1("\0".join(parts).encode()).hexdigest()


class FakeRepository(RepositoryClient):
    """Just enough of the GitHub contents/refs/pulls API to run a task end to end."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.calls: list[tuple[str, tuple]] = []
        # branch -> {path: content}
        self.trees: dict[str, dict[str, str]] = {"main": dict(files or {})}
        self.heads: dict[str, str] = {"main": _sha("main", "root")}
        self.ahead: dict[str, int] = {"main": 0}
        self.pulls: dict[str, dict] = {}
        self.fail_compare: Exception | None = None
        self.fail_commit_paths: set[str] = set()

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))

    def called(self, name: str) -> list[tuple]:
        return [args for n, args in self.calls if n == name]

    def _tree(self, branch: str) -> dict[str, str]:
        if branch not in self.trees:
            raise GitHubAPIError(404, '{"message":"Not Found"}')
        return self.trees[branch]

    async def get_user(self):
        self._record("get_user")
        return {"login": "octocat"}

    async def get_repo_contents(self, owner, repo, path=""):
        self._record("get_repo_contents", path)
        prefix = f"{path.strip('/')}/" if path else ""
        entries: dict[str, str] = {}
        for file_path in self.trees["main"]:
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            head, sep, _ = rest.partition("/")
            entries[prefix + head] = "dir" if sep else "file"
        if not entries:
            raise GitHubAPIError(404, '{"message":"Not Found"}')
        return [{"path": p, "type": t} for p, t in sorted(entries.items())]

    async def get_file_content(self, owner, repo, path, ref=None):
        self._record("get_file_content", path, ref)
        tree = self._tree(ref or "main")
        if path not in tree:
            raise GitHubAPIError(404, '{"message":"Not Found"}')
        content = tree[path]
        return {
            "content": base64.b64encode(content.encode()).decode(),
            "sha": _sha(path, content),
        }

    async def get_ref(self, owner, repo, branch):
        self._record("get_ref", branch)
        if branch not in self.heads:
            raise GitHubAPIError(404, '{"message":"Not Found"}')
        return {"ref": f"refs/heads/{branch}", "object": {"sha": self.heads[branch]}}

    async def create_ref(self, owner, repo, branch, sha):
        self._record("create_ref", branch, sha)
        if branch in self.heads:
            raise GitHubAPIError(422, '{"message":"Reference already exists"}')
        source = next(b for b, head in self.heads.items() if head == sha)
        self.trees[branch] = dict(self.trees[source])
        self.heads[branch] = sha
        self.ahead[branch] = 0
        return {"ref": f"refs/heads/{branch}", "object": {"sha": sha}}

    async def create_or_update_file(self, owner, repo, path, content, message, branch, sha=None):
        self._record("create_or_update_file", path, content, message, branch, sha)
        tree = self._tree(branch)
        if path in self.fail_commit_paths:
            raise GitHubAPIError(500, '{"message":"Server Error"}')
        if path in tree and sha != _sha(path, tree[path]):
            raise GitHubAPIError(422, '{"message":"\\"sha\\" wasn\'t supplied."}')
        tree[path] = content
        self.heads[branch] = _sha(branch, path, content)
        self.ahead[branch] = self.ahead.get(branch, 0) + 1
        return {"content": {"path": path, "sha": _sha(path, content)}}

    async def create_pull_request(self, owner, repo, title, body, head, base):
        self._record("create_pull_request", title, body, head, base)
        if head in self.pulls:
            raise GitHubAPIError(
                422, '{"message":"A pull request already exists for octo:' + head + '."}'
            )
        number = len(self.pulls) + 1
        self.pulls[head] = {"title": title, "body": body, "base": base}
        return {"html_url": f"https://github.com/{owner}/{repo}/pull/{number}", "number": number}

    async def compare_commits(self, owner, repo, base, head):
        self._record("compare_commits", base, head)
        if self.fail_compare is not None:
            raise self.fail_compare
        return {"ahead_by": self.ahead.get(head, 0), "behind_by": 0}


@pytest.fixture
def fake_repo():
    return FakeRepository({
        "README.md": "# Demo\n",
        "index.html": "<html><body>Hello</body></html>\n",
        "src/app.css": "body { color: black; }\n",
        "src/app.js": "console.log('hi');\n",
    })


@pytest.fixture
def progress():
    return []


@pytest.fixture
def request_():
    return TaskRequest(
        repo_url="https://github.com/octo/demo",
        description="Add a dark mode toggle",
        branch_name="feature/dark-mode",
    )


@pytest.fixture
def tool_ctx(fake_repo, progress, request_):
    return ToolContext(
        github=fake_repo,
        repo=RepoLocator("octo", "demo"),
        request=request_,
        add_progress=progress.append,
    )


@pytest.fixture
def mock_llm():
    llm = AsyncMock()
    llm.complete = AsyncMock()
    return llm
