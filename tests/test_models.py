"""Tests for request/result models and repository locator parsing."""

import pytest

from prwright.errors import InvalidRepoLocatorError
from prwright.models import (
    RepoLocator,
    TaskRequest,
    TaskResult,
    ToolCallRecord,
    derive_branch_name,
    parse_repo_locator,
)


class TestParseRepoLocator:
    @pytest.mark.parametrize("value,expected", [
        ("https://github.com/octo/demo", ("octo", "demo")),
        ("https://github.com/octo/demo.git", ("octo", "demo")),
        ("github.com/octo/demo/tree/main", ("octo", "demo")),
        ("octo/demo", ("octo", "demo")),
        ("  octo/demo  ", ("octo", "demo")),
    ])
    def test_accepted(self, value, expected):
        loc = parse_repo_locator(value)
        assert (loc.owner, loc.repo) == expected
        assert loc.full_name == f"{expected[0]}/{expected[1]}"

    @pytest.mark.parametrize("value", ["", "demo", "octo/demo/extra", "https://gitlab.com/octo"])
    def test_rejected(self, value):
        with pytest.raises(InvalidRepoLocatorError, match="owner/repo"):
            parse_repo_locator(value)


class TestBranchName:
    def test_derived(self):
        name = derive_branch_name("Add dark mode toggle!", now_ms=1700000000000)
        assert name == "feature/1700000000000-add-dark-mode-toggle"

    def test_slug_uses_first_twenty_chars(self):
        name = derive_branch_name("Fix the header/footer spacing on mobile", now_ms=1)
        assert name == "feature/1-fix-the-header-foote"

    def test_explicit_branch_wins(self):
        req = TaskRequest(repo_url="octo/demo", description="x", branch_name="fix/y")
        assert req.resolved_branch_name() == "fix/y"

    def test_request_default_target(self):
        assert TaskRequest(repo_url="octo/demo", description="x").target_branch == "main"


class TestRecords:
    def test_result_to_dict(self):
        result = TaskResult(success=False, error="boom")
        assert result.to_dict() == {
            "success": False, "pr_url": None, "branch_name": None, "error": "boom",
        }

    def test_record_failed(self):
        assert ToolCallRecord("read_file", {}, {"error": "x"}).failed is True
        assert ToolCallRecord("read_file", {}, {"content": "x"}).failed is False

    def test_locator_is_frozen(self):
        loc = RepoLocator("octo", "demo")
        with pytest.raises(AttributeError):
            loc.owner = "other"
