"""Exception hierarchy for prwright."""

from __future__ import annotations


class PRWrightError(Exception):
    """Base class for every error raised by prwright."""


class InvalidRepoLocatorError(PRWrightError):
    def __init__(self, locator: str) -> None:
        self.locator = locator
        super().__init__(
            "Invalid GitHub repository URL. Use format: owner/repo or "
            "https://github.com/owner/repo"
        )


class GitHubNotConnectedError(PRWrightError):
    def __init__(self) -> None:
        super().__init__(
            "GitHub not connected. Please set your GitHub Personal Access Token first."
        )


class GitHubAPIError(PRWrightError):
    """A non-2xx response from the GitHub REST API."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"GitHub API error: {status_code} - {body}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ModelError(PRWrightError):
    """A failed model invocation. ``status_code`` is set when the provider reports one."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ChangeSetValidationError(PRWrightError):
    def __init__(self, attempts: int, last_error: str) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"AI generation failed after {attempts} attempt(s): {last_error}"
        )


class PlanStepError(PRWrightError):
    """Fatal failure of one deterministic plan step."""

    def __init__(self, step_id: str, message: str) -> None:
        self.step_id = step_id
        super().__init__(message)


class PreflightError(PRWrightError):
    """The feature branch is not in a state that can be opened as a pull request."""
