"""Typed arguments for each repository tool.

Field names keep the camelCase the model is prompted with.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def parse_if_stringified(value: Any) -> list[Any] | None:
    """Return ``value`` as a list, decoding it first if a model sent a JSON string."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        trimmed = value.strip()
        if trimmed.startswith("["):
            try:
                parsed = json.loads(trimmed)
            except json.JSONDecodeError:
                return None
            if isinstance(parsed, list):
                return parsed
    return None


class ToolParams(BaseModel):
    # Unknown keys are dropped rather than rejected; models add chatter fields
    model_config = ConfigDict(extra="ignore")


class RepoStructureParams(ToolParams):
    path: str | None = None


class ReadFileParams(ToolParams):
    path: str
    ref: str | None = None


class CreateBranchParams(ToolParams):
    branchName: str
    fromBranch: str | None = None


class CommitFilesParams(ToolParams):
    branchName: str | None = None
    # Entries are checked one by one by the tool so a bad entry doesn't sink the batch
    changes: list[Any] | None = None

    @field_validator("changes", mode="before")
    @classmethod
    def _decode_stringified(cls, value: Any) -> list[Any] | None:
        return parse_if_stringified(value)


class CreatePullRequestParams(ToolParams):
    branchName: str | None = None
    targetBranch: str | None = None
    title: str | None = None
