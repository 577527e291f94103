"""Base tool interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

from pydantic import ValidationError

from prwright.github.base import RepositoryClient
from prwright.models import RepoLocator, TaskRequest
from prwright.tools.params import ToolParams, parse_if_stringified

ProgressFn = Callable[[str], None]


@dataclass
class ToolResult:
    success: bool
    output: str = ""
    error: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        """The JSON-able object handed back to the model."""
        if not self.success:
            return {"error": self.error}
        if self.data:
            return self.data
        return {"output": self.output}


@dataclass
class ToolContext:
    """Per-task state every repository tool closes over."""

    github: RepositoryClient
    repo: RepoLocator
    request: TaskRequest
    add_progress: ProgressFn


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        where = ".".join(str(p) for p in item["loc"]) or "arguments"
        parts.append(f"{where}: {item['msg']}")
    return "; ".join(parts)


class BaseTool(ABC):
    """A repository operation the model can call.

    ``execute`` validates raw model arguments against ``params_model`` and
    hands the typed result to ``run``; bad arguments come back as a failed
    ``ToolResult`` instead of an exception.
    """

    params_model: ClassVar[type[ToolParams]]

    def __init__(self, ctx: ToolContext) -> None:
        self._ctx = ctx

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema shown to the model."""
        ...

    @abstractmethod
    async def run(self, params: Any) -> ToolResult: ...

    async def execute(self, **kwargs: Any) -> ToolResult:
        try:
            params = self.params_model.model_validate(kwargs)
        except ValidationError as e:
            return ToolResult(
                success=False,
                error=f"Invalid arguments for {self.name}: {_describe_validation_error(e)}",
            )
        return await self.run(params)

    def to_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }
