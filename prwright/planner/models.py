"""Planner data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

StepStatus = Literal["pending", "running", "completed", "skipped", "error"]

# (id, label) for the seven fixed steps, in execution order
PLAN_STEPS: tuple[tuple[str, str], ...] = (
    ("validate_input", "Validate input"),
    ("ensure_github", "Ensure GitHub connection"),
    ("fetch_repo", "Fetch repository context"),
    ("generate_changes", "Generate code changes"),
    ("create_branch", "Create branch"),
    ("apply_changes", "Apply changes"),
    ("create_pr", "Create pull request"),
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class PlanStep:
    id: str
    label: str
    status: StepStatus = "pending"
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "status": self.status,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanStep:
        return cls(
            id=data["id"],
            label=data["label"],
            status=data.get("status", "pending"),
            started_at=_parse_dt(data.get("started_at")),
            completed_at=_parse_dt(data.get("completed_at")),
            error=data.get("error"),
        )


@dataclass
class ExecutionPlan:
    steps: list[PlanStep]
    current_step_index: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def default(cls) -> ExecutionPlan:
        return cls(steps=[PlanStep(id=sid, label=label) for sid, label in PLAN_STEPS])

    def index_of(self, step_id: str) -> int:
        for i, step in enumerate(self.steps):
            if step.id == step_id:
                return i
        raise KeyError(step_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "current_step_index": self.current_step_index,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionPlan:
        return cls(
            steps=[PlanStep.from_dict(s) for s in data.get("steps", [])],
            current_step_index=data.get("current_step_index", 0),
            created_at=_parse_dt(data.get("created_at")) or datetime.now(timezone.utc),
        )
