"""Per-instance task state and the progress/state sink that mutates it."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Literal

from prwright.models import FileChange, TaskRequest, TaskResult
from prwright.planner.models import ExecutionPlan, StepStatus
from prwright.utils.logging import get_logger

log = get_logger(__name__)

TaskStatus = Literal[
    "idle", "connecting", "analyzing", "generating", "creating_pr", "completed", "error",
]
TERMINAL_STATUSES = ("completed", "error")

Listener = Callable[["AgentTaskState"], None]

_ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("running", "skipped"),
    "running": ("completed", "error", "skipped"),
    "completed": (),
    "skipped": (),
    "error": (),
}


class StateFinalError(RuntimeError):
    """Raised when a terminal task state is mutated."""


@dataclass
class AgentTaskState:
    status: TaskStatus = "idle"
    current_request: TaskRequest | None = None
    generated_changes: list[FileChange] = field(default_factory=list)
    result: TaskResult | None = None
    progress_messages: list[str] = field(default_factory=list)
    plan: ExecutionPlan | None = None
    github_connected: bool = False
    github_username: str | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "current_request": self.current_request.to_dict() if self.current_request else None,
            "generated_changes": [c.to_dict() for c in self.generated_changes],
            "result": self.result.to_dict() if self.result else None,
            "progress_messages": list(self.progress_messages),
            "plan": self.plan.to_dict() if self.plan else None,
            "github_connected": self.github_connected,
            "github_username": self.github_username,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentTaskState:
        request = data.get("current_request")
        result = data.get("result")
        plan = data.get("plan")
        return cls(
            status=data.get("status", "idle"),
            current_request=TaskRequest(**request) if request else None,
            generated_changes=[FileChange(**c) for c in data.get("generated_changes", [])],
            result=TaskResult(**result) if result else None,
            progress_messages=list(data.get("progress_messages", [])),
            plan=ExecutionPlan.from_dict(plan) if plan else None,
            github_connected=data.get("github_connected", False),
            github_username=data.get("github_username"),
            error_message=data.get("error_message"),
        )


class StateSink:
    """Single writer for one agent instance's ``AgentTaskState``.

    Observers read via ``snapshot()`` or ``subscribe()``; neither hands out
    the live object.
    """

    def __init__(self, instance_id: str, state: AgentTaskState | None = None) -> None:
        self.instance_id = instance_id
        self._state = state or AgentTaskState()
        self._listeners: list[Listener] = []

    # --- Observers ---

    def snapshot(self) -> AgentTaskState:
        return copy.deepcopy(self._state)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in self._listeners:
            try:
                listener(snap)
            except Exception:
                log.exception("state_listener_error", instance=self.instance_id)

    def _check_writable(self) -> None:
        if self._state.is_terminal:
            raise StateFinalError(
                f"task state for {self.instance_id} is final ({self._state.status})"
            )

    # --- Task lifecycle ---

    def begin_task(self, request: TaskRequest, with_plan: bool = False) -> None:
        """Start a fresh task, discarding the previous task's progress and result."""
        state = self._state
        state.status = "analyzing"
        state.current_request = request
        state.generated_changes = []
        state.result = None
        state.progress_messages = []
        state.error_message = None
        state.plan = ExecutionPlan.default() if with_plan else None
        self._notify()

    def set_status(self, status: TaskStatus) -> None:
        if status in TERMINAL_STATUSES:
            raise ValueError("use finish() to end a task")
        self._check_writable()
        self._state.status = status
        self._notify()

    def append_progress(self, message: str) -> None:
        self._check_writable()
        log.info("progress", instance=self.instance_id, message=message)
        self._state.progress_messages.append(message)
        self._notify()

    def set_generated_changes(self, changes: list[FileChange]) -> None:
        self._check_writable()
        self._state.generated_changes = list(changes)
        self._notify()

    def set_plan_step(self, index: int, status: StepStatus, error: str | None = None) -> None:
        self._check_writable()
        plan = self._state.plan
        if plan is None:
            raise ValueError("no execution plan for this task")
        step = plan.steps[index]
        if status not in _ALLOWED_TRANSITIONS[step.status]:
            raise ValueError(f"step {step.id}: cannot go from {step.status} to {status}")
        if status == "running":
            blocked = [s.id for s in plan.steps[:index] if s.status not in ("completed", "skipped")]
            if blocked:
                raise ValueError(f"step {step.id} cannot start before {', '.join(blocked)}")
            step.started_at = datetime.now(timezone.utc)
        else:
            step.completed_at = datetime.now(timezone.utc)
        step.status = status
        step.error = error
        plan.current_step_index = index
        self._notify()

    def finish(self, result: TaskResult) -> None:
        """Record the outcome; the state is read-only afterwards."""
        self._check_writable()
        state = self._state
        state.result = result
        state.status = "completed" if result.success else "error"
        state.error_message = None if result.success else result.error
        self._notify()

    # --- Connection bookkeeping (independent of the task lifecycle) ---

    def set_connection(
        self, connected: bool, username: str | None = None, error: str | None = None,
    ) -> None:
        self._state.github_connected = connected
        self._state.github_username = username if connected else None
        if error is not None:
            self._state.error_message = error
        self._notify()

    def reset(self) -> None:
        """Back to idle, keeping connection info."""
        self._state = AgentTaskState(
            github_connected=self._state.github_connected,
            github_username=self._state.github_username,
        )
        self._notify()
