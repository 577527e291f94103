"""Deterministic planning: plan models and the change-set generator.

``prwright.planner.engine`` is imported directly; it depends on
``prwright.core.state``, which itself imports the plan models.
"""

from prwright.planner.models import PLAN_STEPS, ExecutionPlan, PlanStep
from prwright.planner.generator import ChangeSetGenerator, extract_json_array, validate_changes

__all__ = [
    "PLAN_STEPS",
    "ExecutionPlan",
    "PlanStep",
    "ChangeSetGenerator",
    "extract_json_array",
    "validate_changes",
]
