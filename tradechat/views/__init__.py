"""Read-only projections of conversation state for renderers."""

from tradechat.views.plan import Plan, PlanStep, is_plan_task, parse_plan, plan_markdown
from tradechat.views.projector import (
    REPORTER_AGENT,
    WorkflowView,
    project,
    project_workflow,
    report_text,
    step_display_name,
    visible_tasks,
)

__all__ = [
    "REPORTER_AGENT",
    "Plan",
    "PlanStep",
    "WorkflowView",
    "is_plan_task",
    "parse_plan",
    "plan_markdown",
    "project",
    "project_workflow",
    "report_text",
    "step_display_name",
    "visible_tasks",
]
