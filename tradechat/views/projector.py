"""Workflow view projector: derive the navigation view from a step list.

Pure functions over the authoritative workflow. Superseded steps stay in
``Workflow.steps``; the projection only hides them from navigation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from tradechat.models import AgentName, ThinkingTask, WorkflowMessage, WorkflowStep

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tradechat.models import Task

REPORTER_AGENT = AgentName.REPORTER.value

STEP_DISPLAY_NAMES: dict[str, str] = {
    AgentName.ACCOUNT_INFO: "Account Info",
    AgentName.STOCK_INFO: "Stock Info",
    AgentName.TRADE_NOT_AUTO: "Trading",
    AgentName.MARKET_MONITORING: "Monitoring",
    AgentName.PLANNER: "Planning",
    AgentName.SUPERVISOR: "Thinking",
}


class WorkflowView(BaseModel):
    """Display projection of a workflow.

    Attributes:
        nav_items: Latest step of each non-reporter agent, in workflow order.
        final_report: The reporter's step, shown apart from navigation.
    """

    model_config = ConfigDict(frozen=True)

    nav_items: tuple[WorkflowStep, ...] = ()
    final_report: WorkflowStep | None = None


def project(steps: Sequence[WorkflowStep]) -> WorkflowView:
    """Keep each agent's most recent step and split off the final report.

    Steps are walked from last to first; the first step seen for an agent is
    its most recent one. The last reporter step becomes ``final_report``.
    Kept steps are returned in their original ascending order.
    """
    final_report: WorkflowStep | None = None
    seen_agents: set[str] = set()
    kept: list[WorkflowStep] = []

    for step in reversed(steps):
        if step.agent_name == REPORTER_AGENT:
            if final_report is None:
                final_report = step
            continue
        if step.agent_name in seen_agents:
            continue
        seen_agents.add(step.agent_name)
        kept.append(step)

    kept.reverse()
    return WorkflowView(nav_items=tuple(kept), final_report=final_report)


def project_workflow(message: WorkflowMessage) -> WorkflowView:
    return project(message.workflow.steps)


def step_display_name(step: WorkflowStep) -> str:
    """Human label for a step's agent, falling back to the raw agent name."""
    return STEP_DISPLAY_NAMES.get(step.agent_name, step.agent_name)


def visible_tasks(step: WorkflowStep) -> list[Task]:
    """Tasks worth rendering: thinking tasks with no text and no reason are hidden."""
    return [
        task
        for task in step.tasks
        if not (isinstance(task, ThinkingTask) and not task.payload.text and not task.payload.reason)
    ]


def report_text(step: WorkflowStep | None) -> str:
    """Narrative text of a report step (its first task, when that is a thinking task)."""
    if step is None or not step.tasks:
        return ""
    first = step.tasks[0]
    if isinstance(first, ThinkingTask):
        return first.payload.text or ""
    return ""
