"""Planner output helpers.

The planner streams its plan as JSON text inside a thinking task. These
helpers turn whatever prefix has arrived into a typed Plan for display.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict

from tradechat.models import AgentName, ThinkingTask, WorkflowStep
from tradechat.streaming.partial_json import parse


class PlanStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    description: str | None = None


class Plan(BaseModel):
    """A plan title and its ordered steps, possibly still incomplete."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    steps: tuple[PlanStep, ...] = ()


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parse_plan(text: str | None) -> Plan:
    """Build a Plan from (possibly truncated) planner JSON.

    Fields of the wrong type are ignored rather than rejected, so a plan that
    is still streaming shows as much as is known.
    """
    if not text:
        return Plan()
    data = parse(text)
    if not isinstance(data, dict):
        return Plan()

    steps: list[PlanStep] = []
    raw_steps = data.get("steps")
    if isinstance(raw_steps, list):
        for item in raw_steps:
            if isinstance(item, dict):
                steps.append(
                    PlanStep(
                        title=_str_or_none(item.get("title")),
                        description=_str_or_none(item.get("description")),
                    )
                )
    return Plan(title=_str_or_none(data.get("title")), steps=tuple(steps))


def plan_markdown(plan: Plan) -> str:
    """Render a plan as markdown: the title, then one bullet block per step."""
    body = "\n\n".join(f"- {step.title or ''}\n\n{step.description or ''}" for step in plan.steps)
    return f"{plan.title or ''}\n\n{body}"


def is_plan_task(step: WorkflowStep, task: object) -> bool:
    """Planner thinking tasks carry plan JSON rather than prose."""
    return step.agent_name == AgentName.PLANNER and isinstance(task, ThinkingTask)
