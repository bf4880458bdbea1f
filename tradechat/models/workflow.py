"""Workflow models: steps run by agents and the tasks inside them.

Every model is frozen. Updates build new instances with ``model_copy``;
sequences are tuples so a snapshot handed to a renderer can never change
underneath it.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ThinkingPayload(BaseModel):
    """Streaming text of a thinking task.

    ``text`` and ``reason`` only ever grow while the task is open.
    """

    model_config = ConfigDict(frozen=True)

    text: str | None = None
    reason: str | None = None


class ThinkingTask(BaseModel):
    """An agent's streamed reasoning or output text."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: Literal["thinking"] = "thinking"
    payload: ThinkingPayload = Field(default_factory=ThinkingPayload)
    done: bool = False


class ToolCallTask(BaseModel):
    """A tool invocation. The payload is opaque to the client."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: Literal["tool_call"] = "tool_call"
    payload: dict[str, Any] = Field(default_factory=dict)
    done: bool = False


Task = Annotated[ThinkingTask | ToolCallTask, Field(discriminator="type")]


class WorkflowStep(BaseModel):
    """One agent's turn inside a workflow."""

    model_config = ConfigDict(frozen=True)

    id: str
    agent_name: str
    tasks: tuple[Task, ...] = ()
    done: bool = False

    def get_task(self, task_id: str) -> ThinkingTask | ToolCallTask | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None


class Workflow(BaseModel):
    """Ordered, append-only list of steps."""

    model_config = ConfigDict(frozen=True)

    steps: tuple[WorkflowStep, ...] = ()

    def get_step(self, step_id: str) -> WorkflowStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None
