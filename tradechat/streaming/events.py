"""Stream event record for the streaming pipeline.

StreamEvent is the shared event type yielded by the frame decoder and
folded by the conversation reducer. One event corresponds to one fully
assembled wire frame.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from tradechat.models import Role


class EventKind(StrEnum):
    """Event kinds understood by the reducer."""

    MESSAGE_START = "message_start"
    DELTA = "delta"
    DONE = "done"


# Alternate kind names the backend may send: (canonical kind, implied message type)
KIND_ALIASES: dict[str, tuple[EventKind, str | None]] = {
    "start": (EventKind.MESSAGE_START, None),
    "text_start": (EventKind.MESSAGE_START, "text"),
    "workflow_start": (EventKind.MESSAGE_START, "workflow"),
    "message": (EventKind.DELTA, None),
    "text_delta": (EventKind.DELTA, None),
    "workflow_delta": (EventKind.DELTA, None),
    "end": (EventKind.DONE, None),
    "text_done": (EventKind.DONE, None),
    "workflow_done": (EventKind.DONE, None),
}


class TaskUpdate(BaseModel):
    """A task as carried inside a ``workflow`` object on the wire."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    type: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    done: bool = False


class StepUpdate(BaseModel):
    """A workflow step as carried inside a ``workflow`` object on the wire."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    agent_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("agent_name", "agentName"),
    )
    tasks: tuple[TaskUpdate, ...] = ()
    done: bool = False


class WorkflowUpdate(BaseModel):
    """The (possibly partial) workflow a frame reports for its message."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    steps: tuple[StepUpdate, ...] = ()


class StreamEvent(BaseModel):
    """A typed event decoded from one wire frame.

    Attributes:
        kind: Event kind (message_start, delta, done). Unknown kinds are kept
            as-is so the reducer can log and skip them.
        id: Target message id.
        role: Message author, only meaningful on the first event for an id.
        message_type: ``text`` or ``workflow`` (wire name ``type``).
        step_id: Workflow step targeted by the event.
        agent_name: Agent owning the step (needed to create it).
        task_id: Task inside the step.
        task_type: ``thinking`` or ``tool_call`` (needed to create the task).
        delta: Text appended to a text message or a thinking task's text.
        reason: Text appended to a thinking task's reason.
        payload: Tool call data merged into a tool_call task.
        workflow: Workflow object merged into a workflow message by step
            and task id.
        done: Freeze the deepest referenced entity after applying the event.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: str
    id: str = Field(min_length=1)
    role: Role | None = None
    message_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("message_type", "type"),
    )
    step_id: str | None = Field(default=None, validation_alias=AliasChoices("step_id", "stepId"))
    agent_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("agent_name", "agentName"),
    )
    task_id: str | None = Field(default=None, validation_alias=AliasChoices("task_id", "taskId"))
    task_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("task_type", "taskType"),
    )
    delta: str | None = Field(default=None, validation_alias=AliasChoices("delta", "content"))
    reason: str | None = None
    payload: dict[str, Any] | None = None
    workflow: WorkflowUpdate | None = None
    done: bool = False

    @model_validator(mode="before")
    @classmethod
    def _normalize_kind(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("kind"), str):
            return data
        alias = KIND_ALIASES.get(data["kind"])
        if alias is None:
            return data
        kind, implied_type = alias
        data = {**data, "kind": kind.value}
        if implied_type and not (data.get("type") or data.get("message_type")):
            data["message_type"] = implied_type
        return data

    @property
    def targets_workflow(self) -> bool:
        """Whether the event addresses a step or task inside a workflow."""
        return bool(self.step_id or self.agent_name or self.task_id) or self.workflow is not None

    def to_sse(self) -> str:
        """Serialize as a single SSE frame (used by fixtures and fake servers)."""
        data = self.model_dump(exclude_none=True, exclude={"kind"}, mode="json")
        if not data.get("done"):
            data.pop("done", None)
        return f"event: {self.kind}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"
