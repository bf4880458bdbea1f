"""Conversation message models.

A conversation is an append-only tuple of messages. Message identity is
fixed on creation; only the content of a still-open message changes.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from .enums import Role
from .workflow import Workflow


class TextMessage(BaseModel):
    """Plain text turn (user prompt or streamed assistant answer)."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    type: Literal["text"] = "text"
    content: str = ""
    done: bool = False


class WorkflowContent(BaseModel):
    """Content wrapper of a workflow message."""

    model_config = ConfigDict(frozen=True)

    workflow: Workflow = Field(default_factory=Workflow)


class WorkflowMessage(BaseModel):
    """Assistant turn rendered as a multi-agent workflow."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    type: Literal["workflow"] = "workflow"
    content: WorkflowContent = Field(default_factory=WorkflowContent)
    done: bool = False

    @property
    def workflow(self) -> Workflow:
        return self.content.workflow


Message = Annotated[TextMessage | WorkflowMessage, Field(discriminator="type")]


class ConversationState(BaseModel):
    """Authoritative conversation state folded from stream events."""

    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...] = ()

    def get(self, message_id: str) -> TextMessage | WorkflowMessage | None:
        """Look up a message by id, newest first."""
        for message in reversed(self.messages):
            if message.id == message_id:
                return message
        return None

    def index_of(self, message_id: str) -> int | None:
        for index in range(len(self.messages) - 1, -1, -1):
            if self.messages[index].id == message_id:
                return index
        return None

    def workflow_messages(self) -> list[WorkflowMessage]:
        return [m for m in self.messages if isinstance(m, WorkflowMessage)]

    @property
    def last_message(self) -> TextMessage | WorkflowMessage | None:
        return self.messages[-1] if self.messages else None

    @property
    def open_ids(self) -> list[str]:
        """Ids of messages that can still receive deltas."""
        return [m.id for m in self.messages if not m.done]
