"""Conversation data model.

Messages, workflows, steps and tasks as frozen pydantic models.
"""

from .enums import AgentName, MessageType, Role, TaskType
from .messages import (
    ConversationState,
    Message,
    TextMessage,
    WorkflowContent,
    WorkflowMessage,
)
from .workflow import (
    Task,
    ThinkingPayload,
    ThinkingTask,
    ToolCallTask,
    Workflow,
    WorkflowStep,
)

__all__ = [
    "AgentName",
    "ConversationState",
    "Message",
    "MessageType",
    "Role",
    "Task",
    "TaskType",
    "TextMessage",
    "ThinkingPayload",
    "ThinkingTask",
    "ToolCallTask",
    "Workflow",
    "WorkflowContent",
    "WorkflowMessage",
    "WorkflowStep",
]
