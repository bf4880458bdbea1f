"""Enums for conversation state."""

from enum import StrEnum


class Role(StrEnum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageType(StrEnum):
    """Discriminant of the Message union."""

    TEXT = "text"
    WORKFLOW = "workflow"


class TaskType(StrEnum):
    """Discriminant of the Task union."""

    THINKING = "thinking"
    TOOL_CALL = "tool_call"


class AgentName(StrEnum):
    """Agents the backend is known to run.

    Step agent names are plain strings so an agent missing from this list
    still renders under its raw name.
    """

    PLANNER = "planner"
    SUPERVISOR = "supervisor"
    ACCOUNT_INFO = "account_info_agent"
    STOCK_INFO = "stock_info_agent"
    TRADE_NOT_AUTO = "trade_not_auto_agent"
    MARKET_MONITORING = "market_monitoring_agent"
    REPORTER = "reporter"  # Terminal agent holding the final narrative
