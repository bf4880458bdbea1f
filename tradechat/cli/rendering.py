"""Rich renderables for conversation and monitoring snapshots."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Group
from rich.markdown import Markdown
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from tradechat.models import Role, TextMessage, ThinkingTask, ToolCallTask, WorkflowMessage
from tradechat.session import SessionStatus
from tradechat.views import (
    is_plan_task,
    parse_plan,
    plan_markdown,
    report_text,
    step_display_name,
    visible_tasks,
)

if TYPE_CHECKING:
    from rich.console import RenderableType

    from tradechat.monitoring import MonitoringSnapshot
    from tradechat.session import ConversationSnapshot
    from tradechat.views import WorkflowView

STATUS_STYLES = {
    SessionStatus.IDLE: "dim",
    SessionStatus.RESPONDING: "yellow",
    SessionStatus.COMPLETED: "green",
    SessionStatus.CANCELLED: "dim yellow",
    SessionStatus.FAILED: "bold red",
}

_TOOL_NAME_KEYS = ("toolName", "tool_name", "name")
_TOOL_ARGS_KEYS = ("input", "args", "arguments")


def tool_call_summary(task: ToolCallTask) -> str:
    """One-line ``name(args)`` summary of an opaque tool-call payload."""
    payload = task.payload
    name = next((payload[k] for k in _TOOL_NAME_KEYS if isinstance(payload.get(k), str)), "tool")
    args: Any = next((payload[k] for k in _TOOL_ARGS_KEYS if k in payload), None)
    if args is None:
        return f"{name}()"
    try:
        rendered = json.dumps(args, ensure_ascii=False)
    except (TypeError, ValueError):
        rendered = str(args)
    if len(rendered) > 120:
        rendered = rendered[:117] + "..."
    return f"{name}({rendered})"


def render_workflow(view: WorkflowView) -> list[RenderableType]:
    """Navigation steps with their tasks, then the final report."""
    parts: list[RenderableType] = []
    for index, step in enumerate(view.nav_items, start=1):
        parts.append(Text(f"📍 Step {index}: {step_display_name(step)}", style="bold"))
        for task in visible_tasks(step):
            if isinstance(task, ThinkingTask) and is_plan_task(step, task):
                if task.payload.reason:
                    parts.append(Text(task.payload.reason, style="dim italic"))
                parts.append(Markdown(plan_markdown(parse_plan(task.payload.text))))
            elif isinstance(task, ThinkingTask):
                parts.append(Text(task.payload.text or task.payload.reason or "", style="dim"))
            else:
                parts.append(Text(f"🔧 {tool_call_summary(task)}", style="cyan"))
        if index < len(view.nav_items):
            parts.append(Rule(style="dim"))

    report = report_text(view.final_report)
    if report:
        parts.append(Rule("Report", style="green"))
        parts.append(Markdown(report))
    return parts


def render_snapshot(snapshot: ConversationSnapshot) -> Group:
    """Full transcript plus a status line."""
    parts: list[RenderableType] = []
    for message in snapshot.state.messages:
        if isinstance(message, TextMessage):
            if message.role == Role.USER:
                parts.append(Text.assemble(("You: ", "bold cyan"), message.content))
            else:
                parts.append(Text("Assistant:", style="bold green"))
                parts.append(Markdown(message.content))
        elif isinstance(message, WorkflowMessage):
            view = snapshot.views.get(message.id)
            if view is not None:
                parts.extend(render_workflow(view))

    status_line = Text(snapshot.status.value, style=STATUS_STYLES[snapshot.status])
    if snapshot.error:
        status_line.append(f": {snapshot.error}")
    parts.append(status_line)
    return Group(*parts)


def render_monitoring(snapshot: MonitoringSnapshot) -> RenderableType:
    """Table of the latest log line and update count per ticker."""
    table = Table(title="Market Monitoring")
    table.add_column("Ticker", style="cyan")
    table.add_column("Updates", justify="right")
    table.add_column("Latest")

    for ticker, lines in sorted(snapshot.logs.items()):
        table.add_row(ticker, str(snapshot.update_counts.get(ticker, 0)), lines[-1])

    if snapshot.error:
        return Group(table, Text(snapshot.error, style="red"))
    if snapshot.loading:
        return Group(table, Text("Loading...", style="dim"))
    return table
