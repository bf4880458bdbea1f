"""Conversation reducer: fold StreamEvents into ConversationState.

``reduce(state, event)`` is a pure function: it never mutates its inputs and
never raises for bad input. Protocol violations (deltas for frozen ids,
unknown task types, step data aimed at a text message, unknown kinds) are
logged and leave the state unchanged.

Rules:
- ``message_start`` appends a new open message; role and type are fixed here.
- ``delta`` appends text to a text message, or creates/extends the step and
  task it references inside a workflow message.
- ``done`` (or ``done=true`` on any event) freezes the deepest referenced
  entity; freezing a message or step freezes everything inside it.
- A ``workflow`` object on a delta is merged by step and task id; thinking
  text only grows.
- A delta for an unknown message id is treated as an implicit start.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

from tradechat.models import (
    ConversationState,
    MessageType,
    Role,
    TaskType,
    TextMessage,
    ThinkingTask,
    ToolCallTask,
    WorkflowContent,
    WorkflowMessage,
    WorkflowStep,
)
from tradechat.streaming.events import (
    EventKind,
    StepUpdate,
    StreamEvent,
    TaskUpdate,
    WorkflowUpdate,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

AnyMessage = TextMessage | WorkflowMessage
AnyTask = ThinkingTask | ToolCallTask


def reduce(state: ConversationState, event: StreamEvent) -> ConversationState:
    """Apply one event and return the next state."""
    match event.kind:
        case EventKind.MESSAGE_START:
            return _start(state, event)
        case EventKind.DELTA:
            return _delta(state, event)
        case EventKind.DONE:
            return _done(state, event)
        case _:
            logger.warning("Ignoring event with unrecognized kind %r (id=%s)", event.kind, event.id)
            return state


def fold(state: ConversationState, events: Iterable[StreamEvent]) -> ConversationState:
    """Apply events in order. Equivalent to calling reduce() once per event."""
    return functools.reduce(reduce, events, state)


def freeze(state: ConversationState, ids: Iterable[str] | None = None) -> ConversationState:
    """Freeze messages (all open ones when ``ids`` is None) and everything inside them.

    Used when a stream ends, fails or is cancelled: partial content is kept.
    """
    targets = set(state.open_ids if ids is None else ids)
    changed = False
    messages = []
    for message in state.messages:
        if not message.done and message.id in targets:
            message = _freeze_message(message)
            changed = True
        messages.append(message)
    if not changed:
        return state
    return state.model_copy(update={"messages": tuple(messages)})


# =============================================================================
# EVENT KINDS
# =============================================================================


def _start(state: ConversationState, event: StreamEvent) -> ConversationState:
    if state.get(event.id) is not None:
        logger.warning("Duplicate start for message %s ignored", event.id)
        return state

    message = _new_message(event)
    if message is None:
        return state
    state = _append(state, message)

    if _has_content(event) or event.targets_workflow or event.done:
        return _delta(state, event)
    return state


def _delta(state: ConversationState, event: StreamEvent) -> ConversationState:
    index = state.index_of(event.id)
    if index is None:
        message = _new_message(event)
        if message is None:
            return state
        logger.info("Implicit start for unknown message %s", event.id)
        state = _append(state, message)
        index = len(state.messages) - 1

    message = state.messages[index]
    if message.done:
        _reject_frozen(event, f"message {event.id}")
        return state

    if isinstance(message, TextMessage):
        updated: AnyMessage = _apply_text(message, event)
    else:
        updated = _apply_workflow(message, event)

    if updated is message:
        return state
    return _replace(state, index, updated)


def _done(state: ConversationState, event: StreamEvent) -> ConversationState:
    message = state.get(event.id)
    if message is None:
        logger.warning("Done for unknown message %s ignored", event.id)
        return state
    if message.done:
        logger.debug("Message %s already frozen", event.id)
        return state
    return _delta(state, event.model_copy(update={"done": True}))


# =============================================================================
# MESSAGES
# =============================================================================


def _new_message(event: StreamEvent) -> AnyMessage | None:
    role = event.role or Role.ASSISTANT
    message_type = event.message_type or (
        MessageType.WORKFLOW if event.targets_workflow else MessageType.TEXT
    )
    if message_type == MessageType.TEXT:
        return TextMessage(id=event.id, role=role)
    if message_type == MessageType.WORKFLOW:
        return WorkflowMessage(id=event.id, role=role, content=WorkflowContent())
    logger.warning("Unknown message type %r for message %s ignored", message_type, event.id)
    return None


def _apply_text(message: TextMessage, event: StreamEvent) -> TextMessage:
    if event.targets_workflow:
        logger.warning("Workflow delta aimed at text message %s ignored", message.id)
        return message
    if event.delta:
        message = message.model_copy(update={"content": message.content + event.delta})
    if event.done:
        message = message.model_copy(update={"done": True})
    return message


def _apply_workflow(message: WorkflowMessage, event: StreamEvent) -> WorkflowMessage:
    if event.workflow is not None:
        message = _merge_workflow(message, event.workflow)

    workflow = message.workflow
    step_id = event.step_id
    if step_id is None and event.task_id is not None:
        step_id = _step_id_for_task(message, event.task_id)

    if step_id is None:
        if event.done:
            return _freeze_message(message)
        if _has_content(event) or event.agent_name:
            logger.warning("Workflow delta for message %s has no step id, ignored", message.id)
        return message

    step = workflow.get_step(step_id)
    if step is None:
        if not event.agent_name:
            logger.warning(
                "Delta for unknown step %s in message %s has no agent name, ignored",
                step_id,
                message.id,
            )
            return message
        step = WorkflowStep(id=step_id, agent_name=event.agent_name)
        steps = (*workflow.steps, _apply_step(step, event))
    else:
        if step.done:
            _reject_frozen(event, f"step {step_id}")
            return message
        updated = _apply_step(step, event)
        if updated is step:
            return message
        steps = tuple(updated if s.id == step_id else s for s in workflow.steps)

    new_workflow = workflow.model_copy(update={"steps": steps})
    return message.model_copy(
        update={"content": message.content.model_copy(update={"workflow": new_workflow})}
    )


def _merge_workflow(message: WorkflowMessage, update: WorkflowUpdate) -> WorkflowMessage:
    """Merge a workflow object into the message by step and task id.

    Unknown steps and tasks are appended in wire order. Known ones are
    extended in place; frozen ones reject the update.
    """
    steps = list(message.workflow.steps)
    positions = {step.id: i for i, step in enumerate(steps)}
    changed = False

    for step_update in update.steps:
        index = positions.get(step_update.id)
        if index is None:
            if not step_update.agent_name:
                logger.warning(
                    "Step %s in message %s has no agent name, ignored", step_update.id, message.id
                )
                continue
            index = positions[step_update.id] = len(steps)
            steps.append(WorkflowStep(id=step_update.id, agent_name=step_update.agent_name))
            changed = True
        elif steps[index].done:
            if step_update.tasks:
                logger.warning("Rejected workflow update for frozen step %s", step_update.id)
            continue

        merged = _merge_step(steps[index], step_update)
        if merged is not steps[index]:
            steps[index] = merged
            changed = True

    if not changed:
        return message
    new_workflow = message.workflow.model_copy(update={"steps": tuple(steps)})
    return message.model_copy(
        update={"content": message.content.model_copy(update={"workflow": new_workflow})}
    )


def _merge_step(step: WorkflowStep, update: StepUpdate) -> WorkflowStep:
    tasks = list(step.tasks)
    positions = {task.id: i for i, task in enumerate(tasks)}
    changed = False

    for task_update in update.tasks:
        index = positions.get(task_update.id)
        if index is None:
            task = _new_task(task_update.id, task_update.type)
            if task is None:
                continue
            positions[task.id] = len(tasks)
            tasks.append(_merge_task(task, task_update))
            changed = True
            continue

        task = tasks[index]
        if task.done:
            if task_update.payload:
                logger.warning("Rejected workflow update for frozen task %s", task.id)
            continue
        if task_update.type and task_update.type != task.type:
            logger.warning(
                "Task %s is %s but update says %s, ignored", task.id, task.type, task_update.type
            )
            continue
        merged = _merge_task(task, task_update)
        if merged is not task:
            tasks[index] = merged
            changed = True

    if changed:
        step = step.model_copy(update={"tasks": tuple(tasks)})
    if update.done:
        step = _freeze_step(step)
    return step


def _merge_task(task: AnyTask, update: TaskUpdate) -> AnyTask:
    if isinstance(task, ThinkingTask):
        updates: dict[str, str] = {}
        for key in ("text", "reason"):
            incoming = update.payload.get(key)
            if isinstance(incoming, str):
                current = getattr(task.payload, key)
                grown = _grow(current, incoming)
                if grown != current:
                    updates[key] = grown
        if updates:
            task = task.model_copy(update={"payload": task.payload.model_copy(update=updates)})
    elif update.payload:
        task = task.model_copy(update={"payload": {**task.payload, **update.payload}})

    if update.done:
        task = _freeze_task(task)
    return task


def _grow(current: str | None, incoming: str) -> str:
    """Extend ``current`` with ``incoming`` without ever truncating it.

    A value that repeats the current text plus more contributes only the new
    suffix; a stale shorter copy contributes nothing; anything else is
    treated as a fresh fragment and appended.
    """
    if not current:
        return incoming
    if incoming.startswith(current):
        return incoming
    if current.startswith(incoming):
        return current
    return current + incoming


def _step_id_for_task(message: WorkflowMessage, task_id: str) -> str | None:
    for step in message.workflow.steps:
        if step.get_task(task_id) is not None:
            return step.id
    return None


# =============================================================================
# STEPS AND TASKS
# =============================================================================


def _apply_step(step: WorkflowStep, event: StreamEvent) -> WorkflowStep:
    if event.task_id is None:
        if event.done:
            return _freeze_step(step)
        if _has_content(event):
            logger.warning("Delta for step %s has no task id, ignored", step.id)
        return step

    task = step.get_task(event.task_id)
    if task is None:
        new_task = _new_task(event.task_id, event.task_type)
        if new_task is None:
            return step
        return step.model_copy(update={"tasks": (*step.tasks, _apply_task(new_task, event))})

    if task.done:
        _reject_frozen(event, f"task {task.id}")
        return step
    if event.task_type and event.task_type != task.type:
        logger.warning(
            "Task %s is %s but event says %s, ignored", task.id, task.type, event.task_type
        )
        return step

    updated = _apply_task(task, event)
    if updated is task:
        return step
    tasks = tuple(updated if t.id == task.id else t for t in step.tasks)
    return step.model_copy(update={"tasks": tasks})


def _new_task(task_id: str, task_type: str | None) -> AnyTask | None:
    if task_type == TaskType.THINKING:
        return ThinkingTask(id=task_id)
    if task_type == TaskType.TOOL_CALL:
        return ToolCallTask(id=task_id)
    logger.warning("Task %s has unknown task type %r, ignored", task_id, task_type)
    return None


def _apply_task(task: AnyTask, event: StreamEvent) -> AnyTask:
    if isinstance(task, ThinkingTask):
        updates: dict[str, str] = {}
        if event.delta:
            updates["text"] = (task.payload.text or "") + event.delta
        if event.reason:
            updates["reason"] = (task.payload.reason or "") + event.reason
        if updates:
            task = task.model_copy(update={"payload": task.payload.model_copy(update=updates)})
    elif event.payload:
        task = task.model_copy(update={"payload": {**task.payload, **event.payload}})

    if event.done:
        task = _freeze_task(task)
    return task


# =============================================================================
# FREEZING
# =============================================================================


def _freeze_task(task: AnyTask) -> AnyTask:
    return task if task.done else task.model_copy(update={"done": True})


def _freeze_step(step: WorkflowStep) -> WorkflowStep:
    tasks = tuple(_freeze_task(t) for t in step.tasks)
    return step.model_copy(update={"tasks": tasks, "done": True})


def _freeze_message(message: AnyMessage) -> AnyMessage:
    if isinstance(message, TextMessage):
        return message.model_copy(update={"done": True})
    workflow = message.workflow
    steps = tuple(s if s.done else _freeze_step(s) for s in workflow.steps)
    content = message.content.model_copy(
        update={"workflow": workflow.model_copy(update={"steps": steps})}
    )
    return message.model_copy(update={"content": content, "done": True})


# =============================================================================
# HELPERS
# =============================================================================


def _has_content(event: StreamEvent) -> bool:
    return bool(event.delta or event.reason or event.payload)


def _reject_frozen(event: StreamEvent, target: str) -> None:
    if _has_content(event) or event.workflow is not None:
        logger.warning("Rejected %s for frozen %s", event.kind, target)
    else:
        logger.debug("Ignoring %s for frozen %s", event.kind, target)


def _append(state: ConversationState, message: AnyMessage) -> ConversationState:
    return state.model_copy(update={"messages": (*state.messages, message)})


def _replace(state: ConversationState, index: int, message: AnyMessage) -> ConversationState:
    messages = (*state.messages[:index], message, *state.messages[index + 1 :])
    return state.model_copy(update={"messages": messages})
