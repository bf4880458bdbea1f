"""Chat session: drive one conversation through the streaming pipeline.

The session owns the conversation state. Each ``send()`` opens a stream
handle (cancelling any stream still running), posts the history, decodes
the response and folds every event into the state. After each fold step the
caller receives an immutable ConversationSnapshot; that is the only way state
leaves the session.

Usage::

    session = ChatSession(ChatClient.from_settings())
    async for snapshot in session.send("How is TSLA doing?"):
        render(snapshot)

    # from another task, e.g. a stop button
    session.cancel()
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from enum import StrEnum
from typing import TYPE_CHECKING, assert_never
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tradechat.exceptions import TransportError
from tradechat.models import ConversationState, Role, TextMessage, WorkflowMessage
from tradechat.streaming.cancellation import CancellationController
from tradechat.streaming.decoder import decode_stream
from tradechat.streaming.events import EventKind, StreamEvent
from tradechat.streaming.reducer import freeze, reduce
from tradechat.views.projector import WorkflowView, project_workflow, report_text

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from tradechat.api.client import ChatClient

logger = logging.getLogger(__name__)


class SessionStatus(StrEnum):
    """Status of the latest send."""

    IDLE = "idle"
    RESPONDING = "responding"
    COMPLETED = "completed"
    CANCELLED = "cancelled"  # Normal terminal state, not an error
    FAILED = "failed"  # Transport failure; the user has to resend


class ConversationSnapshot(BaseModel):
    """Immutable view of the conversation after one fold step.

    Attributes:
        state: Authoritative conversation state.
        status: Status of the stream that produced this snapshot.
        error: Transport error text when status is ``failed``.
        views: Workflow projection per workflow message id.
    """

    model_config = ConfigDict(frozen=True)

    state: ConversationState
    status: SessionStatus
    error: str | None = None
    views: dict[str, WorkflowView] = Field(default_factory=dict)

    @property
    def responding(self) -> bool:
        return self.status == SessionStatus.RESPONDING


def make_snapshot(
    state: ConversationState,
    status: SessionStatus,
    error: str | None = None,
) -> ConversationSnapshot:
    """Project every workflow message and wrap the state for renderers."""
    views = {message.id: project_workflow(message) for message in state.workflow_messages()}
    return ConversationSnapshot(state=state, status=status, error=error, views=views)


def conversation_history(state: ConversationState) -> list[dict[str, str]]:
    """History sent to the backend: text turns plus each workflow's final report."""
    history: list[dict[str, str]] = []
    for message in state.messages:
        if isinstance(message, TextMessage):
            content = message.content
        elif isinstance(message, WorkflowMessage):
            content = report_text(project_workflow(message).final_report)
        else:
            assert_never(message)
        if content:
            history.append({"role": message.role.value, "content": content})
    return history


class ChatSession:
    """Conversation state plus the single active stream feeding it."""

    def __init__(
        self,
        client: ChatClient,
        *,
        controller: CancellationController | None = None,
        state: ConversationState | None = None,
    ) -> None:
        self._client = client
        self._controller = controller or CancellationController()
        self._state = state or ConversationState()
        self._status = SessionStatus.IDLE
        self._error: str | None = None
        self._current = None

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def responding(self) -> bool:
        return self._status == SessionStatus.RESPONDING

    def snapshot(self) -> ConversationSnapshot:
        return make_snapshot(self._state, self._status, self._error)

    def cancel(self) -> None:
        """Cancel the active stream. Committed content stays in the state."""
        self._controller.cancel()

    async def send(
        self,
        content: str,
        *,
        recommend: bool = False,
    ) -> AsyncGenerator[ConversationSnapshot, None]:
        """Send a user message and stream the reply.

        Args:
            content: User prompt.
            recommend: Use the recommendation endpoint.

        Yields:
            A snapshot after the user message is added, after every folded
            event, and a final one once the stream completed, was cancelled
            or failed.
        """
        handle = self._controller.start()
        self._current = handle

        history = conversation_history(self._state)
        history.append({"role": Role.USER.value, "content": content})
        self._state = reduce(
            self._state,
            StreamEvent(
                kind=EventKind.MESSAGE_START,
                id=uuid4().hex,
                role=Role.USER,
                message_type="text",
                delta=content,
                done=True,
            ),
        )
        self._status = SessionStatus.RESPONDING
        self._error = None

        status = SessionStatus.COMPLETED
        error: str | None = None
        touched: set[str] = set()
        try:
            yield self.snapshot()
            frames = self._client.stream(history, recommend=recommend)
            async with aclosing(decode_stream(frames, handle)) as events:
                async for event in events:
                    if handle.cancelled:
                        break
                    touched.add(event.id)
                    self._state = reduce(self._state, event)
                    yield self.snapshot()
        except TransportError as e:
            logger.error("Stream %d failed: %s", handle.id, e)
            status, error = SessionStatus.FAILED, str(e)
        finally:
            self._state = freeze(self._state, touched)
            self._controller.complete(handle)

        if handle.cancelled and status != SessionStatus.FAILED:
            status = SessionStatus.CANCELLED
        logger.info("Stream %d %s (%d messages touched)", handle.id, status, len(touched))

        # A superseded stream must not overwrite the status of its successor
        if self._current is handle:
            self._status = status
            self._error = error
        yield make_snapshot(self._state, status, error)
