"""Streaming module: decoder, reducer and cancellation for chat streams.

Provides modular, independently testable components that turn a server-sent
event stream into an append-only conversation state.
"""

from tradechat.streaming.cancellation import CancellationController, StreamHandle
from tradechat.streaming.decoder import decode_stream, parse_event
from tradechat.streaming.events import (
    EventKind,
    StepUpdate,
    StreamEvent,
    TaskUpdate,
    WorkflowUpdate,
)
from tradechat.streaming.partial_json import parse as parse_partial_json
from tradechat.streaming.reducer import fold, freeze, reduce

__all__ = [
    "CancellationController",
    "EventKind",
    "StepUpdate",
    "StreamEvent",
    "StreamHandle",
    "TaskUpdate",
    "WorkflowUpdate",
    "decode_stream",
    "fold",
    "freeze",
    "parse_event",
    "parse_partial_json",
    "reduce",
]
