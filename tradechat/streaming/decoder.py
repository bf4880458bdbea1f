"""Stream event decoder: turn server-sent events into StreamEvents.

SSE framing (lines split across chunk boundaries, multi-line data, comments,
CR/LF handling) is done by httpx-sse; ``ChatClient.stream()`` yields its
``ServerSentEvent`` records. This module maps each one to a typed
StreamEvent.

Frame formats::

    event: delta
    data: {"id": "m1", "delta": "Hel"}

    data: {"type": "text", "id": "m1", "role": "assistant", "content": "Hel"}

A frame without an ``event:`` line or ``kind`` field is a delta: the reducer
starts the message on its first frame and appends to it afterwards.

Keep-alives (empty data) and the ``[DONE]`` sentinel are skipped. A frame
that fails to parse is logged and dropped; decoding continues with the next
frame.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from tradechat.exceptions import MalformedFrameError
from tradechat.streaming.events import EventKind, StreamEvent

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterable

    from httpx_sse import ServerSentEvent

    from tradechat.streaming.cancellation import StreamHandle

logger = logging.getLogger(__name__)

_DONE_SENTINEL = "[DONE]"
# httpx-sse reports frames without an ``event:`` line under this name
_DEFAULT_EVENT = "message"


def parse_event(sse: ServerSentEvent) -> StreamEvent | None:
    """Map one server-sent event to a StreamEvent.

    The kind comes from the ``event:`` line, else from a ``kind`` field in the
    data, else it is a delta.

    Returns:
        The decoded event, or None for keep-alives and ``[DONE]``.

    Raises:
        MalformedFrameError: If the data is not a JSON object or fails
            validation (no id, wrongly typed fields).
    """
    raw = sse.data
    if not raw.strip() or raw.strip() == _DONE_SENTINEL:
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"Frame data is not valid JSON: {e}", frame=raw) from e

    if not isinstance(data, dict):
        raise MalformedFrameError(
            f"Frame data must be a JSON object, got {type(data).__name__}",
            frame=raw,
        )

    if sse.event and sse.event != _DEFAULT_EVENT:
        kind = sse.event
    else:
        kind = data.get("kind", EventKind.DELTA.value)
    if not isinstance(kind, str) or not kind:
        raise MalformedFrameError(f"Frame kind must be a string, got {kind!r}", frame=raw)

    try:
        return StreamEvent.model_validate({**data, "kind": kind})
    except ValidationError as e:
        raise MalformedFrameError(f"Frame failed validation: {e}", frame=raw) from e


async def decode_stream(
    events: AsyncIterable[ServerSentEvent],
    handle: StreamHandle | None = None,
) -> AsyncGenerator[StreamEvent, None]:
    """Decode server-sent events into StreamEvents.

    The handle is checked before every read. Once it is cancelled nothing
    more is read and the source is closed, which closes the response; a
    frame still in flight is discarded.

    Errors raised by the source (``TransportError`` from the client)
    propagate unchanged, which keeps them distinct from a normal end.

    Args:
        events: Server-sent events, e.g. from ``ChatClient.stream()``.
        handle: Optional cancellation handle for this stream.

    Yields:
        StreamEvent for each well-formed frame, in arrival order.
    """
    iterator = aiter(events)
    dropped = 0

    try:
        while True:
            if handle is not None and handle.cancelled:
                logger.debug("Stream %d: stopped reading after cancellation", handle.id)
                return
            try:
                sse = await anext(iterator)
            except StopAsyncIteration:
                break
            try:
                event = parse_event(sse)
            except MalformedFrameError as e:
                dropped += 1
                logger.warning("Dropping malformed frame: %s. Raw data: %s", e, sse.data[:200])
                continue
            if event is not None:
                yield event
    finally:
        if dropped:
            logger.info("Dropped %d malformed frames", dropped)
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
