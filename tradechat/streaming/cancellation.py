"""Cancellation controller: one active stream per user send.

The controller hands out a StreamHandle per send. The decoder checks the
handle before every frame read and the session checks it before every fold
step, so cancellation is cooperative: it takes effect at the next frame
boundary and never rolls back state that was already folded.

Usage::

    controller = CancellationController()
    handle = controller.start()        # cancels any previous handle
    async for event in decode_stream(client.stream(history), handle):
        ...
    controller.complete(handle)

    # elsewhere, e.g. a "stop" button
    controller.cancel()
"""

from __future__ import annotations

import logging
from itertools import count

logger = logging.getLogger(__name__)

_handle_ids = count(1)


class StreamHandle:
    """Lifecycle token for one in-flight stream."""

    def __init__(self) -> None:
        self.id = next(_handle_ids)
        self._cancelled = False
        self._finished = False

    def cancel(self) -> None:
        """Request the stream to stop. Safe to call any number of times."""
        if self._cancelled or self._finished:
            return
        self._cancelled = True
        logger.info("Stream %d cancelled", self.id)

    def finish(self) -> None:
        self._finished = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def active(self) -> bool:
        """True until the stream is cancelled or finishes."""
        return not (self._cancelled or self._finished)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "finished" if self._finished else "active"
        return f"StreamHandle(id={self.id}, {state})"


class CancellationController:
    """Keeps at most one active StreamHandle."""

    def __init__(self) -> None:
        self._active: StreamHandle | None = None

    def start(self) -> StreamHandle:
        """Open a handle for a new send, cancelling the previous one if still active."""
        if self._active is not None and self._active.active:
            logger.info("New send supersedes stream %d", self._active.id)
            self._active.cancel()
        self._active = StreamHandle()
        logger.debug("Stream %d started", self._active.id)
        return self._active

    def cancel(self) -> None:
        """Cancel the active stream, if any."""
        if self._active is not None:
            self._active.cancel()

    def complete(self, handle: StreamHandle) -> None:
        """Mark a stream as finished and detach it if it is still the active one."""
        handle.finish()
        if self._active is handle:
            self._active = None

    @property
    def active(self) -> StreamHandle | None:
        if self._active is not None and self._active.active:
            return self._active
        return None
