"""Shared fixtures for streaming module tests."""

from __future__ import annotations

from typing import Any

import pytest


class RecordingSource:
    """Async event source that records how many items were read and if it was closed."""

    def __init__(self, items: list[Any], *, error: Exception | None = None) -> None:
        self.items = list(items)
        self.error = error
        self.reads = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.reads < len(self.items):
            item = self.items[self.reads]
            self.reads += 1
            return item
        if self.error is not None:
            raise self.error
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


def split_every(data: bytes, size: int) -> list[bytes]:
    """Split bytes into chunks of ``size``."""
    return [data[i : i + size] for i in range(0, len(data), size)]


@pytest.fixture
def empty_state():
    from tradechat.models import ConversationState

    return ConversationState()
