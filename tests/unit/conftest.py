"""Unit-test conftest: network isolation and stream fixtures.

Unit tests never reach a real backend. Transport tests hand the client an
``httpx.AsyncClient`` built on ``httpx.MockTransport``; anything that would
open a real connection fails fast.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from typing import Any

import httpx
import pytest


def sse_frame(kind: str, **fields: Any) -> str:
    """One SSE frame with a JSON data line."""
    return f"event: {kind}\ndata: {json.dumps(fields, ensure_ascii=False)}\n\n"


def hello_stream(message_id: str = "m1") -> str:
    """Assistant text streamed as ``Hel`` + ``lo`` then closed."""
    return (
        sse_frame("message_start", id=message_id, role="assistant", type="text")
        + sse_frame("delta", id=message_id, delta="Hel")
        + sse_frame("delta", id=message_id, delta="lo")
        + sse_frame("done", id=message_id)
    )


def streaming_transport(
    body: bytes | str | Iterable[bytes],
    *,
    status_code: int = 200,
    recorder: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """MockTransport answering every request with an SSE body.

    ``body`` may be split into chunks to exercise re-chunking.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if recorder is not None:
            recorder.append(request)
        if isinstance(body, str):
            content: Any = body.encode()
        elif isinstance(body, bytes):
            content = body
        else:
            content = _aiter_chunks(list(body))
        return httpx.Response(
            status_code,
            headers={"content-type": "text/event-stream"},
            content=content,
        )

    return httpx.MockTransport(handler)


async def _aiter_chunks(chunks: list[bytes]):
    """Response body yielded chunk by chunk."""
    for chunk in chunks:
        yield chunk


@pytest.fixture
def make_http_client() -> Callable[..., httpx.AsyncClient]:
    """Factory for AsyncClients backed by a streaming MockTransport."""

    def _make(body: bytes | str | Iterable[bytes], **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=streaming_transport(body, **kwargs))

    return _make
