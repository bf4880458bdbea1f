"""HTTP transport for the chat backend.

``ChatClient.stream()`` posts the conversation to ``/stream`` (general
turns) or ``/recommend`` (curated recommendation turn) and yields the
server-sent events of the response, framed by httpx-sse. Mapping them to
StreamEvents lives in ``tradechat.streaming.decoder``.

Cancellation needs no server round-trip: the caller stops iterating and
closing the generator closes the response.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx
from httpx_sse import SSEError, aconnect_sse

from tradechat.exceptions import ConfigurationError, TransportError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Mapping, Sequence

    from httpx_sse import ServerSentEvent

    from tradechat.settings import Settings

logger = logging.getLogger(__name__)

_DEFAULT_STREAM_TIMEOUT = 900.0
_DEFAULT_CONNECT_TIMEOUT = 10.0
_ALLOWED_SCHEMES = {"http", "https"}


def debug_from_query(query: str) -> bool:
    """Debug flag from a page query string: ``?debug`` on, ``?debug=false`` off."""
    return "debug" in query and "debug=false" not in query


def build_request_body(messages: Sequence[Mapping[str, str]], *, debug: bool) -> dict[str, Any]:
    """Request body shared by both endpoints."""
    return {
        "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        "debug": debug,
    }


class ChatClient:
    """Streams chat turns from the backend.

    Usage::

        client = ChatClient("http://localhost:8000/api")
        async for sse in client.stream([{"role": "user", "content": "hi"}]):
            print(sse.event, sse.data)
    """

    def __init__(
        self,
        base_url: str,
        *,
        debug: bool = False,
        stream_endpoint: str = "/stream",
        recommend_endpoint: str = "/recommend",
        timeout: float = _DEFAULT_STREAM_TIMEOUT,
        connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(base_url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            msg = f"Invalid URL scheme '{parsed.scheme}'. Only {sorted(_ALLOWED_SCHEMES)} allowed."
            raise ConfigurationError(msg)
        self.base_url = base_url.rstrip("/")
        self.debug = debug
        self.stream_endpoint = stream_endpoint
        self.recommend_endpoint = recommend_endpoint
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> ChatClient:
        """Build a client from application settings."""
        if settings is None:
            from tradechat.settings import get_settings

            settings = get_settings()
        kwargs: dict[str, Any] = {
            "debug": settings.debug,
            "stream_endpoint": settings.stream_endpoint,
            "recommend_endpoint": settings.recommend_endpoint,
            "timeout": settings.stream_timeout,
            "connect_timeout": settings.connect_timeout,
        }
        kwargs.update(overrides)
        base_url = kwargs.pop("base_url", None) or settings.api_url
        return cls(base_url, **kwargs)

    def endpoint_url(self, *, recommend: bool = False) -> str:
        path = self.recommend_endpoint if recommend else self.stream_endpoint
        return f"{self.base_url}{path}"

    async def stream(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        recommend: bool = False,
    ) -> AsyncGenerator[ServerSentEvent, None]:
        """POST the conversation and yield the server-sent events of the reply.

        Args:
            messages: Conversation history ending with the new user message.
            recommend: Use the recommendation endpoint instead of the general one.

        Yields:
            ServerSentEvent for every complete frame, in arrival order.

        Raises:
            TransportError: On connection failure, timeout, non-2xx status
                or a response that is not an event stream.
        """
        url = self.endpoint_url(recommend=recommend)
        body = build_request_body(messages, debug=self.debug)
        client = self._http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
        )
        owns_client = self._http_client is None

        logger.debug("POST %s (%d messages, debug=%s)", url, len(body["messages"]), self.debug)
        try:
            async with aconnect_sse(client, "POST", url, json=body) as event_source:
                response = event_source.response
                if not response.is_success:
                    await response.aread()
                    raise TransportError(
                        f"HTTP {response.status_code}: {response.text[:200]}",
                        status_code=response.status_code,
                        url=url,
                    )
                async for sse in event_source.aiter_sse():
                    yield sse
        except SSEError as e:
            raise TransportError(f"Invalid event stream: {e}", url=url) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Stream timeout after {self.timeout}s: {e}", url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Connection error: {e}", url=url) from e
        finally:
            if owns_client:
                await client.aclose()
