"""Unit tests for the streaming HTTP client."""

import json

import httpx
import pytest

from tests.unit.conftest import hello_stream, streaming_transport

HISTORY = [
    {"role": "user", "content": "How is TSLA?"},
    {"role": "assistant", "content": "Up 3%."},
    {"role": "user", "content": "Buy one share"},
]


class TestRequestHelpers:
    """Tests for build_request_body() and debug_from_query()."""

    def test_request_body(self):
        from tradechat.api.client import build_request_body

        body = build_request_body(HISTORY, debug=True)
        assert body == {"messages": HISTORY, "debug": True}

    def test_request_body_drops_extra_keys(self):
        from tradechat.api.client import build_request_body

        body = build_request_body([{"role": "user", "content": "hi", "id": "x"}], debug=False)
        assert body["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("", False),
            ("?debug", True),
            ("?debug=true", True),
            ("?debug=false", False),
            ("?lang=ko&debug", True),
            ("?lang=ko", False),
        ],
    )
    def test_debug_from_query(self, query, expected):
        from tradechat.api.client import debug_from_query

        assert debug_from_query(query) is expected


class TestChatClientConfig:
    """Construction and endpoint selection."""

    def test_endpoints(self):
        from tradechat.api.client import ChatClient

        client = ChatClient("http://backend.test/api/")
        assert client.endpoint_url() == "http://backend.test/api/stream"
        assert client.endpoint_url(recommend=True) == "http://backend.test/api/recommend"

    def test_invalid_scheme(self):
        from tradechat.api.client import ChatClient
        from tradechat.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match="Invalid URL scheme"):
            ChatClient("ftp://backend.test")

    def test_from_settings(self, test_settings):
        from tradechat.api.client import ChatClient

        client = ChatClient.from_settings(test_settings)
        assert client.base_url == "http://backend.test/api"
        assert client.timeout == test_settings.stream_timeout
        assert client.debug is False

    def test_from_settings_overrides(self, test_settings):
        from tradechat.api.client import ChatClient

        client = ChatClient.from_settings(
            test_settings, base_url="https://other.test", debug=True
        )
        assert client.base_url == "https://other.test"
        assert client.debug is True

    def test_from_settings_uses_global_settings(self, mock_settings):
        from tradechat.api.client import ChatClient

        assert ChatClient.from_settings().base_url == mock_settings.api_url


class TestChatClientStream:
    """Tests for ChatClient.stream() against a mock transport."""

    @pytest.mark.asyncio
    async def test_posts_history_and_yields_events(self):
        from tradechat.api.client import ChatClient

        requests: list[httpx.Request] = []
        http = httpx.AsyncClient(transport=streaming_transport(hello_stream(), recorder=requests))
        client = ChatClient("http://backend.test/api", debug=True, http_client=http)

        events = [sse async for sse in client.stream(HISTORY)]

        assert [sse.event for sse in events] == ["message_start", "delta", "delta", "done"]
        assert json.loads(events[1].data) == {"id": "m1", "delta": "Hel"}
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "http://backend.test/api/stream"
        assert request.headers["accept"] == "text/event-stream"
        assert json.loads(request.content) == {"messages": HISTORY, "debug": True}

    @pytest.mark.asyncio
    async def test_recommend_endpoint(self):
        from tradechat.api.client import ChatClient

        requests: list[httpx.Request] = []
        http = httpx.AsyncClient(transport=streaming_transport("", recorder=requests))
        client = ChatClient("http://backend.test/api", http_client=http)

        _ = [sse async for sse in client.stream(HISTORY, recommend=True)]
        assert requests[0].url.path == "/api/recommend"

    @pytest.mark.asyncio
    async def test_frame_split_across_chunks(self):
        from tradechat.api.client import ChatClient

        chunks = [b"event: del", b"ta\ndata: {}", b"\n\n"]
        http = httpx.AsyncClient(transport=streaming_transport(chunks))
        client = ChatClient("http://backend.test/api", http_client=http)

        events = [sse async for sse in client.stream(HISTORY)]
        assert [(sse.event, sse.data) for sse in events] == [("delta", "{}")]

    @pytest.mark.asyncio
    async def test_non_event_stream_response_raises_transport_error(self):
        from tradechat.api.client import ChatClient
        from tradechat.exceptions import TransportError

        def handler(request):
            return httpx.Response(200, json={"detail": "not a stream"})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = ChatClient("http://backend.test/api", http_client=http)

        with pytest.raises(TransportError, match="Invalid event stream"):
            _ = [sse async for sse in client.stream(HISTORY)]

    @pytest.mark.asyncio
    async def test_error_status_raises_transport_error(self):
        from tradechat.api.client import ChatClient
        from tradechat.exceptions import TransportError

        http = httpx.AsyncClient(transport=streaming_transport("boom", status_code=503))
        client = ChatClient("http://backend.test/api", http_client=http)

        with pytest.raises(TransportError) as exc_info:
            _ = [sse async for sse in client.stream(HISTORY)]
        assert exc_info.value.status_code == 503
        assert exc_info.value.url == "http://backend.test/api/stream"
        assert "boom" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self):
        from tradechat.api.client import ChatClient
        from tradechat.exceptions import TransportError

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = ChatClient("http://backend.test/api", http_client=http)

        with pytest.raises(TransportError, match="Connection error"):
            _ = [sse async for sse in client.stream(HISTORY)]

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self):
        from tradechat.api.client import ChatClient
        from tradechat.exceptions import TransportError

        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = ChatClient("http://backend.test/api", http_client=http)

        with pytest.raises(TransportError, match="timeout"):
            _ = [sse async for sse in client.stream(HISTORY)]

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        from tradechat.api.client import ChatClient

        http = httpx.AsyncClient(transport=streaming_transport(hello_stream()))
        client = ChatClient("http://backend.test/api", http_client=http)

        _ = [sse async for sse in client.stream(HISTORY)]
        assert not http.is_closed
        await http.aclose()
