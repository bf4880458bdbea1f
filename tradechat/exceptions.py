"""tradechat exception hierarchy.

Base exceptions for the client layers with correlation ID support.

Only transport failures propagate to callers. Malformed frames, protocol
violations and partial-JSON degradation are absorbed where they occur.

Usage:
    from tradechat.exceptions import TransportError

    try:
        async for chunk in client.stream(messages):
            ...
    except TransportError as e:
        logger.error("Stream failed (%s): %s", e.correlation_id, e)
"""

import uuid


class TradeChatError(Exception):
    """Base exception for all tradechat errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class TransportError(TradeChatError):
    """Connection failure or non-success HTTP status on a stream request.

    Terminates the active stream. Never retried automatically.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        correlation_id: str | None = None,
    ):
        self.status_code = status_code
        self.url = url
        super().__init__(message, correlation_id=correlation_id)


class MalformedFrameError(TradeChatError):
    """A wire frame that fails structural parsing."""

    def __init__(self, message: str, *, frame: str = "", **kwargs):
        self.frame = frame
        super().__init__(message, **kwargs)


class ConfigurationError(TradeChatError):
    """Errors from client configuration."""

    pass
