"""Backend transport."""

from tradechat.api.client import ChatClient, build_request_body, debug_from_query

__all__ = ["ChatClient", "build_request_body", "debug_from_query"]
