"""Market monitoring status poller.

When a conversation hands a ticker to the market monitoring agent, the
backend keeps appending log lines per ticker. The poller fetches
``/monitoring_status`` on a fixed interval while the panel is visible and
publishes an immutable MonitoringSnapshot to every subscriber queue.

Usage::

    poller = MonitoringPoller.from_settings()
    queue = poller.subscribe()
    await poller.set_visible(True)
    snapshot = await queue.get()
    ...
    await poller.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from tradechat.exceptions import TransportError
from tradechat.models import ConversationState, Role, TextMessage
from tradechat.models.enums import AgentName

if TYPE_CHECKING:
    from tradechat.settings import Settings

logger = logging.getLogger(__name__)

MONITORING_TOOL = "get_monitoring_stock"

_QUEUE_SIZE = 16


def should_open_monitoring(state: ConversationState) -> bool:
    """Whether the conversation started market monitoring.

    True when a workflow step belongs to the monitoring agent, a workflow
    mentions the monitoring tool anywhere in its payloads, or the last
    assistant text message names the tool.
    """
    for message in state.workflow_messages():
        workflow = message.workflow
        if any(step.agent_name == AgentName.MARKET_MONITORING for step in workflow.steps):
            return True
        if MONITORING_TOOL in workflow.model_dump_json():
            return True

    last = state.last_message
    return (
        isinstance(last, TextMessage)
        and last.role == Role.ASSISTANT
        and MONITORING_TOOL in last.content
    )


class MonitoringSnapshot(BaseModel):
    """Monitoring panel state after one poll.

    Attributes:
        logs: Log lines per ticker from the latest successful poll.
        update_counts: Times each ticker's latest line changed.
        last_lines: Latest line seen per ticker.
        error: Error text from the latest poll, if it failed.
        loading: True until the first poll finishes.
    """

    model_config = ConfigDict(frozen=True)

    logs: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    update_counts: dict[str, int] = Field(default_factory=dict)
    last_lines: dict[str, str] = Field(default_factory=dict)
    error: str | None = None
    loading: bool = True


def merge_logs(previous: MonitoringSnapshot, raw_logs: Any) -> MonitoringSnapshot:
    """Fold a ``{ticker: [lines]}`` payload into the previous snapshot.

    Tickers with no lines or a non-list value are skipped. A ticker's update
    count grows only when its latest line differs from the one seen before.
    """
    if not isinstance(raw_logs, dict):
        logger.warning("Monitoring logs is %s, expected an object", type(raw_logs).__name__)
        raw_logs = {}

    logs: dict[str, tuple[str, ...]] = {}
    counts = dict(previous.update_counts)
    last_lines = dict(previous.last_lines)
    for ticker, lines in raw_logs.items():
        if not isinstance(lines, list) or not lines:
            continue
        logs[ticker] = tuple(str(line) for line in lines)
        latest = logs[ticker][-1]
        if last_lines.get(ticker) != latest:
            last_lines[ticker] = latest
            counts[ticker] = counts.get(ticker, 0) + 1

    return MonitoringSnapshot(
        logs=logs,
        update_counts=counts,
        last_lines=last_lines,
        error=None,
        loading=False,
    )


class MonitoringPoller:
    """Polls the monitoring status endpoint while visible."""

    def __init__(
        self,
        base_url: str,
        *,
        endpoint: str = "/monitoring_status",
        interval: float = 2.0,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}{endpoint}"
        self.interval = interval
        self.timeout = timeout
        self._http_client = http_client
        self._latest = MonitoringSnapshot()
        self._subscribers: list[asyncio.Queue[MonitoringSnapshot]] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> MonitoringPoller:
        if settings is None:
            from tradechat.settings import get_settings

            settings = get_settings()
        kwargs: dict[str, Any] = {
            "endpoint": settings.monitoring_endpoint,
            "interval": settings.monitoring_poll_interval,
            "timeout": settings.request_timeout,
        }
        kwargs.update(overrides)
        base_url = kwargs.pop("base_url", None) or settings.api_url
        return cls(base_url, **kwargs)

    @property
    def latest(self) -> MonitoringSnapshot:
        return self._latest

    @property
    def is_running(self) -> bool:
        return self._running

    async def fetch(self) -> Any:
        """GET the status endpoint and return its ``logs`` object.

        Raises:
            TransportError: On connection failure or non-2xx status.
        """
        client = self._http_client or httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.get(self.url)
            if not response.is_success:
                raise TransportError(
                    f"HTTP {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                    url=self.url,
                )
            data = response.json()
        except httpx.HTTPError as e:
            raise TransportError(f"Connection error: {e}", url=self.url) from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON from monitoring endpoint: {e}", url=self.url) from e
        finally:
            if self._http_client is None:
                await client.aclose()
        if not isinstance(data, dict):
            return {}
        return data.get("logs", {})

    async def poll_once(self) -> MonitoringSnapshot:
        """Fetch once, update the latest snapshot and publish it.

        On failure the previous logs stay and ``error`` is set.
        """
        try:
            raw_logs = await self.fetch()
        except TransportError as e:
            logger.warning("Monitoring poll failed: %s", e)
            snapshot = self._latest.model_copy(update={"error": str(e), "loading": False})
        else:
            snapshot = merge_logs(self._latest, raw_logs)
        self._latest = snapshot
        self._publish(snapshot)
        return snapshot

    async def run(self) -> None:
        """Poll until stopped."""
        self._running = True
        logger.info("Monitoring poller started (%s every %.1fs)", self.url, self.interval)
        while self._running:
            try:
                await self.poll_once()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break

    def start(self) -> asyncio.Task[None]:
        """Start polling as a background task. No-op if already polling."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop polling. The latest snapshot is kept."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Monitoring poller stopped")

    async def set_visible(self, visible: bool) -> None:
        """Poll only while the monitoring panel is shown."""
        if visible:
            self.start()
        else:
            await self.stop()

    def subscribe(self) -> asyncio.Queue[MonitoringSnapshot]:
        """Return a queue that receives every new snapshot."""
        queue: asyncio.Queue[MonitoringSnapshot] = asyncio.Queue(maxsize=_QUEUE_SIZE)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[MonitoringSnapshot]) -> None:
        with contextlib.suppress(ValueError):
            self._subscribers.remove(queue)

    def _publish(self, snapshot: MonitoringSnapshot) -> None:
        for queue in self._subscribers:
            if queue.full():
                # Slow subscriber: drop its oldest snapshot
                queue.get_nowait()
            queue.put_nowait(snapshot)


__all__ = [
    "MONITORING_TOOL",
    "MonitoringPoller",
    "MonitoringSnapshot",
    "merge_logs",
    "should_open_monitoring",
]
