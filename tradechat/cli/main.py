"""CLI entry point.

Provides the command-line interface with commands for:
- chat: Stream one turn from the trading assistant
- monitor: Follow market monitoring logs
"""

# Configure logging early before other imports
import tradechat.logging_config  # noqa: F401

import asyncio
import logging
import signal
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel

from tradechat.cli.rendering import render_monitoring, render_snapshot
from tradechat.exceptions import ConfigurationError
from tradechat.session import SessionStatus

app = typer.Typer(
    name="tradechat",
    help="Terminal client for the agentic trading assistant",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger(__name__)


@app.command()
def chat(
    prompt: Annotated[
        str,
        typer.Argument(help="Message to send"),
    ],
    recommend: Annotated[
        bool,
        typer.Option("--recommend", "-r", help="Ask for the curated recommendation instead"),
    ] = False,
    debug: Annotated[
        Optional[bool],  # noqa: UP007
        typer.Option("--debug/--no-debug", help="Ask the backend for debug output"),
    ] = None,
    api_url: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--api-url", help="Backend base URL (defaults to API_URL)"),
    ] = None,
) -> None:
    """Send a message and render the streamed answer live.

    Press Ctrl+C to stop the answer; text already received is kept.
    Press it again to abort a backend that stopped sending.

    Examples:
        tradechat chat "How is TSLA doing?"
        tradechat chat --recommend "Suggest a stock to buy"
    """
    overrides: dict[str, Any] = {}
    if debug is not None:
        overrides["debug"] = debug
    if api_url:
        overrides["base_url"] = api_url

    try:
        status = asyncio.run(_run_chat(prompt, recommend, overrides))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(130) from None

    if status == SessionStatus.FAILED:
        raise typer.Exit(1)
    if status == SessionStatus.CANCELLED:
        raise typer.Exit(130)


async def _run_chat(prompt: str, recommend: bool, overrides: dict[str, Any]) -> SessionStatus:
    """Stream one turn into a live transcript."""
    from rich.live import Live

    from tradechat.api.client import ChatClient
    from tradechat.monitoring import should_open_monitoring
    from tradechat.session import ChatSession

    client = ChatClient.from_settings(**overrides)
    session = ChatSession(client)

    snapshot = session.snapshot()
    interrupts = _InterruptRoute(session)
    try:
        with Live(render_snapshot(snapshot), console=console, refresh_per_second=8) as live:
            async for snapshot in session.send(prompt, recommend=recommend):
                live.update(render_snapshot(snapshot))
    finally:
        interrupts.close()

    if should_open_monitoring(session.state):
        console.print(
            Panel(
                "Market monitoring started for this conversation.\n"
                "Run [cyan]tradechat monitor[/cyan] to follow it.",
                title="📈 Monitoring",
                border_style="yellow",
            )
        )
    return snapshot.status


class _InterruptRoute:
    """Ctrl+C cancels the session's stream instead of killing the event loop.

    The first interrupt calls ``session.cancel()`` so the session finishes
    with its ``cancelled`` snapshot. The handler then uninstalls itself and a
    second interrupt raises KeyboardInterrupt as usual (stalled backend).
    """

    def __init__(self, session: Any) -> None:
        self._session = session
        self._loop = asyncio.get_running_loop()
        self.installed = False
        try:
            self._loop.add_signal_handler(signal.SIGINT, self._on_interrupt)
            self.installed = True
        except (NotImplementedError, RuntimeError, ValueError) as e:
            # No loop signal handlers on this platform or thread
            logger.debug("Ctrl+C not routed to the session: %s", e)

    def _on_interrupt(self) -> None:
        console.print("[yellow]Stopping…[/yellow]")
        self._session.cancel()
        self.close()

    def close(self) -> None:
        if self.installed:
            self._loop.remove_signal_handler(signal.SIGINT)
            self.installed = False


@app.command()
def monitor(
    api_url: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--api-url", help="Backend base URL (defaults to API_URL)"),
    ] = None,
    interval: Annotated[
        Optional[float],  # noqa: UP007
        typer.Option("--interval", "-i", help="Seconds between polls"),
    ] = None,
    count: Annotated[
        int,
        typer.Option("--count", "-n", help="Stop after this many polls (0 = until Ctrl+C)"),
    ] = 0,
) -> None:
    """Poll market monitoring status and show the latest line per ticker."""
    overrides: dict[str, Any] = {}
    if api_url:
        overrides["base_url"] = api_url
    if interval is not None:
        overrides["interval"] = interval

    try:
        asyncio.run(_run_monitor(overrides, count))
    except KeyboardInterrupt:
        console.print("[dim]Monitoring stopped.[/dim]")


async def _run_monitor(overrides: dict[str, Any], count: int) -> None:
    """Render monitoring snapshots until interrupted or ``count`` polls."""
    from rich.live import Live

    from tradechat.monitoring import MonitoringPoller

    poller = MonitoringPoller.from_settings(**overrides)
    queue = poller.subscribe()
    with Live(render_monitoring(poller.latest), console=console, refresh_per_second=4) as live:
        await poller.set_visible(True)
        try:
            received = 0
            while not count or received < count:
                snapshot = await queue.get()
                live.update(render_monitoring(snapshot))
                received += 1
        finally:
            await poller.set_visible(False)
            poller.unsubscribe(queue)


if __name__ == "__main__":
    app()
