"""CLI application setup using Typer.

Provides the command-line interface for tradechat.
"""

from tradechat.cli.main import app

__all__ = ["app"]
