"""CLI app setup and common utilities.

This module creates the main Typer app and the shared state used by all
command modules: the assembled Hub (built once per invocation) and the
JSON output helpers.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Optional, TypeVar

import typer
from pydantic import BaseModel
from typer import Context, Typer

from integrationhub.config import config
from integrationhub.connectors.dummy import StubGateway
from integrationhub.hub import Hub, build_hub
from integrationhub.logging_setup import configure_logging

T = TypeVar("T")

# Initialize Typer app
app = Typer(
    name="integrationhub",
    help="Integration hub: connection status and structured commands over the integration gateway.",
)


# =============================================================================
# Shared State
# =============================================================================


class CLIState:
    """Shared state object for CLI commands.

    Tests can pass a prebuilt hub through ``CliRunner.invoke(..., obj=CLIState(hub))``.
    """

    def __init__(self, hub: Optional[Hub] = None):
        self.hub: Optional[Hub] = hub
        self.offline: bool = False


def get_hub(ctx: Context) -> Hub:
    """Get (building on first use) the hub for this invocation."""
    state: CLIState = ctx.ensure_object(CLIState)
    if state.hub is None:
        gateway = StubGateway() if state.offline else None
        state.hub = build_hub(config, gateway=gateway)
    return state.hub


def run_async(awaitable: Awaitable[T]) -> T:
    """Run a coroutine to completion from a sync command."""
    return asyncio.run(awaitable)


def echo_json(payload: Any) -> None:
    """Print a result model or plain payload as JSON."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_none=True)
    elif isinstance(payload, list):
        payload = [
            p.model_dump(exclude_none=True) if isinstance(p, BaseModel) else p for p in payload
        ]
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def parse_params(raw: Optional[str]) -> dict:
    """Parse a --params JSON object.

    Raises:
        typer.Exit: If the value is not a JSON object
    """
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        typer.echo(f"❌ Invalid --params JSON: {e}", err=True)
        raise typer.Exit(2)
    if not isinstance(value, dict):
        typer.echo("❌ --params must be a JSON object", err=True)
        raise typer.Exit(2)
    return value


@app.callback()
def init_app(
    ctx: Context,
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Use the in-process stub gateway instead of the real one (no network)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: IH_LOG_LEVEL or INFO)",
        envvar="IH_LOG_LEVEL",
    ),
):
    """Initialize logging and the shared CLI state."""
    configure_logging(log_level)
    state = ctx.ensure_object(CLIState)
    state.offline = offline
