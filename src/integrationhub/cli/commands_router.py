"""Structured command CLI commands.

- run: Process one structured command
- quick: Expand a quick command shorthand and process it
- quick-list: List quick command shorthands
- batch: Process a JSON array of commands from a file
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from typer import Context

from integrationhub.cli.app import app, echo_json, get_hub, parse_params, run_async
from integrationhub.commands.quick import list_quick_commands


@app.command(name="run")
def run_command(
    ctx: Context,
    service: str = typer.Argument(..., help="Service name or alias (e.g. gmail, calendar)"),
    action: str = typer.Argument(..., help="Abstract action (e.g. list_messages)"),
    user: str = typer.Option(..., "--user", "-u", help="User id or email"),
    params: Optional[str] = typer.Option(None, "--params", "-p", help="Action params as a JSON object"),
):
    """Process one structured command.

    Example:
        ih run gmail list_messages --user 1 --params '{"maxResults": 5}'
    """
    command = {"service": service, "action": action, "params": parse_params(params), "userId": user}
    result = run_async(get_hub(ctx).router.process(command))
    echo_json(result)
    if not result.success:
        raise typer.Exit(1)


@app.command(name="quick")
def quick(
    ctx: Context,
    shorthand: str = typer.Argument(..., help="Quick command name (see quick-list)"),
    user: str = typer.Option(..., "--user", "-u", help="User id or email"),
    params: Optional[str] = typer.Option(None, "--params", "-p", help="Param overrides as a JSON object"),
):
    """Expand a quick command and process it."""
    router = get_hub(ctx).router
    command = router.create_quick_command(shorthand, user, parse_params(params))
    if command is None:
        typer.echo(f"❌ Unknown quick command: {shorthand}", err=True)
        raise typer.Exit(1)
    result = run_async(router.process(command))
    echo_json(result)
    if not result.success:
        raise typer.Exit(1)


@app.command(name="quick-list")
def quick_list():
    """List available quick command shorthands."""
    for name in list_quick_commands():
        typer.echo(name)


@app.command(name="batch")
def batch(
    ctx: Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with an array of commands"),
):
    """Process a batch of commands concurrently."""
    try:
        commands = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        typer.echo(f"❌ Invalid JSON in {path}: {e}", err=True)
        raise typer.Exit(2)
    if not isinstance(commands, list):
        typer.echo("❌ Batch file must contain a JSON array", err=True)
        raise typer.Exit(2)

    results = run_async(get_hub(ctx).router.process_batch(commands))
    echo_json(results)
    if not all(r.success for r in results):
        raise typer.Exit(1)
