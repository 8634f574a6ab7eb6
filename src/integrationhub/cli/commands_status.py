"""Connection status CLI commands.

- integrations: List the integration catalog
- status: Connection status for one integration
- status-all: Connection status for every integration
- auth-url: Resolve the OAuth authorization URL
- disconnect: Disconnect an integration
"""

from __future__ import annotations

import typer
from typer import Context

from integrationhub.cli.app import app, echo_json, get_hub, run_async

USER_OPTION_HELP = "User account (email)"


@app.command(name="integrations")
def integrations(ctx: Context):
    """List registered integrations."""
    echo_json(get_hub(ctx).broker.list_integrations())


@app.command(name="status")
def status(
    ctx: Context,
    integration: str = typer.Argument(..., help="Integration id (e.g. gmail)"),
    user: str = typer.Option(..., "--user", "-u", help=USER_OPTION_HELP),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore the cached status"),
):
    """Show connection status for one integration.

    Example:
        ih status gmail --user me@example.com
    """
    broker = get_hub(ctx).broker
    if refresh:
        result = run_async(broker.refresh_status(integration, user))
    else:
        result = run_async(broker.get_status(integration, user))
    echo_json(result)
    if not result.ok:
        raise typer.Exit(1)


@app.command(name="status-all")
def status_all(
    ctx: Context,
    user: str = typer.Option(..., "--user", "-u", help=USER_OPTION_HELP),
):
    """Show connection status for every integration."""
    echo_json(run_async(get_hub(ctx).broker.get_all_statuses(user)))


@app.command(name="auth-url")
def auth_url(
    ctx: Context,
    integration: str = typer.Argument(..., help="Integration id"),
    user: str = typer.Option(..., "--user", "-u", help=USER_OPTION_HELP),
):
    """Resolve the OAuth URL the user should open to connect."""
    result = run_async(get_hub(ctx).broker.get_auth_url(integration, user))
    echo_json(result)
    if not result.ok:
        raise typer.Exit(1)


@app.command(name="disconnect")
def disconnect(
    ctx: Context,
    integration: str = typer.Argument(..., help="Integration id"),
    user: str = typer.Option(..., "--user", "-u", help=USER_OPTION_HELP),
):
    """Disconnect an integration for a user."""
    result = run_async(get_hub(ctx).broker.disconnect(integration, user))
    echo_json(result)
    if not result.ok:
        raise typer.Exit(1)
