"""CLI package for the integration hub.

The main Typer app is created in app.py and commands are registered by
importing each command module.
"""

# Import command modules to register commands with the app
import integrationhub.cli.commands_router  # noqa: F401, E402
import integrationhub.cli.commands_status  # noqa: F401, E402
from integrationhub.cli.app import app

__all__ = ["app"]
