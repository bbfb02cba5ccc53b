"""Main CLI application module.

This module provides the main entry point for the kubeship CLI.

Commands:
- install: Deploy the application into a namespace
- upgrade: Update an existing deployment in place
- uninstall: Remove the deployment
- status: Show what is running
"""

from pathlib import Path
from typing import Annotated

import typer

from kubeship.utils.logging import configure_logging

from .commands import install, status, uninstall, upgrade
from .context import build_cli_context
from .shared.console import console

# Create the main CLI application
app = typer.Typer(
    help="🚢 kubeship - Deploy a stateless web app to Kubernetes",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs"),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option("--config", help="Path to kubeship.yaml"),
    ] = None,
) -> None:
    """Load configuration and set up logging for every command."""
    configure_logging(verbose)
    try:
        ctx.obj = build_cli_context(config)
    except (ValueError, FileNotFoundError) as e:
        console.handle_error("Invalid configuration", str(e))


app.command()(install)
app.command()(upgrade)
app.command()(uninstall)
app.command()(status)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
