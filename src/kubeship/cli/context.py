"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import click
import typer

from kubeship.cli.shared.console import CLIConsole, console
from kubeship.config.settings import DeploySettings, load_settings
from kubeship.deployment.shell_commands import ShellCommands
from kubeship.infra.constants import DeploymentConstants
from kubeship.infra.k8s import get_k8s_controller_sync
from kubeship.infra.k8s.controller import KubernetesControllerSync


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: CLIConsole
    project_root: Path
    settings: DeploySettings
    commands: ShellCommands
    k8s_controller: KubernetesControllerSync
    constants: DeploymentConstants

    def controller_for(self, settings: DeploySettings) -> KubernetesControllerSync:
        """Controller for the backend the (possibly overridden) settings select."""
        if settings.backend == self.settings.backend:
            return self.k8s_controller
        return get_k8s_controller_sync(settings.backend)


def build_cli_context(config_path: Path | None = None) -> CLIContext:
    """Build a fresh CLIContext.

    Raises:
        ValueError: If the config file is invalid
        FileNotFoundError: If an explicit config file does not exist
    """
    project_root = Path.cwd()
    if config_path is not None:
        config_path = config_path if config_path.is_absolute() else project_root / config_path
    settings = load_settings(config_path)

    return CLIContext(
        console=console,
        project_root=project_root,
        settings=settings,
        commands=ShellCommands(project_root),
        k8s_controller=get_k8s_controller_sync(settings.backend),
        constants=DeploymentConstants(),
    )


def get_cli_context(ctx: typer.Context | None = None) -> CLIContext:
    """Return the CLIContext from Typer, falling back to a new instance."""
    context = ctx or click.get_current_context(silent=True)
    if context and isinstance(context.obj, CLIContext):
        return context.obj
    return build_cli_context()
