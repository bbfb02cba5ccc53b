"""Shell command abstractions for the external tools kubeship drives.

- helm: chart linting and rendering

Cluster access does not go through here; it uses the controllers in
kubeship.infra.k8s.

Usage:
    from kubeship.deployment.shell_commands import ShellCommands

    commands = ShellCommands(project_root=Path("."))
    if commands.helm.version() is None:
        print("helm is not usable")
"""

from pathlib import Path

from .helm import HelmCommands
from .runner import CommandRunner
from .types import CommandResult, HelmVersion


class ShellCommands:
    """Unified interface for shell command operations.

    Attributes:
        helm: Helm-related commands
    """

    def __init__(self, project_root: Path) -> None:
        """Initialize the shell commands executor.

        Args:
            project_root: Path to the project root directory.
                         Commands will be executed from this directory by default.
        """
        self._project_root = Path(project_root)
        self._runner = CommandRunner(self._project_root)

        self.helm = HelmCommands(self._runner)

    @property
    def project_root(self) -> Path:
        """Get the project root path."""
        return self._project_root


__all__ = [
    "ShellCommands",
    "CommandResult",
    "HelmVersion",
    "HelmCommands",
    "CommandRunner",
]
