"""Helm command abstractions.

Helm is used purely as the chart renderer: the chart is linted and then
rendered to plain manifests, which the resource sequencer applies itself.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .types import CommandResult, HelmVersion

if TYPE_CHECKING:
    from .runner import CommandRunner


class HelmCommands:
    """Helm-related shell commands.

    Provides operations for:
    - Capability probing (version)
    - Chart validation (lint)
    - Chart rendering (template)
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize Helm commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    # =========================================================================
    # Capability
    # =========================================================================

    def version(self) -> HelmVersion | None:
        """Return the installed Helm version, or None if helm cannot run.

        Returns:
            HelmVersion parsed from `helm version --short`
        """
        result = self._runner.run(["helm", "version", "--short"])
        if not result.success or not result.stdout.strip():
            return None

        version, _, commit = result.stdout.strip().partition("+g")
        return HelmVersion(version=version, git_commit=commit)

    # =========================================================================
    # Chart Operations
    # =========================================================================

    def lint(
        self,
        chart_path: Path,
        *,
        value_files: list[Path] | None = None,
    ) -> CommandResult:
        """Validate a chart with `helm lint`.

        Args:
            chart_path: Path to the Helm chart directory
            value_files: Optional values.yaml override files

        Returns:
            CommandResult with lint status and findings in stdout
        """
        cmd = ["helm", "lint", str(chart_path)]
        for vf in value_files or []:
            cmd.extend(["-f", str(vf)])
        return self._runner.run(cmd)

    def template(
        self,
        release_name: str,
        chart_path: Path,
        namespace: str,
        *,
        value_files: list[Path] | None = None,
    ) -> CommandResult:
        """Render a chart to manifests with `helm template`.

        Args:
            release_name: Release name used for naming inside the templates
            chart_path: Path to the Helm chart directory
            namespace: Namespace the manifests are rendered for
            value_files: Optional values.yaml override files

        Returns:
            CommandResult with the rendered multi-document YAML in stdout

        Example:
            >>> helm.template(
            ...     "excalidraw",
            ...     Path("./k8s/helm/excalidraw"),
            ...     "excalidraw",
            ...     value_files=[Path("./k8s/helm/excalidraw/values.yaml")],
            ... )
        """
        cmd = [
            "helm",
            "template",
            release_name,
            str(chart_path),
            "--namespace",
            namespace,
        ]

        for vf in value_files or []:
            cmd.extend(["-f", str(vf)])

        return self._runner.run(cmd)
