"""Pre-flight checks for the tools and cluster a deployment needs."""

from __future__ import annotations

import shutil
from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from kubeship.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants

from .errors import PrerequisiteMissing

if TYPE_CHECKING:
    from kubeship.infra.k8s import KubernetesControllerSync

    from .shell_commands import HelmCommands


class PrerequisiteChecker:
    """Confirms that required tools exist and the cluster answers.

    Checks, in order:
    - The cluster CLI is on PATH
    - The chart renderer is on PATH and runs, when a chart is used
    - The cluster API is reachable through the current context

    Nothing here mutates the cluster.
    """

    def __init__(
        self,
        controller: KubernetesControllerSync,
        helm: HelmCommands | None = None,
        *,
        needs_chart_renderer: bool = False,
        constants: DeploymentConstants | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        """Initialize the checker.

        Args:
            controller: Cluster controller used for the reachability probe
            helm: Helm commands, probed when a chart is the descriptor source
            needs_chart_renderer: Whether the descriptor source is a chart
            constants: Optional deployment constants
            which: PATH lookup, replaceable in tests
        """
        self.controller = controller
        self.helm = helm
        self.needs_chart_renderer = needs_chart_renderer
        self.constants = constants or DEFAULT_CONSTANTS
        self._which = which

    def check(self) -> None:
        """Run every check, stopping at the first missing prerequisite.

        Raises:
            PrerequisiteMissing: Naming the first tool or service not available
        """
        self._require_binary(self.constants.CLUSTER_CLI)

        if self.needs_chart_renderer:
            self._require_binary(self.constants.CHART_RENDERER)
            if self.helm is not None and self.helm.version() is None:
                raise PrerequisiteMissing(
                    self.constants.CHART_RENDERER,
                    details="helm is on PATH but `helm version` failed",
                )

        context = self.controller.get_current_context()
        if not self.controller.cluster_reachable():
            raise PrerequisiteMissing(
                self.constants.CLUSTER_API_PREREQUISITE,
                details=f"The API server for context '{context}' did not respond",
            )

        logger.info(f"Prerequisites satisfied (context: {context})")

    def _require_binary(self, name: str) -> None:
        path = self._which(name)
        if path is None:
            raise PrerequisiteMissing(name, details=f"'{name}' was not found on PATH")
        logger.debug(f"Found {name} at {path}")
