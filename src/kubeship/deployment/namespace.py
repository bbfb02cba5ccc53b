"""Namespace reconciliation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from kubeship.infra.k8s import ClusterError, ResourceRef

from .errors import ApplyFailed, ValidationFailed
from .models import ReconcileAction

if TYPE_CHECKING:
    from kubeship.infra.k8s import KubernetesControllerSync


class NamespaceReconciler:
    """Makes sure the target namespace exists before anything is applied into it."""

    def __init__(self, controller: KubernetesControllerSync) -> None:
        self.controller = controller

    def desired_namespace(self, name: str) -> dict[str, Any]:
        """Namespace object kubeship creates when none exists."""
        return {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": name},
        }

    def _observe(self, name: str) -> dict[str, Any] | None:
        try:
            return self.controller.get_resource(ResourceRef("Namespace", name))
        except ClusterError as e:
            raise ApplyFailed(f"Could not read namespace '{name}'", str(e)) from e

    def ensure_namespace(self, name: str) -> ReconcileAction:
        """Create the namespace if it is missing.

        The desired object carries only the name, so an existing namespace
        never has a delta and is left as it is. Calling this twice never
        errors and never creates a second object.

        Args:
            name: Namespace name

        Returns:
            CREATED if the namespace was created, UNCHANGED if it already existed

        Raises:
            ApplyFailed: If the namespace is terminating or could not be created
        """
        observed = self._observe(name)

        if observed is not None:
            phase = (observed.get("status") or {}).get("phase")
            if phase == "Terminating":
                raise ApplyFailed(
                    f"Namespace '{name}' is terminating",
                    "Wait for the deletion to finish, then retry.",
                )
            logger.info(f"Namespace {name} already exists")
            return ReconcileAction.UNCHANGED

        result = self.controller.apply_resource(self.desired_namespace(name))
        if not result.success:
            raise ApplyFailed(
                f"Failed to create namespace '{name}'",
                result.stderr.strip() or None,
            )

        logger.info(f"Created namespace {name}")
        return ReconcileAction.CREATED

    def verify_namespace(self, name: str) -> None:
        """Require an existing, active namespace (upgrade never creates one).

        Raises:
            ValidationFailed: If the namespace does not exist
            ApplyFailed: If the namespace is terminating
        """
        observed = self._observe(name)
        if observed is None:
            raise ValidationFailed(
                f"Namespace '{name}' does not exist",
                "Run `kubeship install` first.",
            )
        if (observed.get("status") or {}).get("phase") == "Terminating":
            raise ApplyFailed(f"Namespace '{name}' is terminating")
        logger.info(f"Namespace {name} found")
