"""Reverse-order teardown of a release."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from kubeship.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants
from kubeship.infra.k8s import ClusterError, ResourceRef

from .descriptors import order_descriptors
from .errors import RollbackFailed
from .models import (
    DeleteAction,
    DeleteOutcome,
    DeploymentRequest,
    ResourceDescriptor,
    ResourceKind,
)

if TYPE_CHECKING:
    from kubeship.infra.k8s import KubernetesControllerSync


class Uninstaller:
    """Deletes a release's resources in reverse dependency order.

    Deletion is best effort: every resource is attempted, failures are
    collected and raised together once the pass is over. Resources that are
    already gone count as removed. The namespace is only touched when the
    caller asks for it.
    """

    def __init__(
        self,
        controller: KubernetesControllerSync,
        constants: DeploymentConstants | None = None,
    ) -> None:
        self.controller = controller
        self.constants = constants or DEFAULT_CONSTANTS

    def uninstall(
        self,
        request: DeploymentRequest,
        remove_namespace: bool = False,
    ) -> list[DeleteOutcome]:
        """Remove every resource of the request.

        Args:
            request: Deployment request holding the descriptors
            remove_namespace: Also delete the namespace (and anything else in it)

        Returns:
            One outcome per resource, in deletion order

        Raises:
            ValidationFailed: If the descriptors cannot be ordered
            RollbackFailed: If any deletion failed, with all outcomes attached
        """
        ordered = order_descriptors(request.descriptors)
        outcomes: list[DeleteOutcome] = []
        namespace_handled = False

        for descriptor in reversed(ordered):
            if descriptor.kind is ResourceKind.NAMESPACE:
                if not remove_namespace:
                    logger.info(f"Keeping {descriptor.label}")
                    outcomes.append(
                        DeleteOutcome(descriptor.kind, descriptor.name, DeleteAction.SKIPPED)
                    )
                    continue
                outcomes.append(self._delete_namespace(descriptor.name))
                namespace_handled |= descriptor.name == request.namespace
                continue

            outcomes.append(self._delete(descriptor, request.namespace))

        if remove_namespace and not namespace_handled:
            outcomes.append(self._delete_namespace(request.namespace))

        if any(not o.succeeded for o in outcomes):
            raise RollbackFailed(outcomes)
        return outcomes

    def _delete(self, descriptor: ResourceDescriptor, namespace: str) -> DeleteOutcome:
        ref = descriptor.ref(namespace)
        try:
            observed = self.controller.get_resource(ref)
        except ClusterError as e:
            logger.warning(f"Could not read {descriptor.label}: {e}")
            return DeleteOutcome(descriptor.kind, descriptor.name, DeleteAction.FAILED, str(e))

        if observed is None:
            logger.info(f"{descriptor.label} already absent")
            return DeleteOutcome(descriptor.kind, descriptor.name, DeleteAction.ABSENT)

        result = self.controller.delete_resource(ref, wait=True)
        if not result.success:
            error = result.stderr.strip() or f"exit code {result.returncode}"
            logger.warning(f"Failed to delete {descriptor.label}: {error}")
            return DeleteOutcome(descriptor.kind, descriptor.name, DeleteAction.FAILED, error)

        logger.info(f"Deleted {descriptor.label}")
        return DeleteOutcome(descriptor.kind, descriptor.name, DeleteAction.DELETED)

    def _delete_namespace(self, name: str) -> DeleteOutcome:
        try:
            observed = self.controller.get_resource(ResourceRef("Namespace", name))
        except ClusterError as e:
            logger.warning(f"Could not read namespace/{name}: {e}")
            return DeleteOutcome(ResourceKind.NAMESPACE, name, DeleteAction.FAILED, str(e))

        if observed is None:
            logger.info(f"namespace/{name} already absent")
            return DeleteOutcome(ResourceKind.NAMESPACE, name, DeleteAction.ABSENT)

        result = self.controller.delete_namespace(
            name, wait=True, timeout=self.constants.NAMESPACE_DELETE_TIMEOUT
        )
        if not result.success:
            error = result.stderr.strip() or f"exit code {result.returncode}"
            logger.warning(f"Failed to delete namespace/{name}: {error}")
            return DeleteOutcome(ResourceKind.NAMESPACE, name, DeleteAction.FAILED, error)

        logger.info(f"Deleted namespace/{name}")
        return DeleteOutcome(ResourceKind.NAMESPACE, name, DeleteAction.DELETED)
