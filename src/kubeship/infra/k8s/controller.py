"""Abstract Kubernetes controller interface.

Defines the contract for the cluster operations the deployment core needs,
implemented by different backends (kubectl subprocess, kr8s library).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .utils import run_sync

# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CommandResult:
    """Result of a command execution."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


@dataclass(frozen=True)
class ResourceRef:
    """Reference to a single Kubernetes object.

    Attributes:
        api_kind: Kubernetes kind (e.g., "Deployment", "Namespace")
        name: Object name
        namespace: Namespace for namespaced kinds, None for cluster-scoped ones
    """

    api_kind: str
    name: str
    namespace: str | None = None

    def __str__(self) -> str:
        return f"{self.api_kind.lower()}/{self.name}"


@dataclass(frozen=True)
class RolloutState:
    """Observed rollout progress of a workload.

    A workload is ready once its controller has observed the latest spec and
    every desired replica is both updated and ready.
    """

    desired_replicas: int
    ready_replicas: int
    last_transition: datetime | None = None
    updated_replicas: int | None = field(default=None, compare=False)
    generation_observed: bool = field(default=True, compare=False)

    @property
    def is_ready(self) -> bool:
        if not self.generation_observed:
            return False
        if self.updated_replicas is not None and self.updated_replicas < self.desired_replicas:
            return False
        return self.ready_replicas == self.desired_replicas


@dataclass
class PodInfo:
    """Information about a Kubernetes pod."""

    name: str
    status: str
    restarts: int = 0
    creation_timestamp: str = ""
    ip: str = ""
    node: str = ""


@dataclass
class ServiceInfo:
    """Information about a Kubernetes Service."""

    name: str
    type: str
    cluster_ip: str
    external_ip: str = ""
    ports: str = ""


class ClusterError(Exception):
    """Raised when the cluster answers a read with something other than NotFound."""


# =============================================================================
# Parsing helpers shared by the backends
# =============================================================================


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_rollout_state(deployment: dict[str, Any]) -> RolloutState:
    """Build a RolloutState from a raw Deployment object.

    Desired replicas default to 1 when the spec omits them, which is what the
    API server does too. The last transition is the newest condition
    transition time. Until the controller reports an observedGeneration at
    least as new as metadata.generation, the counts describe the previous
    spec and the state is not ready.
    """
    metadata = deployment.get("metadata", {}) or {}
    spec = deployment.get("spec", {}) or {}
    status = deployment.get("status", {}) or {}

    desired = spec.get("replicas")
    if desired is None:
        desired = 1

    generation = metadata.get("generation")
    observed_generation = status.get("observedGeneration")
    generation_observed = generation is None or (
        observed_generation is not None and int(observed_generation) >= int(generation)
    )

    transitions = [
        ts
        for condition in status.get("conditions", []) or []
        if (ts := _parse_timestamp(condition.get("lastTransitionTime")))
    ]

    return RolloutState(
        desired_replicas=int(desired),
        ready_replicas=int(status.get("readyReplicas", 0) or 0),
        last_transition=max(transitions) if transitions else None,
        updated_replicas=int(status.get("updatedReplicas", 0) or 0),
        generation_observed=generation_observed,
    )


def parse_pod(pod: dict[str, Any]) -> PodInfo:
    """Build a PodInfo from a raw Pod object."""
    metadata = pod.get("metadata", {})
    spec = pod.get("spec", {}) or {}
    status = pod.get("status", {}) or {}

    pod_status = status.get("phase", "Unknown")
    restarts = 0

    for cs in status.get("containerStatuses", []) or []:
        restarts += cs.get("restartCount", 0)
        state = cs.get("state", {})
        if "waiting" in state:
            reason = state["waiting"].get("reason", "")
            if reason:
                pod_status = reason
        elif "terminated" in state:
            if state["terminated"].get("reason", "") == "Error":
                pod_status = "Error"

    return PodInfo(
        name=metadata.get("name", ""),
        status=pod_status,
        restarts=restarts,
        creation_timestamp=metadata.get("creationTimestamp", ""),
        ip=status.get("podIP", ""),
        node=spec.get("nodeName", ""),
    )


def parse_service(svc: dict[str, Any]) -> ServiceInfo:
    """Build a ServiceInfo from a raw Service object."""
    metadata = svc.get("metadata", {})
    spec = svc.get("spec", {}) or {}
    status = svc.get("status", {}) or {}

    # Get external IP from LoadBalancer status
    external_ip = ""
    lb_ingress = status.get("loadBalancer", {}).get("ingress", [])
    if lb_ingress:
        external_ip = lb_ingress[0].get("ip", lb_ingress[0].get("hostname", ""))

    ports = []
    for port in spec.get("ports", []) or []:
        port_str = f"{port.get('port')}"
        if target := port.get("targetPort"):
            port_str += f":{target}"
        if proto := port.get("protocol"):
            port_str += f"/{proto}"
        ports.append(port_str)

    return ServiceInfo(
        name=metadata.get("name", ""),
        type=spec.get("type", ""),
        cluster_ip=spec.get("clusterIP", ""),
        external_ip=external_ip,
        ports=",".join(ports),
    )


# =============================================================================
# Abstract Controller
# =============================================================================


class KubernetesController(ABC):
    """Abstract base class for Kubernetes operations.

    All methods are async to support both sync (kubectl) and async (kr8s)
    implementations. Use `KubernetesControllerSync` to call from the
    synchronous deployment core.
    """

    # =========================================================================
    # Cluster Context
    # =========================================================================

    @abstractmethod
    async def get_current_context(self) -> str:
        """Get the current kubectl context name.

        Returns:
            Context name, or "unknown" if detection fails
        """
        ...

    @abstractmethod
    async def cluster_reachable(self) -> bool:
        """Check whether the cluster API server answers requests.

        Returns:
            True if the API server responded, False otherwise
        """
        ...

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    @abstractmethod
    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists.

        Args:
            namespace: Namespace to check

        Returns:
            True if the namespace exists, False otherwise
        """
        ...

    @abstractmethod
    async def delete_namespace(
        self,
        namespace: str,
        *,
        wait: bool = True,
        timeout: str = "120s",
    ) -> CommandResult:
        """Delete a Kubernetes namespace and all its resources.

        Warning: This is a destructive operation.

        Args:
            namespace: Namespace to delete
            wait: Whether to wait for deletion to complete
            timeout: Maximum time to wait

        Returns:
            CommandResult with deletion status
        """
        ...

    # =========================================================================
    # Resource Operations
    # =========================================================================

    @abstractmethod
    async def get_resource(self, ref: ResourceRef) -> dict[str, Any] | None:
        """Fetch the observed state of a single object.

        Args:
            ref: Object to fetch

        Returns:
            The raw object, or None if it does not exist

        Raises:
            ClusterError: If the read failed for any reason other than NotFound
        """
        ...

    @abstractmethod
    async def apply_resource(self, manifest: dict[str, Any]) -> CommandResult:
        """Apply a single manifest (server-side create-or-update).

        Args:
            manifest: Complete object definition

        Returns:
            CommandResult with apply status
        """
        ...

    @abstractmethod
    async def delete_resource(
        self,
        ref: ResourceRef,
        *,
        wait: bool = True,
    ) -> CommandResult:
        """Delete a single object. Deleting an absent object succeeds.

        Args:
            ref: Object to delete
            wait: Whether to wait for the deletion to finish

        Returns:
            CommandResult with deletion status
        """
        ...

    # =========================================================================
    # Workload Operations
    # =========================================================================

    @abstractmethod
    async def get_rollout_state(
        self,
        name: str,
        namespace: str,
    ) -> RolloutState | None:
        """Read the replica counts of a Deployment.

        Args:
            name: Deployment name
            namespace: Kubernetes namespace

        Returns:
            RolloutState, or None if the Deployment does not exist
        """
        ...

    @abstractmethod
    async def get_pods(self, namespace: str) -> list[PodInfo]:
        """Get all pods in a namespace with their status."""
        ...

    @abstractmethod
    async def get_services(self, namespace: str) -> list[ServiceInfo]:
        """Get all services in a namespace."""
        ...


class KubernetesControllerSync:
    """Blocking facade over an async KubernetesController.

    The deployment core is strictly sequential, so it talks to the cluster
    through this wrapper. Each call runs the coroutine to completion.
    """

    def __init__(self, controller: KubernetesController) -> None:
        self._controller = controller

    @property
    def controller(self) -> KubernetesController:
        return self._controller

    def get_current_context(self) -> str:
        return run_sync(self._controller.get_current_context())

    def cluster_reachable(self) -> bool:
        return run_sync(self._controller.cluster_reachable())

    def namespace_exists(self, namespace: str) -> bool:
        return run_sync(self._controller.namespace_exists(namespace))

    def delete_namespace(
        self,
        namespace: str,
        *,
        wait: bool = True,
        timeout: str = "120s",
    ) -> CommandResult:
        return run_sync(
            self._controller.delete_namespace(namespace, wait=wait, timeout=timeout)
        )

    def get_resource(self, ref: ResourceRef) -> dict[str, Any] | None:
        return run_sync(self._controller.get_resource(ref))

    def apply_resource(self, manifest: dict[str, Any]) -> CommandResult:
        return run_sync(self._controller.apply_resource(manifest))

    def delete_resource(self, ref: ResourceRef, *, wait: bool = True) -> CommandResult:
        return run_sync(self._controller.delete_resource(ref, wait=wait))

    def get_rollout_state(self, name: str, namespace: str) -> RolloutState | None:
        return run_sync(self._controller.get_rollout_state(name, namespace))

    def get_pods(self, namespace: str) -> list[PodInfo]:
        return run_sync(self._controller.get_pods(namespace))

    def get_services(self, namespace: str) -> list[ServiceInfo]:
        return run_sync(self._controller.get_services(namespace))
