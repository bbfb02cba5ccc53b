"""Data model for a deployment run.

A DeploymentRequest is built once per invocation and never mutated. The
components return outcome values that the orchestrator assembles into a
DeploymentResult for the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from kubeship.infra.k8s.controller import (
    PodInfo,
    ResourceRef,
    RolloutState,
    ServiceInfo,
)

if TYPE_CHECKING:
    from .errors import DeploymentError

__all__ = [
    "ApplyAction",
    "ApplyOutcome",
    "DeleteAction",
    "DeleteOutcome",
    "DeploymentRequest",
    "DeploymentResult",
    "DeploymentStatus",
    "KIND_DEPENDENCIES",
    "ObservedResource",
    "ReconcileAction",
    "ResourceDescriptor",
    "ResourceKind",
    "RolloutOutcome",
    "RolloutState",
    "RolloutStatus",
    "RunPhase",
    "StatusSnapshot",
]


class ResourceKind(Enum):
    """Role a resource plays in the application."""

    NAMESPACE = "namespace"
    IDENTITY = "identity"
    WORKLOAD = "workload"
    ENDPOINT = "endpoint"
    AUTOSCALER = "autoscaler"
    DISRUPTION_POLICY = "disruption-policy"
    INGRESS = "ingress"

    @property
    def api_kind(self) -> str:
        """Kubernetes kind backing this role."""
        return _API_KINDS[self]

    @property
    def rank(self) -> int:
        """Position in the fixed dependency order (namespace first)."""
        return _RANKS[self]

    @property
    def namespaced(self) -> bool:
        return self is not ResourceKind.NAMESPACE

    @classmethod
    def from_api_kind(cls, api_kind: str) -> ResourceKind | None:
        for kind, name in _API_KINDS.items():
            if name == api_kind:
                return kind
        return None


_API_KINDS: dict[ResourceKind, str] = {
    ResourceKind.NAMESPACE: "Namespace",
    ResourceKind.IDENTITY: "ServiceAccount",
    ResourceKind.WORKLOAD: "Deployment",
    ResourceKind.ENDPOINT: "Service",
    ResourceKind.AUTOSCALER: "HorizontalPodAutoscaler",
    ResourceKind.DISRUPTION_POLICY: "PodDisruptionBudget",
    ResourceKind.INGRESS: "Ingress",
}

_RANKS: dict[ResourceKind, int] = {
    ResourceKind.NAMESPACE: 0,
    ResourceKind.IDENTITY: 1,
    ResourceKind.WORKLOAD: 2,
    ResourceKind.ENDPOINT: 3,
    ResourceKind.AUTOSCALER: 3,
    ResourceKind.DISRUPTION_POLICY: 3,
    ResourceKind.INGRESS: 4,
}

# Fixed dependency graph between kinds. Endpoints, autoscalers and disruption
# policies need the workload to exist, not to be ready.
KIND_DEPENDENCIES: dict[ResourceKind, frozenset[ResourceKind]] = {
    ResourceKind.NAMESPACE: frozenset(),
    ResourceKind.IDENTITY: frozenset({ResourceKind.NAMESPACE}),
    ResourceKind.WORKLOAD: frozenset({ResourceKind.IDENTITY}),
    ResourceKind.ENDPOINT: frozenset({ResourceKind.WORKLOAD}),
    ResourceKind.AUTOSCALER: frozenset({ResourceKind.WORKLOAD}),
    ResourceKind.DISRUPTION_POLICY: frozenset({ResourceKind.WORKLOAD}),
    ResourceKind.INGRESS: frozenset({ResourceKind.ENDPOINT}),
}


@dataclass(frozen=True)
class ResourceDescriptor:
    """Declarative definition of one cluster resource.

    Attributes:
        kind: Role of the resource
        name: Object name
        depends_on: Kinds that must be applied successfully first
        payload: Complete manifest, opaque to the core
    """

    kind: ResourceKind
    name: str
    depends_on: frozenset[ResourceKind] = field(default_factory=frozenset)
    payload: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def label(self) -> str:
        return f"{self.kind.api_kind.lower()}/{self.name}"

    def ref(self, namespace: str) -> ResourceRef:
        """Cluster reference for this descriptor inside a namespace."""
        return ResourceRef(
            api_kind=self.kind.api_kind,
            name=self.name,
            namespace=namespace if self.kind.namespaced else None,
        )


@dataclass(frozen=True)
class DeploymentRequest:
    """Everything one run needs. Immutable for the duration of the run."""

    release: str
    namespace: str
    descriptors: tuple[ResourceDescriptor, ...]
    image: str | None = None
    timeout: float = 300.0
    poll_interval: float = 2.0

    @property
    def workloads(self) -> tuple[ResourceDescriptor, ...]:
        return tuple(d for d in self.descriptors if d.kind is ResourceKind.WORKLOAD)


class ReconcileAction(Enum):
    CREATED = "created"
    UNCHANGED = "unchanged"


class ApplyAction(Enum):
    CREATED = "created"
    CONFIGURED = "configured"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class ApplyOutcome:
    """Result of applying one descriptor."""

    descriptor: ResourceDescriptor
    action: ApplyAction
    observed: dict[str, Any] | None = field(default=None, compare=False)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.action is not ApplyAction.FAILED


class DeleteAction(Enum):
    DELETED = "deleted"
    ABSENT = "absent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of deleting one resource during uninstall."""

    kind: ResourceKind
    name: str
    action: DeleteAction
    error: str | None = None

    @property
    def label(self) -> str:
        return f"{self.kind.api_kind.lower()}/{self.name}"

    @property
    def succeeded(self) -> bool:
        return self.action is not DeleteAction.FAILED


class RolloutStatus(Enum):
    READY = "ready"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RolloutOutcome:
    """How a rollout wait ended, with the last observed state."""

    status: RolloutStatus
    state: RolloutState | None = None
    polls: int = 0


class DeploymentStatus(Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"
    CANCELLED = "Cancelled"


class RunPhase(Enum):
    IDLE = "Idle"
    CHECKING_PREREQUISITES = "CheckingPrerequisites"
    RECONCILING_NAMESPACE = "ReconcilingNamespace"
    APPLYING = "Applying"
    AWAITING_READINESS = "AwaitingReadiness"
    REPORTING = "Reporting"


@dataclass
class DeploymentResult:
    """Outcome of an install or upgrade run. Owned by the caller."""

    release: str
    namespace: str
    status: DeploymentStatus
    outcomes: list[ApplyOutcome] = field(default_factory=list)
    elapsed: float = 0.0
    rollout: RolloutState | None = None
    phase: RunPhase = RunPhase.IDLE
    error: DeploymentError | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is DeploymentStatus.SUCCEEDED

    @property
    def successful_outcomes(self) -> list[ApplyOutcome]:
        return [o for o in self.outcomes if o.succeeded]


@dataclass(frozen=True)
class ObservedResource:
    """Observed presence of one descriptor, for the status command."""

    descriptor: ResourceDescriptor
    present: bool
    observed: dict[str, Any] | None = field(default=None, compare=False)
    error: str | None = None


@dataclass
class StatusSnapshot:
    """Read-only view of a release as the cluster reports it."""

    release: str
    namespace: str
    context: str
    namespace_exists: bool
    resources: list[ObservedResource] = field(default_factory=list)
    rollouts: dict[str, RolloutState | None] = field(default_factory=dict)
    pods: list[PodInfo] = field(default_factory=list)
    services: list[ServiceInfo] = field(default_factory=list)
