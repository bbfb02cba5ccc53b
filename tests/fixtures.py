"""Shared fakes and fixtures for the deployment tests."""

from __future__ import annotations

import copy
import math
import threading
from typing import Any

import pytest

from kubeship.deployment.models import (
    KIND_DEPENDENCIES,
    DeploymentRequest,
    ResourceDescriptor,
    ResourceKind,
)
from kubeship.deployment.prerequisites import PrerequisiteChecker
from kubeship.infra.k8s.controller import (
    ClusterError,
    CommandResult,
    PodInfo,
    ResourceRef,
    RolloutState,
    ServiceInfo,
)

NAMESPACE = "demo"
RELEASE = "excalidraw"


class FakeClock:
    """Manually advanced monotonic clock with a matching sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self.cancel_at: float | None = None

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float, cancel: threading.Event | None) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if cancel is not None and self.cancel_at is not None and self.now >= self.cancel_at:
            cancel.set()


class FakeCluster:
    """In-memory stand-in for KubernetesControllerSync.

    Objects are keyed by (kind, name, namespace). Every call is recorded in
    `calls`, and every mutating call in `mutations`.
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self.objects: dict[tuple[str, str, str | None], dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.mutations: list[tuple[str, str]] = []
        self.apply_failures: dict[str, str] = {}
        self.delete_failures: dict[str, str] = {}
        self.read_failures: dict[str, str] = {}
        self.ready_at: dict[str, float] = {}
        self.reachable = True
        self.context = "kind-test"
        self.pods: list[PodInfo] = []
        self.services: list[ServiceInfo] = []

    @staticmethod
    def _key(manifest: dict[str, Any]) -> tuple[str, str, str | None]:
        metadata = manifest["metadata"]
        namespace = None if manifest["kind"] == "Namespace" else metadata.get("namespace")
        return (manifest["kind"], metadata["name"], namespace)

    def add(self, manifest: dict[str, Any]) -> None:
        """Seed an object without recording a call."""
        stored = copy.deepcopy(manifest)
        stored["metadata"].setdefault("uid", f"uid-{len(self.objects)}")
        self.objects[self._key(manifest)] = stored

    def get_current_context(self) -> str:
        self.calls.append(("get_current_context", ""))
        return self.context

    def cluster_reachable(self) -> bool:
        self.calls.append(("cluster_reachable", ""))
        return self.reachable

    def namespace_exists(self, namespace: str) -> bool:
        self.calls.append(("namespace_exists", namespace))
        return ("Namespace", namespace, None) in self.objects

    def delete_namespace(
        self, namespace: str, *, wait: bool = True, timeout: str = "120s"
    ) -> CommandResult:
        self.calls.append(("delete_namespace", namespace))
        self.mutations.append(("delete", f"namespace/{namespace}"))
        if f"namespace/{namespace}" in self.delete_failures:
            return CommandResult(
                success=False, stderr=self.delete_failures[f"namespace/{namespace}"], returncode=1
            )
        self.objects = {
            key: obj
            for key, obj in self.objects.items()
            if key[2] != namespace and key != ("Namespace", namespace, None)
        }
        return CommandResult(success=True)

    def get_resource(self, ref: ResourceRef) -> dict[str, Any] | None:
        self.calls.append(("get_resource", str(ref)))
        if str(ref) in self.read_failures:
            raise ClusterError(self.read_failures[str(ref)])
        obj = self.objects.get((ref.api_kind, ref.name, ref.namespace))
        return copy.deepcopy(obj) if obj is not None else None

    def apply_resource(self, manifest: dict[str, Any]) -> CommandResult:
        label = f"{manifest['kind'].lower()}/{manifest['metadata']['name']}"
        self.calls.append(("apply_resource", label))
        self.mutations.append(("apply", label))
        if label in self.apply_failures:
            return CommandResult(success=False, stderr=self.apply_failures[label], returncode=1)
        self.add(manifest)
        return CommandResult(success=True, stdout=f"{label} applied")

    def delete_resource(self, ref: ResourceRef, *, wait: bool = True) -> CommandResult:
        self.calls.append(("delete_resource", str(ref)))
        self.mutations.append(("delete", str(ref)))
        if str(ref) in self.delete_failures:
            return CommandResult(success=False, stderr=self.delete_failures[str(ref)], returncode=1)
        self.objects.pop((ref.api_kind, ref.name, ref.namespace), None)
        return CommandResult(success=True)

    def get_rollout_state(self, name: str, namespace: str) -> RolloutState | None:
        self.calls.append(("get_rollout_state", name))
        deployment = self.objects.get(("Deployment", name, namespace))
        if deployment is None:
            return None
        desired = deployment.get("spec", {}).get("replicas", 1)
        ready = desired if self.clock.now >= self.ready_at.get(name, math.inf) else 0
        return RolloutState(desired_replicas=desired, ready_replicas=ready)

    def get_pods(self, namespace: str) -> list[PodInfo]:
        self.calls.append(("get_pods", namespace))
        return list(self.pods)

    def get_services(self, namespace: str) -> list[ServiceInfo]:
        self.calls.append(("get_services", namespace))
        return list(self.services)

    def mutation_labels(self) -> list[str]:
        return [label for _, label in self.mutations]


# =============================================================================
# Descriptor builders
# =============================================================================


def make_manifest(
    kind: ResourceKind,
    name: str = RELEASE,
    namespace: str = NAMESPACE,
    *,
    replicas: int = 2,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": namespace if kind is ResourceKind.NAMESPACE else name}
    if kind.namespaced:
        metadata["namespace"] = namespace
    manifest: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": kind.api_kind,
        "metadata": metadata,
    }
    if kind is ResourceKind.WORKLOAD:
        manifest["apiVersion"] = "apps/v1"
        manifest["spec"] = {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {
                    "serviceAccountName": name,
                    "containers": [
                        {"name": "web", "image": "excalidraw/excalidraw:latest"}
                    ],
                },
            },
        }
    elif kind is ResourceKind.ENDPOINT:
        manifest["spec"] = {
            "selector": {"app": name},
            "ports": [{"port": 80, "targetPort": 80}],
        }
    return manifest


def make_descriptor(
    kind: ResourceKind,
    name: str = RELEASE,
    namespace: str = NAMESPACE,
    *,
    depends_on: frozenset[ResourceKind] | None = None,
    replicas: int = 2,
) -> ResourceDescriptor:
    manifest = make_manifest(kind, name, namespace, replicas=replicas)
    return ResourceDescriptor(
        kind=kind,
        name=manifest["metadata"]["name"],
        depends_on=KIND_DEPENDENCIES[kind] if depends_on is None else depends_on,
        payload=manifest,
    )


def make_request(
    descriptors: list[ResourceDescriptor] | None = None,
    *,
    timeout: float = 60.0,
    poll_interval: float = 2.0,
) -> DeploymentRequest:
    if descriptors is None:
        descriptors = [
            make_descriptor(ResourceKind.NAMESPACE),
            make_descriptor(ResourceKind.IDENTITY),
            make_descriptor(ResourceKind.WORKLOAD),
            make_descriptor(ResourceKind.ENDPOINT),
        ]
    return DeploymentRequest(
        release=RELEASE,
        namespace=NAMESPACE,
        descriptors=tuple(descriptors),
        timeout=timeout,
        poll_interval=poll_interval,
    )


def found_on_path(name: str) -> str:
    return f"/usr/local/bin/{name}"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cluster(clock: FakeClock) -> FakeCluster:
    return FakeCluster(clock)


@pytest.fixture
def request_four() -> DeploymentRequest:
    """Namespace, identity, workload (2 replicas) and endpoint."""
    return make_request()


@pytest.fixture
def checker(cluster: FakeCluster) -> PrerequisiteChecker:
    return PrerequisiteChecker(cluster, which=found_on_path)  # type: ignore[arg-type]
