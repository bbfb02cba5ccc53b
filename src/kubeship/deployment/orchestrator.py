"""Deployment orchestrator.

Drives one run through its phases:

    Idle -> CheckingPrerequisites -> ReconcilingNamespace -> Applying
         -> AwaitingReadiness -> Reporting -> Succeeded

Any phase can end the run as Failed, TimedOut or Cancelled. Those states are
terminal: the orchestrator never retries and never rolls back. The result it
returns always carries the apply outcomes gathered up to that point.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

from loguru import logger

from kubeship.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants
from kubeship.infra.k8s import ClusterError, ResourceRef

from .errors import (
    ApplyFailed,
    DeploymentError,
    PrerequisiteMissing,
    TimeoutExceeded,
    ValidationFailed,
)
from .models import (
    DeleteOutcome,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStatus,
    ObservedResource,
    ResourceKind,
    RolloutStatus,
    RunPhase,
    StatusSnapshot,
)
from .namespace import NamespaceReconciler
from .prerequisites import PrerequisiteChecker
from .rollout import Clock, RolloutWaiter, Sleeper, wait_or_sleep
from .sequencer import ResourceSequencer
from .uninstaller import Uninstaller

if TYPE_CHECKING:
    from kubeship.infra.k8s import KubernetesControllerSync

    from .shell_commands import HelmCommands


class DeploymentOrchestrator:
    """Runs install, upgrade, uninstall and status against one cluster."""

    def __init__(
        self,
        controller: KubernetesControllerSync,
        helm: HelmCommands | None = None,
        *,
        checker: PrerequisiteChecker | None = None,
        constants: DeploymentConstants | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = wait_or_sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            controller: Cluster controller shared by every component
            helm: Helm commands, when the descriptors come from a chart
            checker: Prerequisite checker; built from the controller and helm
                when omitted
            constants: Optional deployment constants
            clock: Monotonic clock used for elapsed time and rollout deadlines
            sleep: Cancellable sleep used between rollout polls
        """
        self.controller = controller
        self.constants = constants or DEFAULT_CONSTANTS
        self.checker = checker or PrerequisiteChecker(
            controller,
            helm,
            needs_chart_renderer=helm is not None,
            constants=self.constants,
        )
        self.namespaces = NamespaceReconciler(controller)
        self.sequencer = ResourceSequencer(controller)
        self.uninstaller = Uninstaller(controller, self.constants)
        self._clock = clock
        self._sleep = sleep

    # =========================================================================
    # Install / Upgrade
    # =========================================================================

    def install(
        self,
        request: DeploymentRequest,
        cancel: threading.Event | None = None,
    ) -> DeploymentResult:
        """Install a release, creating the namespace if needed."""
        return self._run(request, cancel, create_namespace=True)

    def upgrade(
        self,
        request: DeploymentRequest,
        cancel: threading.Event | None = None,
    ) -> DeploymentResult:
        """Upgrade a release in place. The namespace must already exist."""
        return self._run(request, cancel, create_namespace=False)

    def _run(
        self,
        request: DeploymentRequest,
        cancel: threading.Event | None,
        *,
        create_namespace: bool,
    ) -> DeploymentResult:
        start = self._clock()
        result = DeploymentResult(
            release=request.release,
            namespace=request.namespace,
            status=DeploymentStatus.FAILED,
        )

        def enter(phase: RunPhase) -> None:
            result.phase = phase
            logger.debug(f"{request.release}: {phase.value}")

        try:
            enter(RunPhase.CHECKING_PREREQUISITES)
            self.checker.check()

            enter(RunPhase.RECONCILING_NAMESPACE)
            if create_namespace:
                self.namespaces.ensure_namespace(request.namespace)
            else:
                self.namespaces.verify_namespace(request.namespace)

            enter(RunPhase.APPLYING)
            result.outcomes = self.sequencer.apply(
                request, satisfied=frozenset({ResourceKind.NAMESPACE})
            )

            enter(RunPhase.AWAITING_READINESS)
            waiter = RolloutWaiter(
                self.controller,
                request.poll_interval,
                clock=self._clock,
                sleep=self._sleep,
            )
            rollout = waiter.await_all(
                [w.name for w in request.workloads],
                request.namespace,
                request.timeout,
                cancel,
            )
            result.rollout = rollout.state

            if rollout.status is RolloutStatus.CANCELLED:
                result.status = DeploymentStatus.CANCELLED
            else:
                enter(RunPhase.REPORTING)
                result.status = DeploymentStatus.SUCCEEDED

        except ApplyFailed as e:
            result.outcomes = e.outcomes or result.outcomes
            result.status = DeploymentStatus.FAILED
            result.error = e
        except TimeoutExceeded as e:
            result.rollout = e.last_state
            result.status = DeploymentStatus.TIMED_OUT
            result.error = e
        except (ValidationFailed, PrerequisiteMissing) as e:
            result.status = DeploymentStatus.FAILED
            result.error = e

        result.elapsed = self._clock() - start

        if result.succeeded:
            logger.info(f"{request.release} {result.status.value} in {result.elapsed:.1f}s")
        else:
            logger.warning(
                f"{request.release} ended {result.status.value} during "
                f"{result.phase.value}: {result.error or 'cancelled'}"
            )
        return result

    # =========================================================================
    # Uninstall
    # =========================================================================

    def uninstall(
        self,
        request: DeploymentRequest,
        remove_namespace: bool = False,
    ) -> list[DeleteOutcome]:
        """Remove a release.

        Raises:
            PrerequisiteMissing: If the cluster is not reachable
            RollbackFailed: If any deletion failed
        """
        self.checker.check()
        return self.uninstaller.uninstall(request, remove_namespace=remove_namespace)

    # =========================================================================
    # Status
    # =========================================================================

    def status(self, request: DeploymentRequest) -> StatusSnapshot:
        """Collect the observed state of every descriptor, without mutating anything."""
        self.checker.check()

        snapshot = StatusSnapshot(
            release=request.release,
            namespace=request.namespace,
            context=self.controller.get_current_context(),
            namespace_exists=self._namespace_present(request.namespace),
        )
        if not snapshot.namespace_exists:
            snapshot.resources = [
                ObservedResource(d, present=False) for d in request.descriptors
            ]
            snapshot.rollouts = {w.name: None for w in request.workloads}
            return snapshot

        for descriptor in request.descriptors:
            try:
                observed = self.controller.get_resource(descriptor.ref(request.namespace))
            except ClusterError as e:
                snapshot.resources.append(
                    ObservedResource(descriptor, present=False, error=str(e))
                )
                continue
            snapshot.resources.append(
                ObservedResource(descriptor, present=observed is not None, observed=observed)
            )

        for workload in request.workloads:
            try:
                snapshot.rollouts[workload.name] = self.controller.get_rollout_state(
                    workload.name, request.namespace
                )
            except ClusterError as e:
                raise DeploymentError(
                    f"Could not read rollout state of deployment/{workload.name}",
                    str(e),
                ) from e

        snapshot.pods = self.controller.get_pods(request.namespace)
        snapshot.services = self.controller.get_services(request.namespace)
        return snapshot

    def _namespace_present(self, name: str) -> bool:
        try:
            return self.controller.get_resource(ResourceRef("Namespace", name)) is not None
        except ClusterError as e:
            raise DeploymentError(f"Could not read namespace '{name}'", str(e)) from e
