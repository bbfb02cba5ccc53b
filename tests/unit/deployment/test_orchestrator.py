"""End-to-end tests for the deployment state machine against an in-memory cluster."""

import threading
from unittest.mock import MagicMock

import pytest

from kubeship.deployment.errors import (
    ApplyFailed,
    DeploymentError,
    PrerequisiteMissing,
    RollbackFailed,
    TimeoutExceeded,
    ValidationFailed,
)
from kubeship.deployment.models import (
    ApplyAction,
    DeleteAction,
    DeploymentRequest,
    DeploymentStatus,
    RolloutState,
    RunPhase,
)
from kubeship.deployment.orchestrator import DeploymentOrchestrator
from kubeship.deployment.prerequisites import PrerequisiteChecker
from kubeship.infra.k8s import PodInfo
from tests.fixtures import NAMESPACE, RELEASE, FakeClock, FakeCluster


@pytest.fixture
def orchestrator(
    cluster: FakeCluster, clock: FakeClock, checker: PrerequisiteChecker
) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(
        cluster,  # type: ignore[arg-type]
        checker=checker,
        clock=clock,
        sleep=clock.sleep,
    )


class TestInstall:
    """Tests for DeploymentOrchestrator.install."""

    def test_succeeds_once_workload_is_ready(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.ready_at[RELEASE] = 10.0

        result = orchestrator.install(request_four)

        assert result.status is DeploymentStatus.SUCCEEDED
        assert result.elapsed == pytest.approx(10.0)
        assert len(result.successful_outcomes) == 4
        assert result.rollout == RolloutState(2, 2)
        assert result.phase is RunPhase.REPORTING
        assert result.error is None

    def test_times_out_with_every_resource_applied(
        self,
        orchestrator: DeploymentOrchestrator,
        request_four: DeploymentRequest,
    ) -> None:
        result = orchestrator.install(request_four)

        assert result.status is DeploymentStatus.TIMED_OUT
        assert result.elapsed == pytest.approx(60.0)
        assert len(result.successful_outcomes) == 4
        assert isinstance(result.error, TimeoutExceeded)
        assert result.rollout == RolloutState(2, 0)
        assert result.phase is RunPhase.AWAITING_READINESS

    def test_namespace_is_created_then_reported_unchanged(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.ready_at[RELEASE] = 0.0

        result = orchestrator.install(request_four)

        assert cluster.mutation_labels()[0] == f"namespace/{NAMESPACE}"
        assert result.outcomes[0].action is ApplyAction.UNCHANGED

    def test_second_install_makes_no_changes(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.ready_at[RELEASE] = 0.0
        orchestrator.install(request_four)
        mutations = len(cluster.mutations)

        result = orchestrator.install(request_four)

        assert result.succeeded
        assert len(cluster.mutations) == mutations
        assert [o.action for o in result.outcomes] == [ApplyAction.UNCHANGED] * 4

    def test_apply_failure_keeps_outcomes_so_far(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.apply_failures["deployment/excalidraw"] = "image pull secret missing"

        result = orchestrator.install(request_four)

        assert result.status is DeploymentStatus.FAILED
        assert isinstance(result.error, ApplyFailed)
        assert result.phase is RunPhase.APPLYING
        assert len(result.outcomes) == 3
        assert len(result.successful_outcomes) == 2
        assert ("get_rollout_state", RELEASE) not in cluster.calls

    def test_missing_prerequisite_stops_before_any_mutation(
        self,
        cluster: FakeCluster,
        clock: FakeClock,
        request_four: DeploymentRequest,
    ) -> None:
        checker = PrerequisiteChecker(cluster, which=lambda name: None)  # type: ignore[arg-type]
        orchestrator = DeploymentOrchestrator(
            cluster, checker=checker, clock=clock, sleep=clock.sleep  # type: ignore[arg-type]
        )

        result = orchestrator.install(request_four)

        assert result.status is DeploymentStatus.FAILED
        assert isinstance(result.error, PrerequisiteMissing)
        assert result.error.exit_code == 3
        assert result.phase is RunPhase.CHECKING_PREREQUISITES
        assert result.outcomes == []
        assert cluster.mutations == []

    def test_cancel_during_wait(
        self,
        orchestrator: DeploymentOrchestrator,
        clock: FakeClock,
        request_four: DeploymentRequest,
    ) -> None:
        clock.cancel_at = 6.0

        result = orchestrator.install(request_four, cancel=threading.Event())

        assert result.status is DeploymentStatus.CANCELLED
        assert result.elapsed == pytest.approx(6.0)
        assert len(result.successful_outcomes) == 4


class TestUpgrade:
    """Tests for DeploymentOrchestrator.upgrade."""

    def test_requires_existing_namespace(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        result = orchestrator.upgrade(request_four)

        assert result.status is DeploymentStatus.FAILED
        assert isinstance(result.error, ValidationFailed)
        assert result.phase is RunPhase.RECONCILING_NAMESPACE
        assert cluster.mutations == []

    def test_applies_only_changes(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.ready_at[RELEASE] = 0.0
        orchestrator.install(request_four)
        request_four.workloads[0].payload["spec"]["replicas"] = 3
        before = len(cluster.mutations)

        result = orchestrator.upgrade(request_four)

        assert result.succeeded
        assert cluster.mutation_labels()[before:] == ["deployment/excalidraw"]
        assert result.rollout == RolloutState(3, 3)


class TestUninstallAndStatus:
    """Tests for DeploymentOrchestrator.uninstall and status."""

    def test_uninstall_after_install(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.ready_at[RELEASE] = 0.0
        orchestrator.install(request_four)

        outcomes = orchestrator.uninstall(request_four, remove_namespace=True)

        assert [o.action for o in outcomes] == [DeleteAction.DELETED] * 4
        assert cluster.objects == {}

    def test_uninstall_raises_on_failed_deletion(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.ready_at[RELEASE] = 0.0
        orchestrator.install(request_four)
        cluster.delete_failures["service/excalidraw"] = "forbidden"

        with pytest.raises(RollbackFailed):
            orchestrator.uninstall(request_four)

    def test_status_reports_observed_state(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.ready_at[RELEASE] = 0.0
        cluster.pods = [PodInfo(name="excalidraw-abc", status="Running")]
        orchestrator.install(request_four)
        mutations = len(cluster.mutations)

        snapshot = orchestrator.status(request_four)

        assert snapshot.namespace_exists
        assert snapshot.context == "kind-test"
        assert all(r.present for r in snapshot.resources)
        assert snapshot.rollouts[RELEASE] == RolloutState(2, 2)
        assert snapshot.pods[0].name == "excalidraw-abc"
        assert len(cluster.mutations) == mutations

    def test_status_without_namespace(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        snapshot = orchestrator.status(request_four)

        assert not snapshot.namespace_exists
        assert not any(r.present for r in snapshot.resources)
        assert snapshot.rollouts == {RELEASE: None}
        assert ("get_pods", NAMESPACE) not in cluster.calls

    def test_status_checks_prerequisites(
        self, cluster: FakeCluster, request_four: DeploymentRequest
    ) -> None:
        checker = MagicMock()
        checker.check.side_effect = PrerequisiteMissing("kubectl")
        orchestrator = DeploymentOrchestrator(cluster, checker=checker)  # type: ignore[arg-type]

        with pytest.raises(PrerequisiteMissing):
            orchestrator.status(request_four)

    def test_status_fails_when_namespace_cannot_be_read(
        self,
        orchestrator: DeploymentOrchestrator,
        cluster: FakeCluster,
        request_four: DeploymentRequest,
    ) -> None:
        cluster.read_failures[f"namespace/{NAMESPACE}"] = "forbidden"

        with pytest.raises(DeploymentError, match="Could not read namespace"):
            orchestrator.status(request_four)
