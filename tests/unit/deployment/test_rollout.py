"""Tests for the rollout readiness poll loop."""

import threading
from unittest.mock import MagicMock

import pytest

from kubeship.deployment.errors import EXIT_TIMED_OUT, TimeoutExceeded
from kubeship.deployment.models import ResourceKind, RolloutState, RolloutStatus
from kubeship.deployment.rollout import RolloutWaiter
from kubeship.infra.k8s import ClusterError
from kubeship.infra.k8s.controller import parse_rollout_state
from tests.fixtures import NAMESPACE, FakeClock, FakeCluster, make_manifest


@pytest.fixture
def waiter(cluster: FakeCluster, clock: FakeClock) -> RolloutWaiter:
    cluster.add(make_manifest(ResourceKind.WORKLOAD, replicas=2))
    return RolloutWaiter(cluster, 2.0, clock=clock, sleep=clock.sleep)  # type: ignore[arg-type]


class TestAwaitReady:
    """Tests for RolloutWaiter.await_ready."""

    def test_returns_ready_once_replicas_match(
        self, waiter: RolloutWaiter, cluster: FakeCluster, clock: FakeClock
    ) -> None:
        cluster.ready_at["excalidraw"] = 10.0

        outcome = waiter.await_ready("excalidraw", NAMESPACE, timeout=60)

        assert outcome.status is RolloutStatus.READY
        assert outcome.state == RolloutState(desired_replicas=2, ready_replicas=2)
        assert clock.now == 10.0
        assert outcome.polls == 6

    def test_ready_on_first_poll_does_not_sleep(
        self, waiter: RolloutWaiter, cluster: FakeCluster, clock: FakeClock
    ) -> None:
        cluster.ready_at["excalidraw"] = 0.0

        outcome = waiter.await_ready("excalidraw", NAMESPACE, timeout=60)

        assert outcome.status is RolloutStatus.READY
        assert clock.sleeps == []

    def test_times_out_with_last_observed_state(
        self, waiter: RolloutWaiter, clock: FakeClock
    ) -> None:
        with pytest.raises(TimeoutExceeded) as excinfo:
            waiter.await_ready("excalidraw", NAMESPACE, timeout=60)

        assert clock.now == 60.0
        assert excinfo.value.last_state == RolloutState(2, 0)
        assert excinfo.value.exit_code == EXIT_TIMED_OUT
        assert "0/2" in excinfo.value.details

    @pytest.mark.parametrize("timeout", [5.0, 7.5, 1.0, 0.5])
    def test_timeout_fires_within_one_poll_interval(
        self, waiter: RolloutWaiter, clock: FakeClock, timeout: float
    ) -> None:
        with pytest.raises(TimeoutExceeded):
            waiter.await_ready("excalidraw", NAMESPACE, timeout=timeout)

        assert timeout <= clock.now <= timeout + waiter.poll_interval
        assert all(s <= waiter.poll_interval for s in clock.sleeps)

    def test_missing_workload_times_out_without_state(
        self, cluster: FakeCluster, clock: FakeClock
    ) -> None:
        waiter = RolloutWaiter(cluster, 2.0, clock=clock, sleep=clock.sleep)  # type: ignore[arg-type]

        with pytest.raises(TimeoutExceeded) as excinfo:
            waiter.await_ready("missing", NAMESPACE, timeout=4)

        assert excinfo.value.last_state is None
        assert "never observed" in excinfo.value.details

    def test_cancellation_returns_promptly(
        self, waiter: RolloutWaiter, clock: FakeClock
    ) -> None:
        cancel = threading.Event()
        clock.cancel_at = 4.0

        outcome = waiter.await_ready("excalidraw", NAMESPACE, timeout=60, cancel=cancel)

        assert outcome.status is RolloutStatus.CANCELLED
        assert clock.now == 4.0
        assert outcome.state == RolloutState(2, 0)

    def test_already_cancelled_does_not_poll(
        self, waiter: RolloutWaiter, cluster: FakeCluster
    ) -> None:
        cancel = threading.Event()
        cancel.set()

        outcome = waiter.await_ready("excalidraw", NAMESPACE, timeout=60, cancel=cancel)

        assert outcome.status is RolloutStatus.CANCELLED
        assert outcome.polls == 0
        assert ("get_rollout_state", "excalidraw") not in cluster.calls

    def test_cluster_error_during_poll_keeps_waiting(self, clock: FakeClock) -> None:
        controller = MagicMock()
        controller.get_rollout_state.side_effect = [
            ClusterError("etcd leader changed"),
            RolloutState(2, 2),
        ]
        waiter = RolloutWaiter(controller, 2.0, clock=clock, sleep=clock.sleep)

        outcome = waiter.await_ready("excalidraw", NAMESPACE, timeout=60)

        assert outcome.status is RolloutStatus.READY
        assert controller.get_rollout_state.call_count == 2

    def test_stale_generation_is_not_ready(self, clock: FakeClock) -> None:
        old_pods_ready = {
            "metadata": {"generation": 2},
            "spec": {"replicas": 2},
            "status": {"observedGeneration": 1, "updatedReplicas": 0, "readyReplicas": 2},
        }
        half_rolled = {
            "metadata": {"generation": 2},
            "spec": {"replicas": 2},
            "status": {"observedGeneration": 2, "updatedReplicas": 1, "readyReplicas": 2},
        }
        rolled_out = {
            "metadata": {"generation": 2},
            "spec": {"replicas": 2},
            "status": {"observedGeneration": 2, "updatedReplicas": 2, "readyReplicas": 2},
        }
        controller = MagicMock()
        controller.get_rollout_state.side_effect = [
            parse_rollout_state(old_pods_ready),
            parse_rollout_state(half_rolled),
            parse_rollout_state(rolled_out),
        ]
        waiter = RolloutWaiter(controller, 2.0, clock=clock, sleep=clock.sleep)

        outcome = waiter.await_ready("excalidraw", NAMESPACE, timeout=60)

        assert outcome.status is RolloutStatus.READY
        assert outcome.polls == 3
        assert clock.now == 4.0

    def test_rejects_non_positive_poll_interval(self, cluster: FakeCluster) -> None:
        with pytest.raises(ValueError):
            RolloutWaiter(cluster, 0)  # type: ignore[arg-type]


class TestAwaitAll:
    """Tests for waiting on several workloads under one deadline."""

    def test_deadline_is_shared_between_workloads(
        self, cluster: FakeCluster, clock: FakeClock
    ) -> None:
        cluster.add(make_manifest(ResourceKind.WORKLOAD, "web"))
        cluster.add(make_manifest(ResourceKind.WORKLOAD, "worker"))
        cluster.ready_at["web"] = 10.0
        waiter = RolloutWaiter(cluster, 2.0, clock=clock, sleep=clock.sleep)  # type: ignore[arg-type]

        with pytest.raises(TimeoutExceeded) as excinfo:
            waiter.await_all(["web", "worker"], NAMESPACE, timeout=30)

        assert clock.now == 30.0
        assert excinfo.value.workload == "deployment/worker"

    def test_no_workloads_is_immediately_ready(
        self, cluster: FakeCluster, clock: FakeClock
    ) -> None:
        waiter = RolloutWaiter(cluster, 2.0, clock=clock, sleep=clock.sleep)  # type: ignore[arg-type]

        outcome = waiter.await_all([], NAMESPACE, timeout=30)

        assert outcome.status is RolloutStatus.READY
        assert outcome.state is None
