"""Readiness polling for workload rollouts."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from loguru import logger

from kubeship.infra.constants import DEFAULT_CONSTANTS
from kubeship.infra.k8s import ClusterError

from .errors import TimeoutExceeded
from .models import RolloutOutcome, RolloutState, RolloutStatus

if TYPE_CHECKING:
    from kubeship.infra.k8s import KubernetesControllerSync

Clock = Callable[[], float]
Sleeper = Callable[[float, "threading.Event | None"], None]


def wait_or_sleep(seconds: float, cancel: threading.Event | None) -> None:
    """Sleep, waking early if the cancellation event is set."""
    if cancel is not None:
        cancel.wait(seconds)
    else:
        time.sleep(seconds)


class RolloutWaiter:
    """Polls workloads until their ready replicas match the desired count.

    The wait ends in one of three ways: the workload is ready, the
    cancellation event is set, or the timeout passes (TimeoutExceeded). A
    timeout is reported no earlier than T and no later than T plus one poll
    interval. Nothing is retried.
    """

    def __init__(
        self,
        controller: KubernetesControllerSync,
        poll_interval: float = DEFAULT_CONSTANTS.POLL_INTERVAL_SECONDS,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = wait_or_sleep,
    ) -> None:
        """Initialize the waiter.

        Args:
            controller: Cluster controller used to read rollout state
            poll_interval: Seconds between polls
            clock: Monotonic clock, replaceable in tests
            sleep: Cancellable sleep, replaceable in tests
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.controller = controller
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def await_ready(
        self,
        workload: str,
        namespace: str,
        timeout: float,
        cancel: threading.Event | None = None,
    ) -> RolloutOutcome:
        """Wait for one workload to become ready.

        Returns:
            RolloutOutcome with status READY or CANCELLED

        Raises:
            TimeoutExceeded: With the last observed state once the timeout passes
        """
        return self._wait(workload, namespace, self._clock(), timeout, cancel)

    def await_all(
        self,
        workloads: Sequence[str],
        namespace: str,
        timeout: float,
        cancel: threading.Event | None = None,
    ) -> RolloutOutcome:
        """Wait for several workloads, one after another, under one shared deadline."""
        start = self._clock()
        outcome = RolloutOutcome(RolloutStatus.READY)
        for workload in workloads:
            outcome = self._wait(workload, namespace, start, timeout, cancel)
            if outcome.status is RolloutStatus.CANCELLED:
                break
        return outcome

    def _wait(
        self,
        workload: str,
        namespace: str,
        start: float,
        timeout: float,
        cancel: threading.Event | None,
    ) -> RolloutOutcome:
        last_state: RolloutState | None = None
        polls = 0
        logger.info(f"Waiting up to {timeout:g}s for deployment/{workload}")

        while True:
            if cancel is not None and cancel.is_set():
                logger.warning(f"Wait for deployment/{workload} cancelled")
                return RolloutOutcome(RolloutStatus.CANCELLED, last_state, polls)

            try:
                state = self.controller.get_rollout_state(workload, namespace)
            except ClusterError as e:
                logger.warning(f"Could not read deployment/{workload}: {e}")
                state = None
            polls += 1

            if state is not None:
                last_state = state
                logger.debug(
                    f"deployment/{workload}: {state.ready_replicas}/"
                    f"{state.desired_replicas} ready"
                )
                if state.is_ready:
                    logger.info(f"deployment/{workload} is ready")
                    return RolloutOutcome(RolloutStatus.READY, state, polls)

            elapsed = self._clock() - start
            if elapsed >= timeout:
                raise TimeoutExceeded(f"deployment/{workload}", timeout, last_state)

            self._sleep(min(self.poll_interval, timeout - elapsed), cancel)
