"""Error taxonomy for the deployment core.

Every error carries a user-facing message, optional details for the CLI's
details panel, and the process exit code the CLI should use.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kubeship.infra.k8s.controller import RolloutState

    from .models import ApplyOutcome, DeleteOutcome, ResourceDescriptor


EXIT_FAILED = 1
EXIT_TIMED_OUT = 2
EXIT_PREREQUISITE_MISSING = 3
EXIT_CANCELLED = 130


class DeploymentError(Exception):
    """Raised when a deployment operation fails."""

    exit_code: int = EXIT_FAILED

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class PrerequisiteMissing(DeploymentError):
    """A required tool or the cluster API is not available."""

    exit_code = EXIT_PREREQUISITE_MISSING

    def __init__(self, tool_name: str, details: str | None = None):
        self.tool_name = tool_name
        super().__init__(f"Prerequisite missing: {tool_name}", details)


class ValidationFailed(DeploymentError):
    """Malformed descriptor, dependency cycle or missing dependency."""


class ApplyFailed(DeploymentError):
    """The cluster rejected a mutation.

    Attributes:
        descriptor: Descriptor whose application failed, if any
        outcomes: Outcomes recorded up to and including the failure
    """

    def __init__(
        self,
        message: str,
        details: str | None = None,
        *,
        descriptor: ResourceDescriptor | None = None,
        outcomes: Sequence[ApplyOutcome] = (),
    ):
        self.descriptor = descriptor
        self.outcomes = list(outcomes)
        super().__init__(message, details)


class TimeoutExceeded(DeploymentError):
    """A workload did not reach its desired ready count in time."""

    exit_code = EXIT_TIMED_OUT

    def __init__(
        self,
        workload: str,
        timeout: float,
        last_state: RolloutState | None,
    ):
        self.workload = workload
        self.timeout = timeout
        self.last_state = last_state

        if last_state is None:
            details = f"{workload} was never observed in the cluster."
        else:
            details = (
                f"Last observed: {last_state.ready_replicas}/"
                f"{last_state.desired_replicas} replicas ready"
            )
            if last_state.updated_replicas is not None:
                details += f", {last_state.updated_replicas} updated"
            if not last_state.generation_observed:
                details += ", latest spec not yet observed"
            if last_state.last_transition is not None:
                details += f" (last transition {last_state.last_transition.isoformat()})"

        super().__init__(
            f"{workload} did not become ready within {timeout:g}s", details
        )


class RollbackFailed(DeploymentError):
    """One or more deletions failed during uninstall."""

    def __init__(self, outcomes: Sequence[DeleteOutcome]):
        self.outcomes = list(outcomes)
        failed = [o for o in self.outcomes if not o.succeeded]
        details = "\n".join(f"{o.label}: {o.error}" for o in failed)
        super().__init__(f"Failed to delete {len(failed)} resource(s)", details)
