"""Deployment core: descriptors, sequencing, rollout waiting and teardown."""

from .descriptors import DescriptorStore, build_request
from .errors import (
    ApplyFailed,
    DeploymentError,
    PrerequisiteMissing,
    RollbackFailed,
    TimeoutExceeded,
    ValidationFailed,
)
from .models import (
    ApplyAction,
    ApplyOutcome,
    DeleteAction,
    DeleteOutcome,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStatus,
    ResourceDescriptor,
    ResourceKind,
    StatusSnapshot,
)
from .orchestrator import DeploymentOrchestrator
from .reporter import DeploymentSummary, StatusReporter

__all__ = [
    "ApplyAction",
    "ApplyFailed",
    "ApplyOutcome",
    "DeleteAction",
    "DeleteOutcome",
    "DeploymentError",
    "DeploymentOrchestrator",
    "DeploymentRequest",
    "DeploymentResult",
    "DeploymentStatus",
    "DeploymentSummary",
    "DescriptorStore",
    "PrerequisiteMissing",
    "ResourceDescriptor",
    "ResourceKind",
    "RollbackFailed",
    "StatusReporter",
    "StatusSnapshot",
    "TimeoutExceeded",
    "ValidationFailed",
    "build_request",
]
