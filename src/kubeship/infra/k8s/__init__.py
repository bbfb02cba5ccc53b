"""Kubernetes infrastructure abstraction layer.

This module provides a clean abstraction over Kubernetes operations,
supporting multiple backends (kubectl subprocess, kr8s library).

Example:
    from kubeship.infra.k8s import get_k8s_controller_sync

    controller = get_k8s_controller_sync("kubectl")
    exists = controller.namespace_exists("my-namespace")
    pods = controller.get_pods("my-namespace")
"""

from .controller import (
    ClusterError,
    CommandResult,
    KubernetesController,
    KubernetesControllerSync,
    PodInfo,
    ResourceRef,
    RolloutState,
    ServiceInfo,
)
from .helpers import get_k8s_controller, get_k8s_controller_sync
from .kubectl_controller import KubectlController
from .utils import run_sync

__all__ = [
    # Controller classes
    "KubernetesController",
    "KubernetesControllerSync",
    "KubectlController",
    # Data classes
    "CommandResult",
    "ResourceRef",
    "RolloutState",
    "PodInfo",
    "ServiceInfo",
    # Errors
    "ClusterError",
    # Utilities
    "get_k8s_controller",
    "get_k8s_controller_sync",
    "run_sync",
]
