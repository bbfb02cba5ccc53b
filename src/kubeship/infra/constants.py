"""Deployment constants and configuration.

This module centralizes all magic strings, default names, and timing values
used throughout the deployment process.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DeploymentConstants:
    """Constants for Kubernetes deployment.

    This class provides a centralized location for all deployment-related
    constants, making them easy to find, update, and test.

    All attributes are class-level and immutable.
    """

    # Kubernetes/Helm identifiers
    DEFAULT_NAMESPACE: str = "excalidraw"
    DEFAULT_RELEASE_NAME: str = "excalidraw"
    DEFAULT_CHART_PATH: str = "k8s/helm/excalidraw"
    DEFAULT_CONFIG_FILE: str = "kubeship.yaml"

    # Annotations
    DEPENDS_ON_ANNOTATION: str = "kubeship.io/depends-on"

    # Timeouts (seconds unless noted)
    ROLLOUT_TIMEOUT_SECONDS: float = 300.0
    POLL_INTERVAL_SECONDS: float = 2.0
    NAMESPACE_DELETE_TIMEOUT: str = "120s"

    # Required external tools
    CLUSTER_CLI: str = "kubectl"
    CHART_RENDERER: str = "helm"
    CLUSTER_API_PREREQUISITE: str = "kubernetes-api"

    # Access hint shown after a successful install
    LOCAL_PORT: int = 8080
    SERVICE_PORT: int = 80

    # Manifest file suffixes picked up from a manifest directory
    MANIFEST_SUFFIXES: tuple[str, ...] = (".yaml", ".yml")


DEFAULT_CONSTANTS = DeploymentConstants()
