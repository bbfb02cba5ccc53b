"""Kubectl-based implementation of KubernetesController.

Uses subprocess calls to kubectl for all operations.
"""

from __future__ import annotations

import asyncio
import json
import subprocess
from typing import Any

import yaml

from .controller import (
    ClusterError,
    CommandResult,
    KubernetesController,
    PodInfo,
    ResourceRef,
    RolloutState,
    ServiceInfo,
    parse_pod,
    parse_rollout_state,
    parse_service,
)


def _is_not_found(stderr: str) -> bool:
    return "NotFound" in stderr or "not found" in stderr.lower()


class KubectlController(KubernetesController):
    """Kubernetes controller using kubectl subprocess calls.

    All methods are async but internally use asyncio.to_thread()
    to run blocking subprocess calls without blocking the event loop.
    """

    def __init__(self, kubectl: str = "kubectl") -> None:
        self._kubectl = kubectl

    async def _run_kubectl(
        self,
        args: list[str],
        *,
        capture_output: bool = True,
        input_data: str | None = None,
    ) -> CommandResult:
        """Run a kubectl command asynchronously.

        Args:
            args: Command arguments (without 'kubectl' prefix)
            capture_output: Whether to capture stdout/stderr
            input_data: Optional input to send to stdin

        Returns:
            CommandResult with execution results
        """
        cmd = [self._kubectl, *args]

        def _run() -> CommandResult:
            result = subprocess.run(
                cmd,
                capture_output=capture_output,
                text=True,
                input=input_data,
            )
            return CommandResult(
                success=result.returncode == 0,
                stdout=result.stdout or "",
                stderr=result.stderr or "",
                returncode=result.returncode,
            )

        return await asyncio.to_thread(_run)

    @staticmethod
    def _scope(ref: ResourceRef) -> list[str]:
        return ["-n", ref.namespace] if ref.namespace else []

    # =========================================================================
    # Cluster Context
    # =========================================================================

    async def get_current_context(self) -> str:
        """Get the current kubectl context name."""
        result = await self._run_kubectl(["config", "current-context"])
        return result.stdout.strip() if result.success else "unknown"

    async def cluster_reachable(self) -> bool:
        """Check whether the API server answers a /version request."""
        result = await self._run_kubectl(
            ["get", "--raw", "/version", "--request-timeout=5s"]
        )
        return result.success

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        result = await self._run_kubectl(["get", "namespace", namespace])
        return result.success

    async def delete_namespace(
        self,
        namespace: str,
        *,
        wait: bool = True,
        timeout: str = "120s",
    ) -> CommandResult:
        """Delete a Kubernetes namespace and all its resources."""
        args = ["delete", "namespace", namespace, "--ignore-not-found"]
        if wait:
            args.append("--wait=true")
            args.extend(["--timeout", timeout])
        return await self._run_kubectl(args)

    # =========================================================================
    # Resource Operations
    # =========================================================================

    async def get_resource(self, ref: ResourceRef) -> dict[str, Any] | None:
        """Fetch a single object as JSON."""
        result = await self._run_kubectl(
            ["get", ref.api_kind.lower(), ref.name, *self._scope(ref), "-o", "json"]
        )
        if not result.success:
            if _is_not_found(result.stderr):
                return None
            raise ClusterError(
                f"Failed to read {ref}: {result.stderr.strip() or 'unknown error'}"
            )

        try:
            data: dict[str, Any] = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ClusterError(f"Unparseable response for {ref}: {e}") from e
        return data

    async def apply_resource(self, manifest: dict[str, Any]) -> CommandResult:
        """Apply a manifest by piping it to `kubectl apply -f -`."""
        return await self._run_kubectl(
            ["apply", "-f", "-"],
            input_data=yaml.safe_dump(manifest, sort_keys=False),
        )

    async def delete_resource(
        self,
        ref: ResourceRef,
        *,
        wait: bool = True,
    ) -> CommandResult:
        """Delete a specific Kubernetes object by name."""
        args = [
            "delete",
            ref.api_kind.lower(),
            ref.name,
            *self._scope(ref),
            "--ignore-not-found",
        ]
        if wait:
            args.append("--wait=true")
        else:
            args.append("--wait=false")
        return await self._run_kubectl(args)

    # =========================================================================
    # Workload Operations
    # =========================================================================

    async def get_rollout_state(
        self,
        name: str,
        namespace: str,
    ) -> RolloutState | None:
        """Read the replica counts of a Deployment."""
        deployment = await self.get_resource(ResourceRef("Deployment", name, namespace))
        if deployment is None:
            return None
        return parse_rollout_state(deployment)

    async def get_pods(self, namespace: str) -> list[PodInfo]:
        """Get all pods in a namespace with their status."""
        result = await self._run_kubectl(["get", "pods", "-n", namespace, "-o", "json"])
        if not result.success or not result.stdout:
            return []

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            return []
        return [parse_pod(pod) for pod in data.get("items", [])]

    async def get_services(self, namespace: str) -> list[ServiceInfo]:
        """Get all services in a namespace."""
        result = await self._run_kubectl(
            ["get", "services", "-n", namespace, "-o", "json"]
        )
        if not result.success or not result.stdout:
            return []

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            return []
        return [parse_service(svc) for svc in data.get("items", [])]
