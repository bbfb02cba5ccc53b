"""Kr8s-based implementation of KubernetesController.

Uses the kr8s library for native async Kubernetes operations.
"""

from __future__ import annotations

import asyncio
import subprocess
from typing import Any

import kr8s
import yaml
from kr8s.asyncio.objects import (
    Deployment,
    HorizontalPodAutoscaler,
    Ingress,
    Namespace,
    Pod,
    PodDisruptionBudget,
    Service,
    ServiceAccount,
)

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
from .utils import parse_duration

_OBJECT_CLASSES: dict[str, Any] = {
    "Namespace": Namespace,
    "ServiceAccount": ServiceAccount,
    "Deployment": Deployment,
    "Service": Service,
    "Ingress": Ingress,
    "HorizontalPodAutoscaler": HorizontalPodAutoscaler,
    "PodDisruptionBudget": PodDisruptionBudget,
}


class Kr8sController(KubernetesController):
    """Kubernetes controller using kr8s library.

    All methods are natively async, leveraging kr8s's async API.

    Note: The kr8s API client is NOT cached because it's tied to the event loop
    that was running when created. When using run_sync() which calls asyncio.run(),
    each call creates a new event loop, making the cached API unusable.
    """

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        """Create the kr8s API client for the current event loop."""
        return await kr8s.asyncio.api()

    async def _get_object(self, ref: ResourceRef) -> Any:
        cls = _OBJECT_CLASSES.get(ref.api_kind)
        if cls is None:
            raise ClusterError(f"Unsupported kind for kr8s backend: {ref.api_kind}")
        api = await self._get_api()
        if ref.namespace:
            return await cls.get(ref.name, namespace=ref.namespace, api=api)
        return await cls.get(ref.name, api=api)

    # =========================================================================
    # Cluster Context
    # =========================================================================

    async def get_current_context(self) -> str:
        """Get the current kubectl context name."""
        try:
            api = await self._get_api()
            return api.auth.active_context or "unknown"
        except Exception:
            return "unknown"

    async def cluster_reachable(self) -> bool:
        """Check whether the API server answers a version request."""
        try:
            api = await self._get_api()
            await api.version()
            return True
        except Exception:
            return False

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        try:
            api = await self._get_api()
            ns = await Namespace.get(namespace, api=api)
            return ns is not None
        except kr8s.NotFoundError:
            return False
        except Exception:
            return False

    async def delete_namespace(
        self,
        namespace: str,
        *,
        wait: bool = True,
        timeout: str = "120s",
    ) -> CommandResult:
        """Delete a Kubernetes namespace and all its resources."""
        try:
            api = await self._get_api()
            ns = await Namespace.get(namespace, api=api)
            await ns.delete()

            if wait:
                try:
                    await asyncio.wait_for(
                        self._wait_for_namespace_deletion(namespace),
                        timeout=parse_duration(timeout),
                    )
                except TimeoutError:
                    return CommandResult(
                        success=False,
                        stderr=f"Timeout waiting for namespace {namespace} deletion",
                        returncode=1,
                    )

            return CommandResult(
                success=True, stdout=f'namespace "{namespace}" deleted'
            )
        except kr8s.NotFoundError:
            return CommandResult(
                success=True, stdout=f'namespace "{namespace}" not found'
            )
        except Exception as e:
            return CommandResult(success=False, stderr=str(e), returncode=1)

    async def _wait_for_namespace_deletion(self, namespace: str) -> None:
        """Wait until a namespace no longer exists."""
        while await self.namespace_exists(namespace):
            await asyncio.sleep(1)

    # =========================================================================
    # Resource Operations
    # =========================================================================

    async def get_resource(self, ref: ResourceRef) -> dict[str, Any] | None:
        """Fetch a single object through the kr8s object classes."""
        try:
            obj = await self._get_object(ref)
        except kr8s.NotFoundError:
            return None
        except ClusterError:
            raise
        except Exception as e:
            raise ClusterError(f"Failed to read {ref}: {e}") from e
        raw: dict[str, Any] = obj.raw
        return raw

    async def apply_resource(self, manifest: dict[str, Any]) -> CommandResult:
        """Apply a manifest.

        Note: kr8s doesn't have a direct 'apply' equivalent, so we use
        kubectl subprocess for this operation.
        """

        def _run() -> CommandResult:
            result = subprocess.run(
                ["kubectl", "apply", "-f", "-"],
                capture_output=True,
                text=True,
                input=yaml.safe_dump(manifest, sort_keys=False),
            )
            return CommandResult(
                success=result.returncode == 0,
                stdout=result.stdout or "",
                stderr=result.stderr or "",
                returncode=result.returncode,
            )

        return await asyncio.to_thread(_run)

    async def delete_resource(
        self,
        ref: ResourceRef,
        *,
        wait: bool = True,
    ) -> CommandResult:
        """Delete a specific object by name."""
        try:
            obj = await self._get_object(ref)
            await obj.delete()
            if wait:
                await obj.wait("delete")
            return CommandResult(success=True, stdout=f'{ref} deleted')
        except kr8s.NotFoundError:
            return CommandResult(success=True, stdout=f'{ref} not found')
        except Exception as e:
            return CommandResult(success=False, stderr=str(e), returncode=1)

    # =========================================================================
    # Workload Operations
    # =========================================================================

    async def get_rollout_state(
        self,
        name: str,
        namespace: str,
    ) -> RolloutState | None:
        """Read the replica counts of a Deployment."""
        try:
            api = await self._get_api()
            deployment = await Deployment.get(name, namespace=namespace, api=api)
        except kr8s.NotFoundError:
            return None
        except Exception as e:
            raise ClusterError(f"Failed to read deployment/{name}: {e}") from e
        return parse_rollout_state(deployment.raw)

    async def get_pods(self, namespace: str) -> list[PodInfo]:
        """Get all pods in a namespace with their status."""
        try:
            api = await self._get_api()
            return [
                parse_pod(pod.raw)
                async for pod in Pod.list(namespace=namespace, api=api)
            ]
        except Exception:
            return []

    async def get_services(self, namespace: str) -> list[ServiceInfo]:
        """Get all services in a namespace."""
        try:
            api = await self._get_api()
            return [
                parse_service(svc.raw)
                async for svc in Service.list(namespace=namespace, api=api)
            ]
        except Exception:
            return []
