from __future__ import annotations

from cachetools.func import lru_cache  # type: ignore

from kubeship.infra.k8s.controller import KubernetesController, KubernetesControllerSync


@lru_cache(maxsize=2)
def get_k8s_controller(backend: str = "kubectl") -> KubernetesController:
    """Get an instance of the KubernetesController for a backend.

    Args:
        backend: "kubectl" (subprocess) or "kr8s" (native async client)

    Returns:
        An instance of KubernetesController
    """
    if backend == "kr8s":
        from kubeship.infra.k8s.kr8s_controller import Kr8sController

        return Kr8sController()

    if backend != "kubectl":
        raise ValueError(f"Unknown Kubernetes backend: {backend!r}")

    from kubeship.infra.k8s.kubectl_controller import KubectlController

    return KubectlController()


def get_k8s_controller_sync(backend: str = "kubectl") -> KubernetesControllerSync:
    """Get a synchronous wrapper for KubernetesController.

    Returns:
        An instance of KubernetesControllerSync wrapping the async controller
    """
    return KubernetesControllerSync(get_k8s_controller(backend))
