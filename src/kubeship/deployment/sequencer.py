"""Dependency-ordered, idempotent application of resource descriptors."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from loguru import logger

from kubeship.infra.k8s import ClusterError

from .descriptors import order_descriptors, validate_dependencies
from .errors import ApplyFailed
from .models import ApplyAction, ApplyOutcome, DeploymentRequest, ResourceKind

if TYPE_CHECKING:
    from kubeship.infra.k8s import KubernetesControllerSync

    from .models import ResourceDescriptor


def is_subset(desired: Any, observed: Any) -> bool:
    """Check whether every field in `desired` is present and equal in `observed`.

    Mappings are compared key by key, lists element by element (same length),
    and scalars by value. Scalars that only differ in type compare by their
    string form, since the API server normalizes some fields (ports, quantities).
    """
    if isinstance(desired, dict):
        if not isinstance(observed, dict):
            return False
        return all(
            (value is None and observed.get(key) is None)
            or (key in observed and is_subset(value, observed[key]))
            for key, value in desired.items()
        )

    if isinstance(desired, list):
        if not isinstance(observed, list) or len(desired) != len(observed):
            return False
        return all(is_subset(d, o) for d, o in zip(desired, observed, strict=True))

    if desired == observed:
        return True
    return (
        desired is not None
        and observed is not None
        and not isinstance(observed, (dict, list))
        and str(desired) == str(observed)
    )


class ResourceSequencer:
    """Applies descriptors in dependency order, failing fast.

    Each descriptor is read back from the cluster first. Only descriptors that
    are missing or differ from their observed state trigger a mutating call,
    so re-applying an unchanged set is a no-op.
    """

    def __init__(self, controller: KubernetesControllerSync) -> None:
        self.controller = controller

    def apply(
        self,
        request: DeploymentRequest,
        satisfied: Iterable[ResourceKind] = frozenset(),
    ) -> list[ApplyOutcome]:
        """Apply every descriptor of the request.

        Args:
            request: Deployment request holding the descriptors
            satisfied: Kinds already in place before this call (e.g. the
                reconciled namespace)

        Returns:
            One outcome per descriptor, in application order

        Raises:
            ValidationFailed: Before any mutation, on a cycle or missing dependency
            ApplyFailed: On the first failed application, carrying the outcomes
                recorded so far (the failed one last)
        """
        satisfied = frozenset(satisfied)
        validate_dependencies(request.descriptors, satisfied)
        ordered = order_descriptors(request.descriptors, satisfied)

        expected = Counter(d.kind for d in request.descriptors)
        applied: Counter[ResourceKind] = Counter()
        outcomes: list[ApplyOutcome] = []

        for descriptor in ordered:
            blocking = [
                kind
                for kind in descriptor.depends_on
                if kind not in satisfied and applied[kind] < expected[kind]
            ]
            if blocking:
                raise ApplyFailed(
                    f"{descriptor.label} reached before its dependencies",
                    ", ".join(sorted(k.value for k in blocking)),
                    descriptor=descriptor,
                    outcomes=outcomes,
                )

            outcome = self._apply_one(descriptor, request.namespace)
            outcomes.append(outcome)

            if not outcome.succeeded:
                logger.error(f"Failed to apply {descriptor.label}: {outcome.error}")
                raise ApplyFailed(
                    f"Failed to apply {descriptor.label}",
                    outcome.error,
                    descriptor=descriptor,
                    outcomes=outcomes,
                )

            applied[descriptor.kind] += 1
            logger.info(f"{descriptor.label} {outcome.action.value}")

        return outcomes

    def _apply_one(self, descriptor: ResourceDescriptor, namespace: str) -> ApplyOutcome:
        try:
            observed = self.controller.get_resource(descriptor.ref(namespace))
        except ClusterError as e:
            return ApplyOutcome(descriptor, ApplyAction.FAILED, error=str(e))

        if observed is None:
            action = ApplyAction.CREATED
        elif is_subset(descriptor.payload, observed):
            logger.debug(f"{descriptor.label} matches the observed object")
            return ApplyOutcome(descriptor, ApplyAction.UNCHANGED, observed=observed)
        else:
            action = ApplyAction.CONFIGURED

        result = self.controller.apply_resource(descriptor.payload)
        if not result.success:
            return ApplyOutcome(
                descriptor,
                ApplyAction.FAILED,
                observed=observed,
                error=result.stderr.strip() or f"exit code {result.returncode}",
            )
        return ApplyOutcome(descriptor, action, observed=observed)
