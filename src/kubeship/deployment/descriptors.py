"""Resource descriptor store.

Turns manifests (a directory of YAML files or a rendered Helm chart) into an
ordered, validated set of ResourceDescriptor values, and owns the dependency
graph logic the sequencer and the uninstaller rely on.
"""

from __future__ import annotations

import copy
import heapq
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from loguru import logger

from kubeship.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants

from .errors import ValidationFailed
from .models import (
    KIND_DEPENDENCIES,
    DeploymentRequest,
    ResourceDescriptor,
    ResourceKind,
)

if TYPE_CHECKING:
    from kubeship.config.settings import DeploySettings

    from .shell_commands import HelmCommands


# =============================================================================
# Manifest parsing
# =============================================================================


def parse_manifests(text: str, source: str = "<manifest>") -> list[dict[str, Any]]:
    """Parse a multi-document YAML string, skipping empty documents."""
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise ValidationFailed(f"Invalid YAML in {source}", details=str(e)) from e

    manifests = []
    for doc in documents:
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise ValidationFailed(
                f"Invalid manifest in {source}",
                details=f"Expected a mapping, got {type(doc).__name__}",
            )
        manifests.append(doc)
    return manifests


def _declared_dependencies(
    manifest: dict[str, Any],
    kind: ResourceKind,
    constants: DeploymentConstants,
) -> frozenset[ResourceKind]:
    annotations = (manifest.get("metadata") or {}).get("annotations") or {}
    raw = annotations.get(constants.DEPENDS_ON_ANNOTATION)
    if raw is None:
        return KIND_DEPENDENCIES[kind]

    kinds = set()
    for item in str(raw).split(","):
        item = item.strip()
        if not item:
            continue
        try:
            kinds.add(ResourceKind(item))
        except ValueError as e:
            raise ValidationFailed(
                f"Unknown dependency kind '{item}' on {kind.api_kind.lower()}",
                details=f"Valid kinds: {', '.join(k.value for k in ResourceKind)}",
            ) from e
    return frozenset(kinds)


def _set_image(payload: dict[str, Any], image: str) -> None:
    pod_spec = payload.get("spec", {}).get("template", {}).get("spec", {})
    for container in pod_spec.get("containers", []) or []:
        container["image"] = image


def descriptor_from_manifest(
    manifest: dict[str, Any],
    namespace: str,
    *,
    image: str | None = None,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> ResourceDescriptor:
    """Build a descriptor from one manifest, scoped to the target namespace.

    The payload is a deep copy: namespaced objects get `metadata.namespace`
    set, the Namespace object is renamed to the target namespace, and the
    workload's containers get the image reference when one is given.
    """
    api_kind = manifest.get("kind")
    kind = ResourceKind.from_api_kind(str(api_kind)) if api_kind else None
    if kind is None:
        raise ValidationFailed(
            f"Unsupported resource kind: {api_kind!r}",
            details="Supported kinds: "
            + ", ".join(k.api_kind for k in ResourceKind),
        )

    payload = copy.deepcopy(manifest)
    metadata = payload.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValidationFailed(
            f"{api_kind} manifest has invalid metadata",
            details=f"Expected a mapping, got {type(metadata).__name__}",
        )
    payload["metadata"] = metadata

    if kind is ResourceKind.NAMESPACE:
        metadata["name"] = namespace
    else:
        metadata["namespace"] = namespace

    name = metadata.get("name")
    if not name:
        raise ValidationFailed(f"{api_kind} manifest has no metadata.name")

    if image and kind is ResourceKind.WORKLOAD:
        _set_image(payload, image)

    return ResourceDescriptor(
        kind=kind,
        name=str(name),
        depends_on=_declared_dependencies(manifest, kind, constants),
        payload=payload,
    )


# =============================================================================
# Dependency graph
# =============================================================================


def validate_dependencies(
    descriptors: Sequence[ResourceDescriptor],
    satisfied: Iterable[ResourceKind] = (),
) -> None:
    """Reject descriptor sets that can never be applied in order.

    Raises:
        ValidationFailed: On duplicate descriptors, a dependency on a kind that
            is neither present nor already satisfied, or a dependency cycle.
    """
    seen: set[tuple[ResourceKind, str]] = set()
    for d in descriptors:
        key = (d.kind, d.name)
        if key in seen:
            raise ValidationFailed(f"Duplicate descriptor: {d.label}")
        seen.add(key)

    present = {d.kind for d in descriptors} | set(satisfied)
    for d in descriptors:
        missing = d.depends_on - present
        if missing:
            raise ValidationFailed(
                f"{d.label} depends on missing kind(s): "
                + ", ".join(sorted(k.value for k in missing))
            )

    # Raises on cycles.
    order_descriptors(descriptors, satisfied)


def order_descriptors(
    descriptors: Sequence[ResourceDescriptor],
    satisfied: Iterable[ResourceKind] = (),
) -> list[ResourceDescriptor]:
    """Topologically order descriptors by their declared dependencies.

    A descriptor waits for every descriptor whose kind it depends on. Ties are
    broken by kind rank, then by input position, so the order is stable.

    Raises:
        ValidationFailed: If the dependencies contain a cycle
    """
    satisfied = set(satisfied)
    indexed = list(enumerate(descriptors))

    # Edges: dependency index -> dependent indices
    dependents: dict[int, list[int]] = {i: [] for i, _ in indexed}
    pending: dict[int, int] = {}
    for i, d in indexed:
        deps = [
            j
            for j, other in indexed
            if other.kind in d.depends_on and other.kind not in satisfied and j != i
        ]
        if d.kind in d.depends_on and d.kind not in satisfied:
            raise ValidationFailed(f"Dependency cycle: {d.label} depends on its own kind")
        for j in deps:
            dependents[j].append(i)
        pending[i] = len(deps)

    heap = [(d.kind.rank, i) for i, d in indexed if pending[i] == 0]
    heapq.heapify(heap)

    ordered: list[ResourceDescriptor] = []
    while heap:
        _, i = heapq.heappop(heap)
        ordered.append(descriptors[i])
        for k in dependents[i]:
            pending[k] -= 1
            if pending[k] == 0:
                heapq.heappush(heap, (descriptors[k].kind.rank, k))

    if len(ordered) != len(descriptors):
        stuck = sorted({descriptors[i].kind.value for i, n in pending.items() if n > 0})
        raise ValidationFailed(
            "Dependency cycle between kinds: " + ", ".join(stuck)
        )

    return ordered


# =============================================================================
# Store
# =============================================================================


class DescriptorStore:
    """Loads descriptors from manifests or a Helm chart."""

    def __init__(
        self,
        helm: HelmCommands | None = None,
        constants: DeploymentConstants | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            helm: Helm commands, required only for chart sources
            constants: Optional deployment constants
        """
        self.helm = helm
        self.constants = constants or DEFAULT_CONSTANTS

    def from_manifests(
        self,
        manifests: Iterable[dict[str, Any]],
        namespace: str,
        *,
        image: str | None = None,
    ) -> tuple[ResourceDescriptor, ...]:
        return tuple(
            descriptor_from_manifest(
                m, namespace, image=image, constants=self.constants
            )
            for m in manifests
        )

    def from_directory(
        self,
        directory: Path,
        namespace: str,
        *,
        image: str | None = None,
    ) -> tuple[ResourceDescriptor, ...]:
        """Load every YAML file in a directory, in file name order.

        Raises:
            ValidationFailed: If the directory is missing or holds no manifests
        """
        if not directory.is_dir():
            raise ValidationFailed(f"Manifest directory not found: {directory}")

        files = sorted(
            p
            for p in directory.iterdir()
            if p.is_file() and p.suffix in self.constants.MANIFEST_SUFFIXES
        )
        manifests: list[dict[str, Any]] = []
        for path in files:
            manifests.extend(parse_manifests(path.read_text(encoding="utf-8"), str(path)))

        if not manifests:
            raise ValidationFailed(f"No manifests found in {directory}")

        logger.info(f"Loaded {len(manifests)} manifest(s) from {directory}")
        return self.from_manifests(manifests, namespace, image=image)

    def from_chart(
        self,
        release: str,
        chart_path: Path,
        namespace: str,
        *,
        value_files: list[Path] | None = None,
        image: str | None = None,
    ) -> tuple[ResourceDescriptor, ...]:
        """Lint and render a Helm chart, then load the rendered manifests.

        Raises:
            ValidationFailed: If the chart is missing, fails lint, or fails to render
        """
        if self.helm is None:
            raise ValidationFailed("A chart source needs the Helm renderer")
        if not chart_path.is_dir():
            raise ValidationFailed(f"Helm chart not found: {chart_path}")

        lint = self.helm.lint(chart_path, value_files=value_files)
        if not lint.success:
            raise ValidationFailed(
                f"Chart validation failed: {chart_path}",
                details=(lint.stdout + lint.stderr).strip() or None,
            )
        logger.info(f"Chart {chart_path} passed lint")

        rendered = self.helm.template(
            release, chart_path, namespace, value_files=value_files
        )
        if not rendered.success:
            raise ValidationFailed(
                f"Chart rendering failed: {chart_path}",
                details=rendered.stderr.strip() or None,
            )

        manifests = [
            m
            for m in parse_manifests(rendered.stdout, str(chart_path))
            if not self._is_test_hook(m)
        ]
        logger.info(f"Rendered {len(manifests)} manifest(s) from chart {chart_path}")
        return self.from_manifests(manifests, namespace, image=image)

    @staticmethod
    def _is_test_hook(manifest: dict[str, Any]) -> bool:
        metadata = manifest.get("metadata")
        if not isinstance(metadata, dict):
            return False
        annotations = metadata.get("annotations") or {}
        return "test" in str(annotations.get("helm.sh/hook", ""))

    def load(
        self,
        settings: DeploySettings,
        project_root: Path,
    ) -> tuple[ResourceDescriptor, ...]:
        """Load descriptors from whichever source the settings select."""
        if settings.manifests_dir:
            return self.from_directory(
                project_root / settings.manifests_dir,
                settings.namespace,
                image=settings.image,
            )
        return self.from_chart(
            settings.release,
            project_root / settings.chart_path,
            settings.namespace,
            value_files=[project_root / vf for vf in settings.chart_values_files],
            image=settings.image,
        )


def build_request(
    settings: DeploySettings,
    descriptors: Sequence[ResourceDescriptor],
) -> DeploymentRequest:
    """Freeze settings and descriptors into the request for one run."""
    return DeploymentRequest(
        release=settings.release,
        namespace=settings.namespace,
        descriptors=tuple(descriptors),
        image=settings.image,
        timeout=settings.timeout_seconds,
        poll_interval=settings.poll_interval_seconds,
    )
