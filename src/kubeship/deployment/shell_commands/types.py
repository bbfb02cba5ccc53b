"""Data types for shell command results.

Note: CommandResult is re-exported from kubeship.infra.k8s.controller so the
chart renderer and the cluster controllers report results the same way.
"""

from __future__ import annotations

from dataclasses import dataclass

from kubeship.infra.k8s.controller import CommandResult

__all__ = [
    "CommandResult",
    "HelmVersion",
]


@dataclass
class HelmVersion:
    """Version information reported by `helm version`.

    Attributes:
        version: Semantic version string (e.g., "v3.14.2")
        git_commit: Commit the binary was built from, if reported
    """

    version: str
    git_commit: str = ""
