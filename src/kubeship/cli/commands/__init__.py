"""CLI command modules.

Commands:
- install: Create the namespace, apply resources, wait for the rollout
- upgrade: Apply changed resources into an existing namespace
- uninstall: Remove resources in reverse dependency order
- status: Show the observed state of a release
"""

from .release import install, status, uninstall, upgrade

__all__ = [
    "install",
    "upgrade",
    "uninstall",
    "status",
]
