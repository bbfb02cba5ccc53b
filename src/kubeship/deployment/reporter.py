"""Summaries of deployment runs and observed release state.

The reporter only aggregates values it is handed. It never talks to the
cluster, so the same input always renders the same output.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from rich.table import Table

from .models import (
    ApplyAction,
    DeleteAction,
    DeleteOutcome,
    DeploymentResult,
    DeploymentStatus,
    ResourceKind,
    RolloutState,
    StatusSnapshot,
)

_ACTION_STYLES = {
    ApplyAction.CREATED.value: "green",
    ApplyAction.CONFIGURED.value: "cyan",
    ApplyAction.UNCHANGED.value: "dim",
    ApplyAction.FAILED.value: "red",
    DeleteAction.DELETED.value: "green",
    DeleteAction.ABSENT.value: "dim",
    DeleteAction.SKIPPED.value: "yellow",
    "present": "green",
    "missing": "yellow",
    "unknown": "red",
}

_STATUS_STYLES = {
    DeploymentStatus.SUCCEEDED: "green",
    DeploymentStatus.FAILED: "red",
    DeploymentStatus.TIMED_OUT: "yellow",
    DeploymentStatus.CANCELLED: "yellow",
}


@dataclass(frozen=True)
class SummaryRow:
    """One resource line of a summary."""

    kind: ResourceKind
    name: str
    action: str
    detail: str = ""

    @property
    def label(self) -> str:
        return f"{self.kind.api_kind.lower()}/{self.name}"


@dataclass
class DeploymentSummary:
    """Rendered view of a run or of the observed state of a release."""

    title: str
    headline: str
    rows: list[SummaryRow] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    style: str = "white"

    def to_table(self) -> Table:
        table = Table(title=self.title, show_header=True, header_style="bold magenta")
        table.add_column("Resource", style="cyan")
        table.add_column("Kind", style="dim")
        table.add_column("Action")
        table.add_column("Details", style="dim")

        for row in self.rows:
            color = _ACTION_STYLES.get(row.action, "white")
            table.add_row(
                row.label,
                row.kind.value,
                f"[{color}]{row.action}[/{color}]",
                row.detail,
            )
        return table

    def lines(self) -> list[str]:
        """Plain text rendering, one line per entry."""
        out = [self.headline]
        out.extend(
            f"  {row.label}: {row.action}" + (f" ({row.detail})" if row.detail else "")
            for row in self.rows
        )
        out.extend(f"  {note}" for note in self.notes)
        return out

    def __str__(self) -> str:
        return "\n".join(self.lines())


def _sort_key(row: SummaryRow) -> tuple[int, str]:
    return (row.kind.rank, row.name)


def describe_rollout(name: str, state: RolloutState | None) -> str:
    if state is None:
        return f"deployment/{name}: not found"
    text = f"deployment/{name}: {state.ready_replicas}/{state.desired_replicas} ready"
    if state.last_transition is not None:
        text += f", last transition {state.last_transition.isoformat()}"
    return text


class StatusReporter:
    """Builds DeploymentSummary values for the CLI."""

    def report(self, result: DeploymentResult) -> DeploymentSummary:
        """Summarize an install or upgrade run."""
        rows = sorted(
            (
                SummaryRow(
                    kind=o.descriptor.kind,
                    name=o.descriptor.name,
                    action=o.action.value,
                    detail=o.error or "",
                )
                for o in result.outcomes
            ),
            key=_sort_key,
        )

        notes = []
        if result.rollout is not None:
            notes.append(
                f"Rollout: {result.rollout.ready_replicas}/"
                f"{result.rollout.desired_replicas} replicas ready"
            )
        if result.error is not None:
            notes.append(f"Error: {result.error}")

        return DeploymentSummary(
            title=f"Release {result.release}",
            headline=(
                f"{result.release} in {result.namespace}: {result.status.value} "
                f"after {result.elapsed:.1f}s ({len(result.successful_outcomes)}/"
                f"{len(result.outcomes)} resources applied)"
            ),
            rows=rows,
            notes=notes,
            style=_STATUS_STYLES[result.status],
        )

    def report_observed(self, snapshot: StatusSnapshot) -> DeploymentSummary:
        """Summarize the observed state collected by the status command."""
        rows = []
        for observed in snapshot.resources:
            if observed.error:
                action, detail = "unknown", observed.error
            else:
                action, detail = ("present" if observed.present else "missing"), ""
            rows.append(
                SummaryRow(
                    kind=observed.descriptor.kind,
                    name=observed.descriptor.name,
                    action=action,
                    detail=detail,
                )
            )
        rows.sort(key=_sort_key)

        notes = [
            describe_rollout(name, state)
            for name, state in sorted(snapshot.rollouts.items())
        ]
        present = sum(1 for r in rows if r.action == "present")
        all_ready = all(s is not None and s.is_ready for s in snapshot.rollouts.values())
        namespace_note = "" if snapshot.namespace_exists else " (namespace missing)"

        return DeploymentSummary(
            title=f"Release {snapshot.release}",
            headline=(
                f"{snapshot.release} in {snapshot.namespace}{namespace_note} "
                f"on context {snapshot.context}: {present}/{len(rows)} resources present"
            ),
            rows=rows,
            notes=notes,
            style="green" if present == len(rows) and all_ready else "yellow",
        )

    def report_uninstall(
        self,
        release: str,
        namespace: str,
        outcomes: Sequence[DeleteOutcome],
    ) -> DeploymentSummary:
        """Summarize an uninstall, keeping the deletion order."""
        rows = [
            SummaryRow(kind=o.kind, name=o.name, action=o.action.value, detail=o.error or "")
            for o in outcomes
        ]
        failed = sum(1 for o in outcomes if not o.succeeded)
        deleted = sum(1 for o in outcomes if o.action is DeleteAction.DELETED)
        return DeploymentSummary(
            title=f"Uninstall {release}",
            headline=f"{release} in {namespace}: {deleted} deleted, {failed} failed",
            rows=rows,
            style="red" if failed else "green",
        )
