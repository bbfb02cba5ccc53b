"""Rendering of summaries and cluster state for the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.table import Table

if TYPE_CHECKING:
    from kubeship.deployment.reporter import DeploymentSummary
    from kubeship.infra.constants import DeploymentConstants
    from kubeship.infra.k8s import PodInfo, ServiceInfo

    from .shared.console import CLIConsole


_POD_STATUS_COLORS = {
    "Running": "green",
    "Succeeded": "green",
    "Pending": "yellow",
    "ContainerCreating": "yellow",
}


class StatusDisplay:
    """Prints deployment summaries, pods, services and the access hint."""

    def __init__(self, console: CLIConsole) -> None:
        self.console = console

    def show_summary(self, summary: DeploymentSummary) -> None:
        self.console.print(summary.to_table())
        self.console.print(f"[{summary.style}]{summary.headline}[/{summary.style}]")
        for note in summary.notes:
            self.console.print(f"  [dim]{note}[/dim]")

    def show_pods(self, pods: list[PodInfo]) -> None:
        if not pods:
            self.console.print("[dim]No pods found[/dim]")
            return

        table = Table(title="Pods", show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Status")
        table.add_column("Restarts", justify="right")
        table.add_column("IP", style="dim")
        table.add_column("Node", style="dim")

        for pod in pods:
            color = _POD_STATUS_COLORS.get(pod.status, "red")
            table.add_row(
                pod.name,
                f"[{color}]{pod.status}[/{color}]",
                str(pod.restarts),
                pod.ip,
                pod.node,
            )
        self.console.print(table)

    def show_services(self, services: list[ServiceInfo]) -> None:
        if not services:
            self.console.print("[dim]No services found[/dim]")
            return

        table = Table(title="Services", show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Cluster IP", style="dim")
        table.add_column("External IP", style="dim")
        table.add_column("Ports")

        for svc in services:
            table.add_row(
                svc.name,
                svc.type,
                svc.cluster_ip,
                svc.external_ip or "<none>",
                svc.ports,
            )
        self.console.print(table)

    def show_access_hint(
        self,
        release: str,
        namespace: str,
        constants: DeploymentConstants,
    ) -> None:
        """Print the port-forward command that exposes the app locally."""
        self.console.print("\n[bold]Access the application:[/bold]")
        self.console.print(
            f"  [cyan]kubectl port-forward -n {namespace} svc/{release} "
            f"{constants.LOCAL_PORT}:{constants.SERVICE_PORT}[/cyan]"
        )
        self.console.print(f"  [dim]Then open http://localhost:{constants.LOCAL_PORT}[/dim]")
