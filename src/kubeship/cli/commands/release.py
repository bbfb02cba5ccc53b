"""Release commands: install, upgrade, uninstall and status.

Each command resolves settings (config file plus CLI overrides), checks
prerequisites, loads the resource descriptors and hands a DeploymentRequest
to the orchestrator.
"""

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from kubeship.cli.context import CLIContext, get_cli_context
from kubeship.cli.shared.console import with_error_handling
from kubeship.cli.status_display import StatusDisplay
from kubeship.deployment import (
    DeploymentOrchestrator,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStatus,
    DescriptorStore,
    RollbackFailed,
    StatusReporter,
    ValidationFailed,
    build_request,
)
from kubeship.deployment.errors import EXIT_CANCELLED, EXIT_FAILED

# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

ReleaseOption = Annotated[
    str | None,
    typer.Option("--release", "-r", help="Release name"),
]
NamespaceOption = Annotated[
    str | None,
    typer.Option("--namespace", "-n", help="Kubernetes namespace"),
]
TimeoutOption = Annotated[
    float | None,
    typer.Option("--timeout", "-t", help="Seconds to wait for the rollout"),
]
ImageOption = Annotated[
    str | None,
    typer.Option("--image", "-i", help="Image reference for the workload"),
]
ManifestsOption = Annotated[
    Path | None,
    typer.Option("--manifests", "-m", help="Directory of plain manifests"),
]
ChartOption = Annotated[
    Path | None,
    typer.Option("--chart", "-c", help="Helm chart to render"),
]
ValuesOption = Annotated[
    list[Path] | None,
    typer.Option("--values", "-f", help="Values file for the chart (repeatable)"),
]
BackendOption = Annotated[
    str | None,
    typer.Option("--backend", "-b", help="Cluster backend: kubectl or kr8s"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _prepare(
    cli_ctx: CLIContext, **overrides: Any
) -> tuple[DeploymentOrchestrator, DeploymentRequest]:
    """Resolve settings, check prerequisites and load the descriptors."""
    try:
        settings = cli_ctx.settings.with_overrides(**overrides)
    except ValueError as e:
        raise ValidationFailed("Invalid configuration", str(e)) from e

    helm = cli_ctx.commands.helm if settings.uses_chart else None
    orchestrator = DeploymentOrchestrator(
        cli_ctx.controller_for(settings),
        helm,
        constants=cli_ctx.constants,
    )

    # Rendering a chart needs helm, so tools are checked before loading
    orchestrator.checker.check()

    store = DescriptorStore(helm, cli_ctx.constants)
    descriptors = store.load(settings, cli_ctx.project_root)
    return orchestrator, build_request(settings, descriptors)


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancellation event for the duration of a run."""
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    def _handler(signum: int, frame: object) -> None:
        logger.warning("Interrupt received, cancelling")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def _finish(cli_ctx: CLIContext, result: DeploymentResult) -> None:
    """Print the run summary and exit with the code matching its status."""
    display = StatusDisplay(cli_ctx.console)
    display.show_summary(StatusReporter().report(result))

    if result.status is DeploymentStatus.SUCCEEDED:
        cli_ctx.console.ok(f"{result.release} is ready")
        display.show_access_hint(result.release, result.namespace, cli_ctx.constants)
        return

    if result.status is DeploymentStatus.CANCELLED:
        cli_ctx.console.warn("Deployment cancelled; applied resources were left in place")
        raise typer.Exit(EXIT_CANCELLED)

    error = result.error
    if error is None:
        cli_ctx.console.handle_error(f"Deployment {result.status.value}", exit_code=EXIT_FAILED)
    else:
        cli_ctx.console.handle_error(error.message, error.details, exit_code=error.exit_code)


def _run(
    action: str,
    release: str | None,
    namespace: str | None,
    timeout: float | None,
    image: str | None,
    manifests: Path | None,
    chart: Path | None,
    values: list[Path] | None,
    backend: str | None,
) -> None:
    cli_ctx = get_cli_context()
    cli_ctx.console.print_header(f"{action.capitalize()} release")

    orchestrator, request = _prepare(
        cli_ctx,
        release=release,
        namespace=namespace,
        timeout_seconds=timeout,
        image=image,
        manifests_dir=manifests,
        chart_path=chart,
        values_files=values or None,
        backend=backend,
    )
    cli_ctx.console.info(
        f"{len(request.descriptors)} resource(s) for {request.release} "
        f"in namespace {request.namespace}"
    )

    run = orchestrator.install if action == "install" else orchestrator.upgrade
    with _cancel_on_interrupt() as cancel:
        with cli_ctx.console.status("[cyan]Applying resources and waiting for rollout...[/cyan]"):
            result = run(request, cancel)

    _finish(cli_ctx, result)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@with_error_handling
def install(
    release: ReleaseOption = None,
    namespace: NamespaceOption = None,
    timeout: TimeoutOption = None,
    image: ImageOption = None,
    manifests: ManifestsOption = None,
    chart: ChartOption = None,
    values: ValuesOption = None,
    backend: BackendOption = None,
) -> None:
    """Install the application into a namespace.

    Creates the namespace if needed, applies every resource in dependency
    order and waits for the workload to become ready.

    Examples:
        kubeship install
        kubeship install -n demo --image excalidraw/excalidraw:v0.17
        kubeship install --manifests k8s/manifests --timeout 120
    """
    _run("install", release, namespace, timeout, image, manifests, chart, values, backend)


@with_error_handling
def upgrade(
    release: ReleaseOption = None,
    namespace: NamespaceOption = None,
    timeout: TimeoutOption = None,
    image: ImageOption = None,
    manifests: ManifestsOption = None,
    chart: ChartOption = None,
    values: ValuesOption = None,
    backend: BackendOption = None,
) -> None:
    """Upgrade an installed release in place.

    The namespace must already exist. Only resources that changed are applied.

    Examples:
        kubeship upgrade --image excalidraw/excalidraw:v0.18
    """
    _run("upgrade", release, namespace, timeout, image, manifests, chart, values, backend)


@with_error_handling
def uninstall(
    release: ReleaseOption = None,
    namespace: NamespaceOption = None,
    manifests: ManifestsOption = None,
    chart: ChartOption = None,
    values: ValuesOption = None,
    backend: BackendOption = None,
    remove_namespace: Annotated[
        bool,
        typer.Option(
            "--remove-namespace",
            help="Also delete the namespace and everything in it",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Remove the application, in reverse dependency order.

    The namespace is kept unless --remove-namespace is given.

    Examples:
        kubeship uninstall
        kubeship uninstall --remove-namespace -y
    """
    cli_ctx = get_cli_context()
    cli_ctx.console.print_header("Uninstall release")

    orchestrator, request = _prepare(
        cli_ctx,
        release=release,
        namespace=namespace,
        manifests_dir=manifests,
        chart_path=chart,
        values_files=values or None,
        backend=backend,
    )

    if remove_namespace and not cli_ctx.console.confirm_action(
        f"Delete namespace '{request.namespace}'",
        f"This will delete every resource in namespace '{request.namespace}',\n"
        "including anything kubeship did not create.",
        force=yes,
    ):
        cli_ctx.console.print("[dim]Operation cancelled[/dim]")
        raise typer.Exit(0)

    display = StatusDisplay(cli_ctx.console)
    reporter = StatusReporter()
    try:
        outcomes = orchestrator.uninstall(request, remove_namespace=remove_namespace)
    except RollbackFailed as e:
        display.show_summary(
            reporter.report_uninstall(request.release, request.namespace, e.outcomes)
        )
        raise

    display.show_summary(reporter.report_uninstall(request.release, request.namespace, outcomes))
    cli_ctx.console.ok(f"{request.release} removed")


@with_error_handling
def status(
    release: ReleaseOption = None,
    namespace: NamespaceOption = None,
    manifests: ManifestsOption = None,
    chart: ChartOption = None,
    values: ValuesOption = None,
    backend: BackendOption = None,
) -> None:
    """Show the observed state of the release.

    Lists each resource, the rollout progress, pods and services.

    Examples:
        kubeship status
        kubeship status -n demo
    """
    cli_ctx = get_cli_context()
    cli_ctx.console.print_header("Release status")

    orchestrator, request = _prepare(
        cli_ctx,
        release=release,
        namespace=namespace,
        manifests_dir=manifests,
        chart_path=chart,
        values_files=values or None,
        backend=backend,
    )
    snapshot = orchestrator.status(request)

    display = StatusDisplay(cli_ctx.console)
    display.show_summary(StatusReporter().report_observed(snapshot))
    if not snapshot.namespace_exists:
        cli_ctx.console.warn(f"Namespace '{request.namespace}' does not exist")
        return

    display.show_pods(snapshot.pods)
    display.show_services(snapshot.services)
    display.show_access_hint(request.release, request.namespace, cli_ctx.constants)
