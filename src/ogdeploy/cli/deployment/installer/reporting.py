"""Operator-facing output: progress, plan, access summary and failures."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ogdeploy.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants
from ogdeploy.infra.k8s.controller import ClusterQueryError
from ogdeploy.utils.console_like import ConsoleLike, coalesce_console

from .models import AccessMode, DeploymentPlan, ProgressSample, ReconcileResult

if TYPE_CHECKING:
    from ogdeploy.infra.k8s.controller import PodInfo

    from ..shell_commands.kubectl import KubectlCommands
    from .errors import DeploymentError


@dataclass(frozen=True)
class AccessSummary:
    """How the operator reaches the installed platform."""

    mode: AccessMode
    namespace: str
    url: str | None
    external_address: str | None
    port_forward_command: str
    local_url: str
    username: str
    password: str
    domain: str | None = None


def build_access_summary(
    mode: AccessMode,
    namespace: str,
    *,
    base_url: str | None = None,
    external_address: str | None = None,
    domain: str | None = None,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> AccessSummary:
    """Build the access summary for a deployment.

    Domain modes use `base_url`; the hostless mode uses the external
    address when one was assigned. Port-forward instructions are always
    included as the fallback.
    """
    from ..shell_commands.kubectl import KubectlCommands

    if mode is AccessMode.PORT_FORWARD:
        url = None
    elif mode is AccessMode.EXTERNAL_ADDRESS:
        url = f"http://{external_address}" if external_address else None
    else:
        url = base_url

    return AccessSummary(
        mode=mode,
        namespace=namespace,
        url=url,
        external_address=external_address,
        port_forward_command=KubectlCommands.port_forward_command(
            namespace,
            constants.PROXY_SERVICE_NAME,
            constants.PORT_FORWARD_LOCAL_PORT,
            constants.PROXY_SERVICE_PORT,
        ),
        local_url=f"http://localhost:{constants.PORT_FORWARD_LOCAL_PORT}",
        username=constants.DEFAULT_USERNAME,
        password=constants.DEFAULT_PASSWORD,
        domain=domain,
    )


def format_pod_table(pods: Sequence[PodInfo]) -> str:
    """Render pods as a plain-text table for the log."""
    rows = [("NAME", "STATUS", "RESTARTS", "NODE")]
    rows.extend((p.name, p.status, str(p.restarts), p.node or "-") for p in pods)
    widths = [max(len(row[i]) for row in rows) for i in range(4)]
    return "\n".join(
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths, strict=True)).rstrip()
        for row in rows
    )


class ReportingPresenter:
    """Renders installer output on the console (and thereby the log)."""

    def __init__(
        self,
        console: ConsoleLike | None = None,
        constants: DeploymentConstants = DEFAULT_CONSTANTS,
    ) -> None:
        self.console = coalesce_console(console)
        self.constants = constants

    # =========================================================================
    # Progress
    # =========================================================================

    def progress(self, sample: ProgressSample) -> None:
        self.console.info(
            f"Progress: {sample.completed} out of {sample.total} resources completed "
            f"({sample.percent}%)"
        )

    def action_result(self, result: ReconcileResult) -> None:
        label = result.action.description or result.action.kind.value
        if result.applied:
            self.console.ok(f"{label}: {result.message or 'done'}")
        else:
            self.console.info(f"{label}: {result.message or 'already up to date'}")

    def waiting(self, description: str, polls: int, summary: str) -> None:
        self.console.info(f"Waiting for {description} (check {polls}): {summary}")

    # =========================================================================
    # Plan
    # =========================================================================

    def plan(self, plan: DeploymentPlan) -> None:
        """Print the ordered plan."""
        table = Table(title="Deployment Plan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Action", style="cyan")
        table.add_column("Description")
        table.add_column("Waits For", style="magenta")

        for index, action in enumerate(plan.actions, start=1):
            table.add_row(
                str(index),
                action.kind.value,
                action.description,
                action.wait_for.value if action.wait_for else "-",
            )

        self.console.print(table)
        self.console.info(f"Access mode: {plan.access_mode.value}")
        if plan.reuse_infra:
            self.console.info("Existing infrastructure will be reused")
        for index, action in enumerate(plan.actions, start=1):
            logger.info("Plan step {}: {} ({})", index, action.kind.value, action.idempotency_key)

    # =========================================================================
    # Access Summary
    # =========================================================================

    def access_summary(self, summary: AccessSummary) -> None:
        """Print how to reach the platform and the default sign-in."""
        lines: list[str] = []
        if summary.url:
            lines.append(f"[bold]URL:[/bold] {escape(summary.url)}")
        if summary.external_address:
            lines.append(f"[bold]External address:[/bold] {escape(summary.external_address)}")
            if summary.domain and summary.mode is not AccessMode.EXTERNAL_ADDRESS:
                lines.append(
                    f"Point DNS for {escape(summary.domain)} at {escape(summary.external_address)}."
                )

        if not summary.url:
            lines.append("Access the platform through port-forwarding:")
            lines.append(f"  [cyan]{escape(summary.port_forward_command)}[/cyan]")
            lines.append(f"  then open {summary.local_url}")
        else:
            lines.append(
                f"[dim]Alternatively: {escape(summary.port_forward_command)} "
                f"and open {summary.local_url}[/dim]"
            )

        lines.append("")
        lines.append(f"[bold]Username:[/bold] {summary.username}")
        lines.append(f"[bold]Password:[/bold] {summary.password}")

        self.console.print(
            Panel("\n".join(lines), title="OpenGovernance is ready", border_style="green")
        )
        logger.info(
            "Access: mode={} url={} address={} port-forward='{}'",
            summary.mode.value,
            summary.url,
            summary.external_address,
            summary.port_forward_command,
        )

    # =========================================================================
    # Pods and Failures
    # =========================================================================

    def pod_table(self, pods: Sequence[PodInfo], *, title: str = "Pods") -> None:
        """Print pods as a Rich table and write them to the log."""
        table = Table(title=title)
        table.add_column("Name", style="cyan")
        table.add_column("Status")
        table.add_column("Restarts", justify="right")
        table.add_column("Node", style="dim")

        for pod in pods:
            style = "green" if pod.status in self.constants.HEALTHY_POD_PHASES else "red"
            table.add_row(
                pod.name,
                f"[{style}]{escape(pod.status)}[/{style}]",
                str(pod.restarts),
                pod.node or "-",
            )

        self.console.print(table)
        logger.info("{}:\n{}", title, format_pod_table(pods))

    def failure(self, error: DeploymentError) -> None:
        """Print a categorized failure without exiting."""
        self.console.error(f"{escape(f'[{error.category}]')} {escape(error.message)}")
        if error.details:
            self.console.print(Panel(escape(error.details), title="Details", border_style="red"))

    def status_overview(
        self,
        kubectl: KubectlCommands,
        namespace: str,
        release: str,
        version: str,
        release_status: str,
    ) -> None:
        """Print the release line and the pods of the namespace."""
        self.console.info(f"Release {release} ({version or 'unknown version'}): {release_status}")
        try:
            pods = kubectl.get_pods(namespace)
        except ClusterQueryError as e:
            self.console.warn(str(e))
            return
        if pods:
            self.pod_table(pods, title=f"Pods in {namespace}")
        else:
            self.console.warn(f"No pods found in namespace {namespace}")
