"""Read-only environment queries.

The probe never mutates anything: it answers questions about local tools,
the configured cluster, AWS credentials and existing infrastructure state.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ogdeploy.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants

from ..shell_commands.types import CommandFailedError
from .errors import UnsuitableCluster
from .models import ClusterContext, ClusterProvider, ReleaseRef, ReleaseStatus

if TYPE_CHECKING:
    from ogdeploy.infra.aws.client import AwsClient, CallerIdentity

    from ..shell_commands import ShellCommands


EKS_SERVER_MARKER = "amazonaws.com"


class EnvironmentProbe:
    """Answers read-only questions about the installation environment."""

    def __init__(
        self,
        commands: ShellCommands,
        aws: AwsClient | None = None,
        constants: DeploymentConstants = DEFAULT_CONSTANTS,
    ) -> None:
        """Initialize the probe.

        Args:
            commands: Shell command executor
            aws: AWS client (only needed on the AWS platform)
            constants: Deployment constants
        """
        self.commands = commands
        self.aws = aws
        self.constants = constants

    # =========================================================================
    # Local Tools
    # =========================================================================

    def missing_tools(self, tools: Iterable[str]) -> list[str]:
        """Get the tools that are not on PATH, in the order given."""
        return [tool for tool in tools if not self.commands.is_available(tool)]

    def infra_binary(self) -> str | None:
        """Get the infrastructure binary to use (tofu preferred over terraform)."""
        return self.commands.terraform.binary

    # =========================================================================
    # Cluster
    # =========================================================================

    def cluster_context(self, namespace: str) -> ClusterContext:
        """Snapshot the cluster behind the current kubectl context.

        Returns a context with provider NONE when no context is configured or
        the API server does not answer.

        Raises:
            UnsuitableCluster: If the Helm releases of the namespace cannot be listed
        """
        kubectl = self.commands.kubectl

        server = kubectl.get_cluster_server()
        if not server or not kubectl.is_cluster_reachable():
            logger.debug("kubectl is not connected to any cluster")
            return ClusterContext()

        provider = ClusterProvider.AWS if EKS_SERVER_MARKER in server else ClusterProvider.OTHER
        ready_nodes = sum(1 for node in kubectl.get_nodes() if node.ready)
        try:
            releases = frozenset(self.releases(namespace))
        except CommandFailedError as e:
            raise UnsuitableCluster(
                f"Cannot list Helm releases in namespace '{namespace}'",
                e.result.diagnostic,
            ) from e

        context = ClusterContext(
            current_provider=provider,
            ready_node_count=ready_nodes,
            active_namespace_releases=releases,
            context_name=kubectl.get_current_context(),
        )
        logger.debug(
            "Cluster {} ({}): {} ready node(s), {} release(s) in {}",
            context.context_name,
            provider.value,
            ready_nodes,
            len(releases),
            namespace,
        )
        return context

    def releases(self, namespace: str | None) -> list[ReleaseRef]:
        """Get Helm releases in a namespace (all namespaces when None)."""
        return [
            ReleaseRef(
                name=r.name,
                namespace=r.namespace,
                chart_version=r.chart_version,
                status=ReleaseStatus.from_helm(r.status),
            )
            for r in self.commands.helm.list_releases(namespace)
        ]

    # =========================================================================
    # AWS
    # =========================================================================

    def aws_identity(self) -> CallerIdentity | None:
        """Get the AWS caller identity, or None without valid credentials."""
        if self.aws is None:
            return None
        return self.aws.get_caller_identity()

    def find_certificate(self, domain: str) -> str | None:
        """Find an ISSUED ACM certificate for exactly `domain`."""
        if self.aws is None:
            return None
        arn = self.aws.find_issued_certificate(domain)
        logger.debug("ACM certificate for {}: {}", domain, arn or "none")
        return arn

    # =========================================================================
    # Infrastructure State
    # =========================================================================

    def infra_state(self, workdir: Path) -> list[str]:
        """List resources recorded in the infrastructure state ([] if none)."""
        return self.commands.terraform.state_list(workdir)
