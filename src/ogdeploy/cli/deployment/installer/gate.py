"""Prerequisite checks that run before anything is changed.

The gate fails fast: the first failed check raises. Its only side effect
is clearing the kubectl context when the configured cluster is unsuitable,
so a follow-up run does not target it by accident.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from ogdeploy.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants

from .errors import AuthenticationFailure, ToolMissing, UnsuitableCluster
from .models import ClusterContext, ClusterProvider, Platform

if TYPE_CHECKING:
    from .probe import EnvironmentProbe


class PrerequisiteGate:
    """Validates tools, authentication and cluster suitability."""

    def __init__(
        self,
        probe: EnvironmentProbe,
        constants: DeploymentConstants = DEFAULT_CONSTANTS,
    ) -> None:
        self.probe = probe
        self.constants = constants

    def required_tools(self, platform: Platform) -> tuple[str, ...]:
        """Get the command-line tools a platform needs."""
        if platform is Platform.AWS:
            return self.constants.AWS_TOOLS
        return self.constants.GENERIC_TOOLS

    def check_tools(self, platform: Platform) -> None:
        """Check that every required tool is on PATH.

        Raises:
            ToolMissing: For the first missing tool
        """
        missing = self.probe.missing_tools(self.required_tools(platform))
        if missing:
            raise ToolMissing(missing[0], f"Missing: {', '.join(missing)}")

        if platform is Platform.AWS and self.probe.infra_binary() is None:
            raise ToolMissing(
                " or ".join(reversed(self.constants.INFRA_BINARIES)),
                "Install OpenTofu (preferred) or Terraform.",
            )
        logger.debug("All required tools are available")

    def check_authentication(self, platform: Platform, cluster: ClusterContext) -> None:
        """Check credentials for the platform.

        AWS needs a valid STS caller identity; other platforms need a
        reachable cluster in the current kubectl context.

        Raises:
            AuthenticationFailure: If credentials are missing or rejected
        """
        if platform is Platform.AWS:
            identity = self.probe.aws_identity()
            if identity is None:
                raise AuthenticationFailure(
                    "AWS CLI is not configured or credentials are invalid",
                    "Run 'aws configure' or export AWS credentials, then retry.",
                )
            logger.info("Authenticated to AWS account {} as {}", identity.account, identity.arn)
            return

        if not cluster.configured:
            raise AuthenticationFailure(
                "kubectl is not connected to a reachable cluster",
                "Point the current kubectl context at the target cluster, then retry.",
            )

    def check_cluster(
        self,
        platform: Platform,
        cluster: ClusterContext,
        *,
        release_name: str,
        min_ready_nodes: int | None = None,
    ) -> None:
        """Check that the configured cluster can host the installation.

        Passes without a configured cluster on AWS, where the cluster will be
        created.

        Raises:
            UnsuitableCluster: After clearing the kubectl context
        """
        if not cluster.configured:
            if platform is Platform.AWS:
                logger.info("kubectl is not connected to any cluster; a new cluster will be created")
                return
            raise UnsuitableCluster("kubectl is not connected to any cluster")

        required_nodes = min_ready_nodes or self.constants.MIN_READY_NODES
        reasons: list[str] = []
        if platform is Platform.AWS and cluster.current_provider is not ClusterProvider.AWS:
            reasons.append("the current cluster is not an EKS cluster")
        if cluster.ready_node_count < required_nodes:
            reasons.append(
                f"at least {required_nodes} nodes must be ready "
                f"(currently {cluster.ready_node_count})"
            )
        existing = cluster.release(release_name)
        if existing is not None:
            reasons.append(
                f"release '{release_name}' already exists in namespace "
                f"'{existing.namespace}' ({existing.status.value})"
            )

        if not reasons:
            logger.info("Cluster {} is suitable for installation", cluster.context_name)
            return

        logger.info("Cluster is not suitable; unsetting the current kubectl context")
        result = self.probe.commands.kubectl.unset_current_context()
        if not result.success:
            logger.warning("Failed to unset the kubectl context: {}", result.diagnostic)
        raise UnsuitableCluster(
            f"Cluster '{cluster.context_name}' is not suitable for installation",
            "; ".join(reasons),
        )
