"""Tests for the prerequisite gate."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ogdeploy.cli.deployment.installer.errors import (
    AuthenticationFailure,
    ToolMissing,
    UnsuitableCluster,
)
from ogdeploy.cli.deployment.installer.gate import PrerequisiteGate
from ogdeploy.cli.deployment.installer.models import (
    ClusterContext,
    ClusterProvider,
    Platform,
    ReleaseStatus,
)
from ogdeploy.cli.deployment.installer.probe import EnvironmentProbe
from ogdeploy.cli.deployment.shell_commands.types import CommandFailedError, CommandResult, HelmRelease
from ogdeploy.infra.aws.client import CallerIdentity
from ogdeploy.infra.k8s.controller import NodeInfo


@pytest.fixture
def probe(mock_commands: MagicMock) -> EnvironmentProbe:
    return EnvironmentProbe(mock_commands, aws=MagicMock())


@pytest.fixture
def gate(probe: EnvironmentProbe) -> PrerequisiteGate:
    return PrerequisiteGate(probe)


class TestCheckTools:
    """Tests for tool checks."""

    def test_first_missing_tool_is_reported(
        self, gate: PrerequisiteGate, mock_commands: MagicMock
    ) -> None:
        mock_commands.is_available.side_effect = lambda tool: tool not in ("helm", "kubectl")

        with pytest.raises(ToolMissing) as excinfo:
            gate.check_tools(Platform.GENERIC)

        assert excinfo.value.tool == "kubectl"
        assert excinfo.value.category == "Missing tool"

    def test_aws_needs_an_infra_binary(
        self, gate: PrerequisiteGate, mock_commands: MagicMock
    ) -> None:
        mock_commands.terraform.binary = None

        with pytest.raises(ToolMissing, match="terraform or tofu"):
            gate.check_tools(Platform.AWS)

    def test_generic_ignores_infra_binary(
        self, gate: PrerequisiteGate, mock_commands: MagicMock
    ) -> None:
        mock_commands.terraform.binary = None

        gate.check_tools(Platform.GENERIC)

    def test_aws_tools(self, gate: PrerequisiteGate) -> None:
        assert gate.required_tools(Platform.AWS) == ("git", "kubectl", "aws", "helm")


class TestCheckAuthentication:
    """Tests for credential checks."""

    def test_aws_without_identity_fails(self, gate: PrerequisiteGate, probe: EnvironmentProbe) -> None:
        probe.aws.get_caller_identity.return_value = None

        with pytest.raises(AuthenticationFailure):
            gate.check_authentication(Platform.AWS, ClusterContext())

    def test_aws_with_identity_passes(self, gate: PrerequisiteGate, probe: EnvironmentProbe) -> None:
        probe.aws.get_caller_identity.return_value = CallerIdentity(
            account="123456789012", arn="arn:aws:iam::123456789012:user/ops", user_id="AID"
        )

        gate.check_authentication(Platform.AWS, ClusterContext())

    def test_generic_needs_a_cluster(self, gate: PrerequisiteGate) -> None:
        with pytest.raises(AuthenticationFailure):
            gate.check_authentication(Platform.GENERIC, ClusterContext())


class TestCheckCluster:
    """Tests for cluster suitability."""

    def test_suitable_cluster_passes(
        self,
        gate: PrerequisiteGate,
        generic_cluster: ClusterContext,
        mock_commands: MagicMock,
    ) -> None:
        gate.check_cluster(Platform.GENERIC, generic_cluster, release_name="opengovernance")

        mock_commands.kubectl.unset_current_context.assert_not_called()

    def test_existing_release_is_unsuitable(
        self,
        gate: PrerequisiteGate,
        installed_cluster: ClusterContext,
        mock_commands: MagicMock,
    ) -> None:
        """A deployed release fails the gate and clears the kubectl context."""
        with pytest.raises(UnsuitableCluster) as excinfo:
            gate.check_cluster(Platform.GENERIC, installed_cluster, release_name="opengovernance")

        assert "already exists" in excinfo.value.details
        mock_commands.kubectl.unset_current_context.assert_called_once()
        mock_commands.helm.install.assert_not_called()

    def test_too_few_nodes(self, gate: PrerequisiteGate) -> None:
        cluster = ClusterContext(current_provider=ClusterProvider.OTHER, ready_node_count=2)

        with pytest.raises(UnsuitableCluster) as excinfo:
            gate.check_cluster(Platform.GENERIC, cluster, release_name="opengovernance")

        assert "at least 3 nodes" in excinfo.value.details

    def test_node_minimum_is_configurable(self, gate: PrerequisiteGate) -> None:
        cluster = ClusterContext(current_provider=ClusterProvider.OTHER, ready_node_count=1)

        gate.check_cluster(
            Platform.GENERIC, cluster, release_name="opengovernance", min_ready_nodes=1
        )

    def test_aws_requires_eks(self, gate: PrerequisiteGate, generic_cluster: ClusterContext) -> None:
        with pytest.raises(UnsuitableCluster) as excinfo:
            gate.check_cluster(Platform.AWS, generic_cluster, release_name="opengovernance")

        assert "not an EKS cluster" in excinfo.value.details

    def test_aws_without_cluster_passes(self, gate: PrerequisiteGate) -> None:
        gate.check_cluster(Platform.AWS, ClusterContext(), release_name="opengovernance")

    def test_generic_without_cluster_fails(self, gate: PrerequisiteGate) -> None:
        with pytest.raises(UnsuitableCluster):
            gate.check_cluster(Platform.GENERIC, ClusterContext(), release_name="opengovernance")


class TestClusterContext:
    """Tests for the cluster snapshot the gate decides on."""

    @pytest.fixture
    def eks(self, mock_commands: MagicMock) -> MagicMock:
        kubectl = mock_commands.kubectl
        kubectl.get_cluster_server.return_value = "https://ABCD.gr7.us-east-1.eks.amazonaws.com"
        kubectl.is_cluster_reachable.return_value = True
        kubectl.get_current_context.return_value = "arn:aws:eks:us-east-1:123456789012:cluster/og"
        kubectl.get_nodes.return_value = [NodeInfo(name=f"node-{i}", ready=True) for i in range(3)]
        return mock_commands

    def test_releases_are_collected(self, probe: EnvironmentProbe, eks: MagicMock) -> None:
        eks.helm.list_releases.return_value = [
            HelmRelease(
                name="opengovernance",
                namespace="opengovernance",
                status="failed",
                revision="1",
                chart="opengovernance-0.2.10",
            )
        ]

        cluster = probe.cluster_context("opengovernance")

        assert cluster.current_provider is ClusterProvider.AWS
        assert cluster.ready_node_count == 3
        release = cluster.release("opengovernance")
        assert release is not None
        assert release.status is ReleaseStatus.FAILED

    def test_failed_release_listing_is_unsuitable(
        self, gate: PrerequisiteGate, probe: EnvironmentProbe, eks: MagicMock
    ) -> None:
        eks.helm.list_releases.side_effect = CommandFailedError(
            ["helm", "list", "--all", "-o", "json", "-n", "opengovernance"],
            CommandResult(
                success=False, stderr="Error: Kubernetes cluster unreachable", returncode=1
            ),
        )

        with pytest.raises(UnsuitableCluster) as excinfo:
            cluster = probe.cluster_context("opengovernance")
            gate.check_cluster(Platform.AWS, cluster, release_name="opengovernance")

        assert "Cannot list Helm releases" in excinfo.value.message
        assert excinfo.value.details == "Error: Kubernetes cluster unreachable"
