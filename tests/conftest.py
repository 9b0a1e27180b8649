"""Shared fixtures for the installer tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ogdeploy.cli.deployment.installer.models import (
    ClusterContext,
    ClusterProvider,
    ReleaseRef,
    ReleaseStatus,
)
from ogdeploy.cli.deployment.shell_commands.types import CommandResult
from ogdeploy.infra.config import InstallerConfig
from ogdeploy.infra.k8s.controller import PodInfo
from ogdeploy.utils.paths import STATE_DIR_ENV


@pytest.fixture(autouse=True)
def isolated_state_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep logs and cloned infrastructure out of the real home directory."""
    state_dir = tmp_path / "state"
    monkeypatch.setenv(STATE_DIR_ENV, str(state_dir))
    for name in ("NAMESPACE", "MIN_READY_NODES", "CHART_VERSION", "DEBUG"):
        monkeypatch.delenv(f"OGDEPLOY_{name}", raising=False)
    return state_dir


@pytest.fixture
def ok() -> CommandResult:
    """A successful command result."""
    return CommandResult(success=True, stdout="", stderr="", returncode=0)


@pytest.fixture
def config() -> InstallerConfig:
    """Default installer settings."""
    return InstallerConfig()


@pytest.fixture
def mock_commands(ok: CommandResult) -> MagicMock:
    """Shell commands whose mutating calls succeed."""
    commands = MagicMock()
    commands.is_available.return_value = True
    for method in ("repo_add", "repo_update", "install", "upgrade", "uninstall"):
        getattr(commands.helm, method).return_value = ok
    commands.helm.repo_names.return_value = []
    commands.helm.get_release.return_value = None
    commands.helm.list_releases.return_value = []
    commands.helm.search_latest_version.return_value = None
    commands.helm.get_values.return_value = {}
    for method in ("apply_manifest", "delete_pods_by_label", "unset_current_context", "delete_namespace"):
        getattr(commands.kubectl, method).return_value = ok
    commands.kubectl.get_ingress.return_value = None
    commands.kubectl.get_pods.return_value = []
    commands.kubectl.get_jobs.return_value = []
    return commands


@pytest.fixture
def healthy_pods() -> list[PodInfo]:
    """Pods of a healthy installation."""
    return [
        PodInfo(name="nginx-proxy-7d9f", status="Running"),
        PodInfo(name="dex-0", status="Running"),
        PodInfo(name="migrator-job-x1", status="Succeeded"),
    ]


@pytest.fixture
def generic_cluster() -> ClusterContext:
    """A reachable non-EKS cluster with three ready nodes."""
    return ClusterContext(
        current_provider=ClusterProvider.OTHER,
        ready_node_count=3,
        context_name="kind-og",
    )


@pytest.fixture
def installed_cluster(generic_cluster: ClusterContext) -> ClusterContext:
    """A cluster with the application release already deployed."""
    return ClusterContext(
        current_provider=generic_cluster.current_provider,
        ready_node_count=generic_cluster.ready_node_count,
        context_name=generic_cluster.context_name,
        active_namespace_releases=frozenset(
            {
                ReleaseRef(
                    name="opengovernance",
                    namespace="opengovernance",
                    chart_version="0.2.10",
                    status=ReleaseStatus.DEPLOYED,
                )
            }
        ),
    )
