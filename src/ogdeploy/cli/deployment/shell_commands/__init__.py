"""Shell command abstractions for installation operations.

This package provides a clean interface for the external tools the installer
drives. It is organized into specialized modules for each tool:

- helm: Helm repository and release management
- kubectl: Kubernetes cluster operations (sync wrapper over the kr8s controller)
- terraform: Terraform / OpenTofu plan, apply and state queries
- git: Git repository operations

Usage:
    from ogdeploy.cli.deployment.shell_commands import ShellCommands

    commands = ShellCommands()
    if commands.helm.get_release("opengovernance", "opengovernance") is None:
        print("Not installed")
"""

from pathlib import Path

from ogdeploy.infra.k8s.controller import KubernetesController

from .git import GitCommands
from .helm import HelmCommands
from .kubectl import KubectlCommands
from .runner import BackgroundProcess, CommandRunner
from .terraform import TerraformCommands
from .types import CommandFailedError, CommandResult, HelmRelease


class ShellCommands:
    """Unified interface for all shell command operations.

    Attributes:
        helm: Helm-related commands
        kubectl: Kubernetes cluster commands
        terraform: Terraform / OpenTofu commands
        git: Git repository commands

    Example:
        >>> commands = ShellCommands()
        >>> commands.helm.repo_update()
    """

    def __init__(
        self,
        working_dir: Path | None = None,
        *,
        controller: KubernetesController | None = None,
        infra_binaries: tuple[str, ...] = ("tofu", "terraform"),
    ) -> None:
        """Initialize the shell commands executor.

        Args:
            working_dir: Default working directory for commands
            controller: Kubernetes controller (default: shared kr8s controller)
            infra_binaries: Infrastructure binaries in order of preference
        """
        self._runner = CommandRunner(working_dir)

        self.helm = HelmCommands(self._runner)
        self.kubectl = KubectlCommands(self._runner, controller)
        self.terraform = TerraformCommands(self._runner, infra_binaries)
        self.git = GitCommands(self._runner)

    @property
    def runner(self) -> CommandRunner:
        """Get the underlying command runner."""
        return self._runner

    def is_available(self, tool: str) -> bool:
        """Check whether an executable is on PATH."""
        return self._runner.is_available(tool)


__all__ = [
    "ShellCommands",
    "CommandFailedError",
    "CommandResult",
    "HelmRelease",
    "BackgroundProcess",
    # Specialized command classes for direct usage
    "HelmCommands",
    "KubectlCommands",
    "TerraformCommands",
    "GitCommands",
    "CommandRunner",
]
