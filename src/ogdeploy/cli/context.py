"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass, field

import click
import typer

from ogdeploy.cli.deployment.installer import CancellationToken, Installer
from ogdeploy.cli.deployment.shell_commands import ShellCommands
from ogdeploy.cli.shared.console import CLIConsole, console
from ogdeploy.cli.shared.prompts import ConsoleInputProvider, DefaultsInputProvider, InputProvider
from ogdeploy.infra.config import InstallerConfig, load_installer_config
from ogdeploy.infra.constants import DeploymentConstants, DeploymentPaths


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: CLIConsole
    commands: ShellCommands
    constants: DeploymentConstants
    paths: DeploymentPaths
    config: InstallerConfig
    token: CancellationToken = field(default_factory=CancellationToken)

    def inputs(self, *, assume_yes: bool = False) -> InputProvider:
        """Get the input provider for a command (defaults only with --yes)."""
        if assume_yes:
            return DefaultsInputProvider()
        return ConsoleInputProvider(self.console)

    def installer(self, *, namespace: str | None = None, assume_yes: bool = False) -> Installer:
        """Build an Installer bound to this context.

        Args:
            namespace: Namespace override (default: from the config)
            assume_yes: Answer every prompt with its default
        """
        config = self.config
        if namespace and namespace != config.namespace:
            config = config.model_copy(update={"namespace": namespace})
        return Installer(
            self.commands,
            self.inputs(assume_yes=assume_yes),
            config,
            console=self.console,
            constants=self.constants,
            paths=self.paths,
            token=self.token,
        )


def build_cli_context(token: CancellationToken | None = None) -> CLIContext:
    """Build a fresh CLIContext.

    Args:
        token: Cancellation token wired to the signal handlers (default: new)

    Raises:
        ValueError: If the installer config is invalid
    """
    constants = DeploymentConstants()
    paths = DeploymentPaths()

    return CLIContext(
        console=console,
        commands=ShellCommands(infra_binaries=constants.INFRA_BINARIES),
        constants=constants,
        paths=paths,
        config=load_installer_config(paths.config_file),
        token=token or CancellationToken(),
    )


def get_cli_context(ctx: typer.Context | None = None) -> CLIContext:
    """Return the CLIContext from Typer, falling back to a new instance."""
    context = ctx or click.get_current_context(silent=True)
    if context and isinstance(context.obj, CLIContext):
        return context.obj
    return build_cli_context()
