"""Main CLI application module.

This module provides the main entry point for the ogdeploy CLI.

Commands:
- install: Install OpenGovernance (AWS, DigitalOcean or any cluster)
- configure: Reconfigure an installation with a custom domain and TLS
- status: Show the release, pods and access details
- uninstall: Remove the installation
- aws-template: Render the AWS Organization CloudFormation template
"""

import signal
from types import FrameType

import typer

from ogdeploy.cli.deployment.installer import CancellationToken

from .commands import aws_template, configure, install, status, uninstall
from .context import build_cli_context
from .shared.console import console

HANDLED_SIGNALS = ("SIGINT", "SIGTERM", "SIGHUP")

# Create the main CLI application
app = typer.Typer(
    help="OpenGovernance installer",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def main_callback(ctx: typer.Context) -> None:
    """Install and manage OpenGovernance on Kubernetes."""
    token = ctx.obj if isinstance(ctx.obj, CancellationToken) else None
    try:
        ctx.obj = build_cli_context(token)
    except ValueError as e:
        console.handle_error("Invalid installer configuration", str(e), category="Invalid input")


# Register commands
app.command("install")(install)
app.command("configure")(configure)
app.command("status")(status)
app.command("uninstall")(uninstall)
app.command("aws-template")(aws_template)


def install_signal_handlers(token: CancellationToken) -> None:
    """Cancel `token` and interrupt the main thread on SIGINT, SIGTERM and SIGHUP."""

    def _handler(signum: int, frame: FrameType | None) -> None:
        token.cancel(signal.Signals(signum).name)
        raise KeyboardInterrupt

    for name in HANDLED_SIGNALS:
        sig = getattr(signal, name, None)
        if sig is not None:
            signal.signal(sig, _handler)


def main() -> None:
    """Main entry point for the CLI."""
    token = CancellationToken()
    install_signal_handlers(token)
    app(obj=token)


if __name__ == "__main__":
    main()
