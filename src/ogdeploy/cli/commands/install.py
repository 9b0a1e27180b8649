"""Installation lifecycle commands.

install, configure, status and uninstall operate on one namespace of the
cluster behind the current kubectl context.
"""

from typing import Annotated

import typer

from ogdeploy.cli.context import CLIContext, get_cli_context
from ogdeploy.cli.deployment.installer import (
    ConfigureRequest,
    InstallRequest,
    InstallType,
    InvalidInput,
    Platform,
    UserAborted,
)
from ogdeploy.cli.shared.console import with_error_handling
from ogdeploy.utils.logging import configure_logging

PLATFORM_CHOICES = ("auto", *(p.value for p in Platform))
INSTALL_TYPE_CHOICES = tuple(t.value for t in InstallType)


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------


def _setup_logging(cli_ctx: CLIContext, debug: bool) -> None:
    configure_logging(
        cli_ctx.paths.log_file,
        cli_ctx.paths.debug_log_file,
        debug=debug or cli_ctx.config.debug,
    )


def parse_platform(value: str) -> Platform | None:
    """Parse the --platform option ("auto" means detect).

    Raises:
        InvalidInput: For an unknown platform
    """
    value = value.strip().lower()
    if value not in PLATFORM_CHOICES:
        raise InvalidInput(
            f"Invalid platform '{value}'", f"Choose one of: {', '.join(PLATFORM_CHOICES)}"
        )
    return None if value == "auto" else Platform(value)


def parse_install_type(value: str | None) -> InstallType | None:
    """Parse the --type option.

    Raises:
        InvalidInput: For anything but 1 or 2
    """
    if value is None:
        return None
    if value not in INSTALL_TYPE_CHOICES:
        raise InvalidInput(
            f"Invalid installation type '{value}'",
            "Use 1 for a custom domain or 2 for a basic install.",
        )
    return InstallType(value)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@with_error_handling
def install(
    ctx: typer.Context,
    domain: Annotated[
        str | None,
        typer.Option("--domain", "-d", help="Custom domain for the platform"),
    ] = None,
    email: Annotated[
        str | None,
        typer.Option("--email", "-e", help="Email for Let's Encrypt certificates"),
    ] = None,
    install_type: Annotated[
        str | None,
        typer.Option(
            "--type",
            "-t",
            help="Installation type: 1 = custom domain, 2 = basic (port-forwarding)",
        ),
    ] = None,
    region: Annotated[
        str | None,
        typer.Option("--region", "-r", help="AWS region for new infrastructure"),
    ] = None,
    platform: Annotated[
        str,
        typer.Option(
            "--platform",
            "-p",
            help="Target platform: auto, aws, digitalocean or generic",
        ),
    ] = "auto",
    namespace: Annotated[
        str | None,
        typer.Option("--namespace", "-n", help="Kubernetes namespace"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Print the plan without changing anything"),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Non-interactive: use the default for every prompt"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug output and chart debug mode"),
    ] = False,
) -> None:
    """Install OpenGovernance.

    Checks prerequisites, optionally creates an EKS cluster (AWS), installs
    the Helm chart and sets up ingress and TLS for the chosen domain.

    Examples:
        ogdeploy install
        ogdeploy install -p generic -d og.example.com -e admin@example.com
        ogdeploy install -t 2 --yes
        ogdeploy install -d og.example.com --dry-run
    """
    cli_ctx = get_cli_context(ctx)
    _setup_logging(cli_ctx, debug)
    cli_ctx.console.print_header("Installing OpenGovernance")

    request = InstallRequest(
        platform=parse_platform(platform),
        domain=domain,
        email=email,
        install_type=parse_install_type(install_type),
        region=region,
        dry_run=dry_run,
        debug=debug,
    )
    cli_ctx.installer(namespace=namespace, assume_yes=yes).install(request)


@with_error_handling
def configure(
    ctx: typer.Context,
    domain: Annotated[
        str | None,
        typer.Option("--domain", "-d", help="Custom domain for the platform"),
    ] = None,
    email: Annotated[
        str | None,
        typer.Option("--email", "-e", help="Email for Let's Encrypt certificates"),
    ] = None,
    https: Annotated[
        bool | None,
        typer.Option(
            "--https/--no-https",
            help="Force TLS on or off (default: on when a certificate source exists)",
        ),
    ] = None,
    namespace: Annotated[
        str | None,
        typer.Option("--namespace", "-n", help="Kubernetes namespace"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Print the plan without changing anything"),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Non-interactive: use the default for every prompt"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug output"),
    ] = False,
) -> None:
    """Reconfigure an installed release with a custom domain.

    Installs the ingress controller (and cert-manager with a Let's Encrypt
    issuer when an email is given), applies the ingress, upgrades the
    release and restarts the proxy and identity pods.

    Examples:
        ogdeploy configure -d og.example.com
        ogdeploy configure -d og.example.com -e admin@example.com
        ogdeploy configure -d og.example.com --no-https
    """
    cli_ctx = get_cli_context(ctx)
    _setup_logging(cli_ctx, debug)
    cli_ctx.console.print_header("Configuring OpenGovernance")

    request = ConfigureRequest(
        domain=domain,
        email=email,
        use_https=https,
        dry_run=dry_run,
        debug=debug,
    )
    cli_ctx.installer(namespace=namespace, assume_yes=yes).configure(request)


@with_error_handling
def status(
    ctx: typer.Context,
    namespace: Annotated[
        str | None,
        typer.Option("--namespace", "-n", help="Kubernetes namespace"),
    ] = None,
) -> None:
    """Show the release, its pods and how to access the platform.

    Examples:
        ogdeploy status
        ogdeploy status -n my-namespace
    """
    cli_ctx = get_cli_context(ctx)
    _setup_logging(cli_ctx, False)
    cli_ctx.console.print_header("OpenGovernance Status")

    cli_ctx.installer(namespace=namespace).status()


@with_error_handling
def uninstall(
    ctx: typer.Context,
    namespace: Annotated[
        str | None,
        typer.Option("--namespace", "-n", help="Kubernetes namespace"),
    ] = None,
    delete_namespace: Annotated[
        bool,
        typer.Option("--delete-namespace", help="Also delete the namespace"),
    ] = False,
    destroy_infra: Annotated[
        bool,
        typer.Option("--destroy-infra", help="Also destroy the AWS infrastructure"),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Uninstall OpenGovernance.

    Examples:
        ogdeploy uninstall
        ogdeploy uninstall --delete-namespace --destroy-infra -y
    """
    cli_ctx = get_cli_context(ctx)
    _setup_logging(cli_ctx, False)
    cli_ctx.console.print_header("Uninstalling OpenGovernance")

    target_ns = namespace or cli_ctx.config.namespace
    effects = [f"  • Uninstall the Helm releases in namespace '{target_ns}'"]
    if delete_namespace:
        effects.append(f"  • Delete namespace '{target_ns}' and all resources")
    if destroy_infra:
        effects.append("  • Destroy the EKS cluster and its infrastructure")

    if not cli_ctx.console.confirm_action(
        "Uninstall OpenGovernance",
        "This will:\n" + "\n".join(effects),
        extra_warning="This cannot be undone." if destroy_infra or delete_namespace else None,
        force=yes,
    ):
        raise UserAborted("Uninstall was not confirmed")

    cli_ctx.installer(namespace=namespace, assume_yes=yes).uninstall(
        delete_namespace=delete_namespace,
        destroy_infra=destroy_infra,
    )
