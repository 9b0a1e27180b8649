"""Shared console output for CLI commands.

Everything printed through CLIConsole is mirrored to the log file as plain
text, so install.log holds the same narrative the operator saw.
"""

from collections.abc import Callable
from functools import wraps

import typer
from loguru import logger
from rich.console import Console, ConsoleRenderable
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text


def _plain(msg: str) -> str:
    return Text.from_markup(msg).plain.strip()


class CLIConsole:
    """Rich console wrapper for consistent CLI output."""

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the CLI console.

        Args:
            console: Rich console to write to (default: stdout)
        """
        self.console = console or Console()

    def print(self, msg: ConsoleRenderable | str | None = None) -> None:
        self.console.print(msg)
        if isinstance(msg, str) and msg:
            logger.info(_plain(msg))

    def info(self, msg: str) -> None:
        self.console.print(f"[cyan]ℹ[/cyan]  {msg}")
        logger.info(_plain(msg))

    def ok(self, msg: str) -> None:
        self.console.print(f"[green]✅[/green] {msg}")
        logger.info(_plain(msg))

    def error(self, msg: str) -> None:
        self.console.print(f"[red]❌[/red] {msg}")
        logger.error(_plain(msg))

    def warn(self, msg: str) -> None:
        self.console.print(f"[yellow]⚠️[/yellow]  {msg}")
        logger.warning(_plain(msg))

    def confirm_action(
        self,
        action: str,
        details: str | None = None,
        extra_warning: str | None = None,
        force: bool = False,
    ) -> bool:
        """Prompt user to confirm a potentially destructive action.

        Args:
            action: Description of the action (e.g., "Uninstall OpenGovernance")
            details: Additional details about what will be affected
            extra_warning: Extra warning message (e.g., for data loss)
            force: If True, skip the confirmation prompt

        Returns:
            True if the user confirmed, False otherwise
        """
        if force:
            return True

        warning_lines = [f"[bold red]⚠️  {action}[/bold red]"]
        if details:
            warning_lines.append(f"\n{details}")
        if extra_warning:
            warning_lines.append(f"\n[yellow]{extra_warning}[/yellow]")

        self.console.print(
            Panel(
                "\n".join(warning_lines),
                title="Confirmation Required",
                border_style="red",
            )
        )

        try:
            response = self.console.input(
                "\n[bold]Are you sure you want to proceed?[/bold] \\[y/N]: "
            )
            return response.strip().lower() in ("y", "yes")
        except EOFError:
            self.console.print("\n[dim]Cancelled.[/dim]")
            return False

    def handle_error(
        self,
        message: str,
        details: str | None = None,
        *,
        category: str | None = None,
        exit_code: int = 1,
    ) -> None:
        """Print a categorized error and exit.

        Args:
            message: Error message to display
            details: Optional additional details (e.g. tool output)
            category: Error category, shown as "[Category] message"
            exit_code: Exit code to use
        """
        prefix = f"{escape(f'[{category}]')} " if category else ""
        self.error(f"[bold red]{prefix}{escape(message)}[/bold red]")
        if details:
            self.console.print(Panel(escape(details), title="Details", border_style="red"))
            logger.error(details)
        raise typer.Exit(exit_code)

    def print_header(self, title: str, style: str = "blue") -> None:
        """Print a styled header panel.

        Args:
            title: Header title text
            style: Border style color
        """
        self.console.print(
            Panel.fit(
                f"[bold {style}]{title}[/bold {style}]",
                border_style=style,
            )
        )
        logger.info(title)


def with_error_handling(func: Callable[..., None]) -> Callable[..., None]:
    """Decorator to wrap command functions with standard error handling.

    DeploymentError subclasses are printed as "[Category] message" with a
    details panel and exit 1; an interrupt prints an abort notice and
    exits 1.

    Args:
        func: The command function to wrap

    Returns:
        Wrapped function with error handling
    """
    from ogdeploy.cli.deployment.installer.errors import DeploymentError

    @wraps(func)
    def wrapper(*args: object, **kwargs: object) -> None:
        try:
            func(*args, **kwargs)
        except DeploymentError as e:
            console.handle_error(e.message, e.details, category=e.category)
        except KeyboardInterrupt:
            console.print("\n[dim]Installation aborted by user.[/dim]")
            logger.warning("Interrupted")
            raise typer.Exit(1) from None

    return wrapper


# Shared console instance for consistent output
console = CLIConsole()
