"""Operator input.

Every question the installer asks goes through an InputProvider, so the
same workflow runs interactively, unattended (--yes) or from a script of
answers in tests.
"""

from __future__ import annotations

import select
import sys
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Protocol, TextIO

from loguru import logger

if TYPE_CHECKING:
    from .console import CLIConsole


class InputProvider(Protocol):
    """Source of operator answers."""

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """Ask a yes/no question."""
        ...

    def choose(
        self,
        message: str,
        choices: Sequence[tuple[str, str]],
        *,
        default: str,
        timeout: float | None = None,
    ) -> str:
        """Ask the operator to pick one of `choices` ((key, label) pairs).

        Returns the chosen key, or `default` when the prompt times out.
        """
        ...

    def text(
        self,
        message: str,
        *,
        default: str | None = None,
        timeout: float | None = None,
    ) -> str | None:
        """Ask for free text; returns `default` on timeout or empty input."""
        ...


# =============================================================================
# Interactive
# =============================================================================


class ConsoleInputProvider:
    """Prompts on the terminal, with optional per-prompt timeouts."""

    def __init__(self, console: CLIConsole, stream: TextIO | None = None) -> None:
        """Initialize the provider.

        Args:
            console: Console the questions are printed on
            stream: Input stream (default: stdin)
        """
        self.console = console
        self.stream = stream or sys.stdin

    def _read_line(self, prompt: str, timeout: float | None) -> str | None:
        """Read one line, or None on timeout or end of input."""
        self.console.console.print(prompt, end="")
        if timeout is not None:
            try:
                ready, _, _ = select.select([self.stream], [], [], timeout)
            except (OSError, ValueError):
                # not a selectable stream; read without a deadline
                ready = [self.stream]
            if not ready:
                self.console.console.print()
                return None
        line = self.stream.readline()
        if not line:
            return None
        return line.strip()

    def confirm(self, message: str, *, default: bool = False) -> bool:
        hint = "\\[Y/n]" if default else "\\[y/N]"
        while True:
            answer = self._read_line(f"[bold]{message}[/bold] {hint}: ", None)
            if answer is None or answer == "":
                logger.debug("{} -> {}", message, default)
                return default
            if answer.lower() in ("y", "yes"):
                return True
            if answer.lower() in ("n", "no"):
                return False
            self.console.warn("Please answer 'y' or 'n'.")

    def choose(
        self,
        message: str,
        choices: Sequence[tuple[str, str]],
        *,
        default: str,
        timeout: float | None = None,
    ) -> str:
        keys = [key for key, _ in choices]
        self.console.console.print(f"\n[bold]{message}[/bold]")
        for key, label in choices:
            marker = " [dim](default)[/dim]" if key == default else ""
            self.console.console.print(f"  [cyan]{key}[/cyan]) {label}{marker}")

        suffix = f" within {timeout:.0f}s" if timeout is not None else ""
        while True:
            answer = self._read_line(f"Select an option{suffix} \\[{default}]: ", timeout)
            if answer is None:
                self.console.info(f"No selection made; using option {default}.")
                return default
            if answer == "":
                return default
            if answer in keys:
                logger.info("{} -> {}", message, answer)
                return answer
            self.console.warn(f"Invalid choice '{answer}'. Choose one of: {', '.join(keys)}")

    def text(
        self,
        message: str,
        *,
        default: str | None = None,
        timeout: float | None = None,
    ) -> str | None:
        hint = f" \\[{default}]" if default else ""
        answer = self._read_line(f"[bold]{message}[/bold]{hint}: ", timeout)
        if not answer:
            return default
        return answer


# =============================================================================
# Non-interactive
# =============================================================================


class DefaultsInputProvider:
    """Answers every prompt with its default (used for --yes)."""

    def confirm(self, message: str, *, default: bool = False) -> bool:
        logger.info("{} -> {} (default)", message, "yes" if default else "no")
        return default

    def choose(
        self,
        message: str,
        choices: Sequence[tuple[str, str]],
        *,
        default: str,
        timeout: float | None = None,
    ) -> str:
        logger.info("{} -> {} (default)", message, default)
        return default

    def text(
        self,
        message: str,
        *,
        default: str | None = None,
        timeout: float | None = None,
    ) -> str | None:
        logger.info("{} -> {} (default)", message, default or "<none>")
        return default


class ScriptedInputProvider:
    """Replays a fixed sequence of answers.

    Each answer is consumed by the next prompt regardless of its kind. None
    stands for a timed-out or empty answer, so the prompt's default applies.
    Once the script is exhausted every prompt gets its default.
    """

    def __init__(self, answers: Iterable[str | bool | None] = ()) -> None:
        self.answers = list(answers)
        self.asked: list[str] = []

    def _next(self, message: str) -> str | bool | None:
        self.asked.append(message)
        if not self.answers:
            return None
        return self.answers.pop(0)

    def confirm(self, message: str, *, default: bool = False) -> bool:
        answer = self._next(message)
        if answer is None:
            return default
        if isinstance(answer, bool):
            return answer
        return answer.lower() in ("y", "yes")

    def choose(
        self,
        message: str,
        choices: Sequence[tuple[str, str]],
        *,
        default: str,
        timeout: float | None = None,
    ) -> str:
        answer = self._next(message)
        keys = [key for key, _ in choices]
        if answer is None or str(answer) not in keys:
            return default
        return str(answer)

    def text(
        self,
        message: str,
        *,
        default: str | None = None,
        timeout: float | None = None,
    ) -> str | None:
        answer = self._next(message)
        if answer is None or answer == "":
            return default
        return str(answer)
