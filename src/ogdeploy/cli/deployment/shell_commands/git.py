"""Git command abstractions.

Used to fetch the infrastructure module repository.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class GitCommands:
    """Git-related shell commands."""

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize Git commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    def clone(self, url: str, destination: Path, *, replace: bool = True) -> CommandResult:
        """Clone a repository.

        Args:
            url: Repository URL
            destination: Target directory
            replace: Delete an existing destination first so the clone is fresh

        Returns:
            CommandResult with clone status
        """
        if destination.exists() and replace:
            logger.debug("Removing existing checkout at {}", destination)
            shutil.rmtree(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        return self._runner.run(["git", "clone", url, str(destination)])
