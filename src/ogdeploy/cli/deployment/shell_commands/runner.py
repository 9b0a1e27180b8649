"""Command runner for executing shell commands.

This module provides the base command execution functionality used by
all specialized command modules. Every command line and the output it
produced is written to the debug log.
"""

from __future__ import annotations

import shutil
import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import IO

from loguru import logger

from .types import CommandResult


def _log_output(result: CommandResult) -> None:
    if result.stdout:
        logger.debug(result.stdout.rstrip())
    if result.stderr:
        logger.debug(result.stderr.rstrip())
    logger.debug("exit code {}", result.returncode)


class BackgroundProcess:
    """Handle for a command started with CommandRunner.start().

    Output is spooled to a temporary file so the child never blocks on a
    full pipe; it is collected when the process is waited on.
    """

    def __init__(self, process: subprocess.Popen[str], output: IO[str]) -> None:
        self._process = process
        self._output = output

    @property
    def running(self) -> bool:
        """Whether the process has not exited yet."""
        return self._process.poll() is None

    def terminate(self, grace_period: float = 10.0) -> None:
        """Terminate the process, killing it if it ignores SIGTERM."""
        if not self.running:
            return
        logger.debug("Terminating background process {}", self._process.pid)
        self._process.terminate()
        try:
            self._process.wait(timeout=grace_period)
        except subprocess.TimeoutExpired:
            self._process.kill()
            self._process.wait()

    def wait(self) -> CommandResult:
        """Wait for the process to exit and collect its output."""
        returncode = self._process.wait()
        self._output.seek(0)
        stdout = self._output.read()
        self._output.close()
        result = CommandResult(
            success=returncode == 0,
            stdout=stdout,
            stderr="",  # stderr is merged into stdout
            returncode=returncode,
        )
        _log_output(result)
        return result


class CommandRunner:
    """Low-level command executor with consistent result handling.

    All specialized command modules (Helm, Terraform, Git) use this runner
    for actual command execution.
    """

    def __init__(self, working_dir: Path | None = None) -> None:
        """Initialize the command runner.

        Args:
            working_dir: Default working directory for commands
                         (defaults to the current directory)
        """
        self.working_dir = working_dir

    @staticmethod
    def is_available(tool: str) -> bool:
        """Check whether an executable is on PATH."""
        return shutil.which(tool) is not None

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        input_data: str | None = None,
        capture_output: bool = True,
    ) -> CommandResult:
        """Execute a command and return a structured result.

        A missing executable is reported as a failed result with return
        code 127 rather than an exception.

        Args:
            cmd: Command and arguments as a sequence
            cwd: Working directory (defaults to working_dir)
            input_data: Text passed on stdin
            capture_output: Whether to capture stdout/stderr

        Returns:
            CommandResult with success status, output, and return code
        """
        logger.debug("$ {}", " ".join(cmd))
        try:
            completed = subprocess.run(
                list(cmd),
                cwd=cwd or self.working_dir,
                input=input_data,
                capture_output=capture_output,
                text=True,
            )
        except FileNotFoundError:
            result = CommandResult(
                success=False,
                stderr=f"{cmd[0]}: command not found",
                returncode=127,
            )
        else:
            result = CommandResult(
                success=completed.returncode == 0,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
                returncode=completed.returncode,
            )
        _log_output(result)
        return result

    def run_shell(self, script: str, *, cwd: Path | None = None) -> CommandResult:
        """Execute a shell snippet with sh -c.

        Used for commands that tools emit as text for the operator to run,
        such as the kubeconfig update printed by the infrastructure module.
        """
        return self.run(["sh", "-c", script], cwd=cwd)

    def start(self, cmd: Sequence[str], *, cwd: Path | None = None) -> BackgroundProcess:
        """Start a command in the background.

        Args:
            cmd: Command and arguments as a sequence
            cwd: Working directory (defaults to working_dir)

        Returns:
            BackgroundProcess handle

        Raises:
            FileNotFoundError: If the executable does not exist
        """
        logger.debug("$ {} &", " ".join(cmd))
        output = tempfile.TemporaryFile(mode="w+", encoding="utf-8")
        try:
            process = subprocess.Popen(
                list(cmd),
                cwd=cwd or self.working_dir,
                stdout=output,
                stderr=subprocess.STDOUT,  # Merge stderr into stdout
                stdin=subprocess.DEVNULL,
                text=True,
            )
        except OSError:
            output.close()
            raise
        return BackgroundProcess(process, output)
