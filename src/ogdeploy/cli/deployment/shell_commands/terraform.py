"""Terraform / OpenTofu command abstractions.

Both binaries share the same CLI, so one class drives either. The binary is
resolved lazily from PATH, preferring OpenTofu.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import BackgroundProcess, CommandRunner


class TerraformCommands:
    """Infrastructure-as-code shell commands.

    Provides operations for:
    - Working directory init, plan and plan inspection
    - Background apply, destroy
    - State and output queries
    """

    def __init__(
        self,
        runner: CommandRunner,
        binaries: Sequence[str] = ("tofu", "terraform"),
    ) -> None:
        """Initialize infrastructure commands.

        Args:
            runner: Command runner for executing shell commands
            binaries: Candidate executables in order of preference
        """
        self._runner = runner
        self._binaries = tuple(binaries)
        self._binary: str | None = None

    @property
    def binary(self) -> str | None:
        """Get the first available binary, or None if none is installed."""
        if self._binary is None:
            self._binary = next(
                (b for b in self._binaries if self._runner.is_available(b)), None
            )
        return self._binary

    def _cmd(self, *args: str) -> list[str]:
        # Falls through to the runner's "command not found" result when missing
        return [self.binary or self._binaries[-1], *args]

    @staticmethod
    def _var_flags(variables: dict[str, str] | None) -> list[str]:
        flags: list[str] = []
        for key, value in (variables or {}).items():
            flags.extend(["-var", f"{key}={value}"])
        return flags

    # =========================================================================
    # Planning
    # =========================================================================

    def init(self, workdir: Path) -> CommandResult:
        """Initialize a working directory."""
        return self._runner.run(self._cmd("init", "-input=false"), cwd=workdir)

    def plan(
        self,
        workdir: Path,
        plan_file: Path,
        variables: dict[str, str] | None = None,
    ) -> CommandResult:
        """Write an execution plan to plan_file."""
        return self._runner.run(
            self._cmd(
                "plan", "-input=false", *self._var_flags(variables), f"-out={plan_file}"
            ),
            cwd=workdir,
        )

    def show_plan(self, workdir: Path, plan_file: Path) -> dict[str, Any]:
        """Get the JSON representation of a saved plan.

        Returns:
            Parsed plan, or {} if it cannot be read
        """
        result = self._runner.run(self._cmd("show", "-json", str(plan_file)), cwd=workdir)
        if not result.success or not result.stdout:
            return {}
        try:
            plan = json.loads(result.stdout)
        except json.JSONDecodeError:
            return {}
        return plan if isinstance(plan, dict) else {}

    def planned_addresses(self, workdir: Path, plan_file: Path) -> list[str]:
        """Get the resource addresses a saved plan will touch."""
        plan = self.show_plan(workdir, plan_file)
        return [
            change["address"]
            for change in plan.get("resource_changes", [])
            if change.get("address")
        ]

    # =========================================================================
    # Apply / Destroy
    # =========================================================================

    def start_apply(self, workdir: Path, plan_file: Path) -> BackgroundProcess:
        """Apply a saved plan in the background."""
        return self._runner.start(
            self._cmd("apply", "-input=false", "-auto-approve", str(plan_file)),
            cwd=workdir,
        )

    def destroy(self, workdir: Path, variables: dict[str, str] | None = None) -> CommandResult:
        """Destroy all managed infrastructure without prompting."""
        return self._runner.run(
            self._cmd("destroy", "-input=false", *self._var_flags(variables), "-auto-approve"),
            cwd=workdir,
        )

    # =========================================================================
    # State Queries
    # =========================================================================

    def state_list(self, workdir: Path) -> list[str]:
        """List resource addresses in the current state ([] if none or unreadable)."""
        if not workdir.is_dir():
            return []
        result = self._runner.run(self._cmd("state", "list"), cwd=workdir)
        if not result.success:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def output_raw(self, workdir: Path, name: str) -> CommandResult:
        """Read a single output value as raw text."""
        return self._runner.run(self._cmd("output", "-raw", name), cwd=workdir)
