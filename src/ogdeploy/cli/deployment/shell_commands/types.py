"""Data types for shell command results.

Note: CommandResult is re-exported from ogdeploy.infra.k8s.controller so the
Helm, Terraform and Kubernetes layers share one result type.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from ogdeploy.infra.k8s.controller import CommandResult

__all__ = [
    "CommandFailedError",
    "CommandResult",
    "HelmRelease",
]

# "opengovernance-0.1.2" -> ("opengovernance", "0.1.2")
_CHART_VERSION_RE = re.compile(r"^(?P<name>.+?)-(?P<version>v?\d[\w.+-]*)$")


@dataclass
class HelmRelease:
    """Information about a Helm release.

    Attributes:
        name: Release name
        namespace: Kubernetes namespace
        status: Release status (deployed, failed, pending-install, ...)
        revision: Release revision number
        chart: Chart name and version as reported by helm (e.g. "opengovernance-0.1.2")
        app_version: Application version of the chart
    """

    name: str
    namespace: str
    status: str
    revision: str
    chart: str = ""
    app_version: str = ""

    @property
    def chart_version(self) -> str:
        """Get the chart version parsed from the chart field."""
        match = _CHART_VERSION_RE.match(self.chart)
        return match.group("version") if match else ""


class CommandFailedError(Exception):
    """A read-only query exited nonzero, so its answer is unknown."""

    def __init__(self, cmd: Sequence[str], result: CommandResult) -> None:
        self.cmd = list(cmd)
        self.result = result
        super().__init__(f"'{' '.join(self.cmd[:2])}' failed: {result.diagnostic}")
