"""Installer error taxonomy.

Every failure the installer reports is a DeploymentError subclass carrying a
short category shown to the operator as "[Category] message". `details`
holds the external tool's own output when there is one.
"""

from __future__ import annotations


class DeploymentError(Exception):
    """Raised when an installation operation fails."""

    category = "Error"

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ToolMissing(DeploymentError):
    """A required command-line tool is not on PATH."""

    category = "Missing tool"

    def __init__(self, tool: str, details: str | None = None):
        self.tool = tool
        super().__init__(f"Required tool '{tool}' is not installed or not on PATH", details)


class AuthenticationFailure(DeploymentError):
    """Cloud or cluster credentials are missing or rejected."""

    category = "Authentication"


class UnsuitableCluster(DeploymentError):
    """The configured cluster cannot host the installation."""

    category = "Unsuitable cluster"


class InvalidInput(DeploymentError):
    """An option or prompted value failed validation."""

    category = "Invalid input"


class ExternalActionFailure(DeploymentError):
    """A mutating call to helm, kubectl, terraform or git failed."""

    category = "External action failed"


class TimeoutExceeded(DeploymentError):
    """A readiness wait ran out of time."""

    category = "Timeout"


class UserAborted(DeploymentError):
    """The operator declined a confirmation or interrupted the run."""

    category = "Aborted"
