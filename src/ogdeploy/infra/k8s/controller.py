"""Abstract Kubernetes controller interface.

Defines the contract for the Kubernetes operations the installer needs.
The kr8s-backed implementation lives in kr8s_controller.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

# =============================================================================
# Errors
# =============================================================================


class ClusterQueryError(Exception):
    """A list query against the cluster API failed."""


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CommandResult:
    """Result of a command execution."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0

    @property
    def diagnostic(self) -> str:
        """Get the tool's own error text, falling back to stdout."""
        return (self.stderr or self.stdout).strip()


@dataclass
class PodInfo:
    """Information about a Kubernetes pod."""

    name: str
    status: str
    restarts: int = 0
    node: str = ""


@dataclass
class JobInfo:
    """Information about a Kubernetes Job."""

    name: str
    status: str  # "Running", "Complete", "Failed", "Unknown"


@dataclass
class NodeInfo:
    """Information about a Kubernetes node."""

    name: str
    ready: bool


@dataclass
class ServiceInfo:
    """Information about a Kubernetes Service."""

    name: str
    type: str
    cluster_ip: str
    external_ip: str = ""
    ports: str = ""


@dataclass
class IssuerStatus:
    """Status of a cert-manager Issuer."""

    exists: bool
    ready: bool
    message: str = ""


# =============================================================================
# Abstract Controller
# =============================================================================


class KubernetesController(ABC):
    """Abstract base class for Kubernetes operations.

    All methods are async. Use `run_sync()` to call from synchronous code.

    Example:
        from ogdeploy.infra.k8s import Kr8sController, run_sync

        controller = Kr8sController()
        pods = run_sync(controller.get_pods("opengovernance"))
    """

    # =========================================================================
    # Cluster Context
    # =========================================================================

    @abstractmethod
    async def get_current_context(self) -> str:
        """Get the current kubectl context name.

        Returns:
            Context name, or "" if no context is configured
        """
        ...

    @abstractmethod
    async def get_cluster_server(self) -> str:
        """Get the API server URL of the current context.

        Returns:
            Server URL, or "" if no context is configured
        """
        ...

    @abstractmethod
    async def is_cluster_reachable(self) -> bool:
        """Check that the current context points at a reachable API server."""
        ...

    @abstractmethod
    async def unset_current_context(self) -> CommandResult:
        """Clear the current kubectl context.

        Returns:
            CommandResult with the kubectl outcome
        """
        ...

    @abstractmethod
    async def get_nodes(self) -> list[NodeInfo]:
        """Get all nodes with their Ready condition."""
        ...

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    @abstractmethod
    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        ...

    @abstractmethod
    async def delete_namespace(
        self,
        namespace: str,
        *,
        wait: bool = True,
        timeout: str = "120s",
    ) -> CommandResult:
        """Delete a Kubernetes namespace and all its resources.

        Warning: This is a destructive operation.

        Args:
            namespace: Namespace to delete
            wait: Whether to wait for deletion to complete
            timeout: Maximum time to wait

        Returns:
            CommandResult with deletion status
        """
        ...

    # =========================================================================
    # Resource Operations
    # =========================================================================

    @abstractmethod
    async def apply_manifest(self, manifest: dict[str, Any]) -> CommandResult:
        """Apply a single Kubernetes object (kubectl apply semantics).

        Args:
            manifest: Object definition

        Returns:
            CommandResult with apply status
        """
        ...

    @abstractmethod
    async def get_ingress(self, name: str, namespace: str) -> dict[str, Any] | None:
        """Get the live definition of an Ingress.

        Returns:
            Raw object dict, or None if not found
        """
        ...

    # =========================================================================
    # Pod / Job / Service Operations
    # =========================================================================

    @abstractmethod
    async def get_pods(
        self, namespace: str, label_selector: str | None = None
    ) -> list[PodInfo]:
        """Get pods in a namespace with their effective status.

        The status is the container waiting reason (e.g. CrashLoopBackOff)
        when one is present, otherwise the pod phase.

        Raises:
            ClusterQueryError: If the pods cannot be listed
        """
        ...

    @abstractmethod
    async def delete_pods_by_label(
        self, namespace: str, label_selector: str
    ) -> CommandResult:
        """Delete pods matching a label selector."""
        ...

    @abstractmethod
    async def get_jobs(self, namespace: str) -> list[JobInfo]:
        """Get all jobs in a namespace with their status.

        Raises:
            ClusterQueryError: If the jobs cannot be listed
        """
        ...

    @abstractmethod
    async def get_services(self, namespace: str) -> list[ServiceInfo]:
        """Get all services in a namespace."""
        ...

    # =========================================================================
    # Cert-Manager Operations
    # =========================================================================

    @abstractmethod
    async def get_issuer_status(self, name: str, namespace: str) -> IssuerStatus:
        """Get the status of a namespaced cert-manager Issuer.

        Args:
            name: Issuer name
            namespace: Namespace of the Issuer

        Returns:
            IssuerStatus with exists, ready, and message
        """
        ...
