"""Kubectl command abstractions.

This is a sync wrapper around the async KubernetesController; every method
delegates to the controller using run_sync().
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ogdeploy.infra.k8s import run_sync
from ogdeploy.infra.k8s.controller import (
    CommandResult,
    IssuerStatus,
    JobInfo,
    KubernetesController,
    NodeInfo,
    PodInfo,
    ServiceInfo,
)
from ogdeploy.infra.k8s.helpers import get_k8s_controller

if TYPE_CHECKING:
    from .runner import CommandRunner


class KubectlCommands:
    """Kubernetes cluster operations for synchronous callers.

    Provides operations for:
    - Cluster context detection and reset
    - Node and namespace queries
    - Applying objects and reading Ingresses and Issuers
    - Pod, Job and Service queries and pod restarts
    """

    def __init__(
        self,
        runner: CommandRunner,
        controller: KubernetesController | None = None,
    ) -> None:
        """Initialize kubectl commands.

        Args:
            runner: Command runner (used for port-forward hints and shell snippets)
            controller: Kubernetes controller (default: shared kr8s controller)
        """
        self._runner = runner
        self._controller = controller or get_k8s_controller()

    # =========================================================================
    # Cluster Context
    # =========================================================================

    def get_current_context(self) -> str:
        """Get the current kubectl context name ("" when unset)."""
        return run_sync(self._controller.get_current_context())

    def get_cluster_server(self) -> str:
        """Get the API server URL of the current context."""
        return run_sync(self._controller.get_cluster_server())

    def is_cluster_reachable(self) -> bool:
        """Check that the current context's API server responds."""
        return run_sync(self._controller.is_cluster_reachable())

    def unset_current_context(self) -> CommandResult:
        """Clear the current kubectl context."""
        return run_sync(self._controller.unset_current_context())

    def get_nodes(self) -> list[NodeInfo]:
        """Get all nodes with their Ready condition."""
        return run_sync(self._controller.get_nodes())

    # =========================================================================
    # Namespace Management
    # =========================================================================

    def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        return run_sync(self._controller.namespace_exists(namespace))

    def delete_namespace(
        self,
        namespace: str,
        *,
        wait: bool = True,
        timeout: str = "300s",
    ) -> CommandResult:
        """Delete a namespace and everything in it."""
        return run_sync(
            self._controller.delete_namespace(namespace, wait=wait, timeout=timeout)
        )

    # =========================================================================
    # Resources
    # =========================================================================

    def apply_manifest(self, manifest: dict[str, Any]) -> CommandResult:
        """Apply an object definition."""
        return run_sync(self._controller.apply_manifest(manifest))

    def get_ingress(self, name: str, namespace: str) -> dict[str, Any] | None:
        """Get the live definition of an Ingress, or None."""
        return run_sync(self._controller.get_ingress(name, namespace))

    def get_issuer_status(self, name: str, namespace: str) -> IssuerStatus:
        """Get the status of a cert-manager Issuer."""
        return run_sync(self._controller.get_issuer_status(name, namespace))

    # =========================================================================
    # Pods, Jobs, Services
    # =========================================================================

    def get_pods(self, namespace: str, label_selector: str | None = None) -> list[PodInfo]:
        """Get pods in a namespace with their effective status."""
        return run_sync(self._controller.get_pods(namespace, label_selector))

    def delete_pods_by_label(self, namespace: str, label_selector: str) -> CommandResult:
        """Delete pods matching a label selector."""
        return run_sync(self._controller.delete_pods_by_label(namespace, label_selector))

    def get_jobs(self, namespace: str) -> list[JobInfo]:
        """Get all jobs in a namespace."""
        return run_sync(self._controller.get_jobs(namespace))

    def get_services(self, namespace: str) -> list[ServiceInfo]:
        """Get all services in a namespace."""
        return run_sync(self._controller.get_services(namespace))

    def get_service_external_address(self, name: str, namespace: str) -> str:
        """Get the load balancer IP or hostname of a Service ("" if unassigned)."""
        for service in self.get_services(namespace):
            if service.name == name:
                return service.external_ip
        return ""

    def configure_from_script(self, script: str) -> CommandResult:
        """Run a kubeconfig update command emitted by another tool.

        Example: the `aws eks update-kubeconfig ...` line printed by the
        infrastructure module's configure_kubectl output.
        """
        return self._runner.run_shell(script)

    @staticmethod
    def port_forward_command(namespace: str, service: str, local_port: int, remote_port: int) -> str:
        """Build the port-forward command line shown to the operator."""
        return (
            f"kubectl port-forward -n {namespace} service/{service} "
            f"{local_port}:{remote_port}"
        )
