"""Kubernetes infrastructure abstraction layer.

Example:
    from ogdeploy.infra.k8s import Kr8sController, run_sync

    controller = Kr8sController()
    exists = run_sync(controller.namespace_exists("opengovernance"))
"""

from .controller import (
    ClusterQueryError,
    CommandResult,
    IssuerStatus,
    JobInfo,
    KubernetesController,
    NodeInfo,
    PodInfo,
    ServiceInfo,
)
from .kr8s_controller import Kr8sController
from .utils import run_sync

__all__ = [
    # Controller classes
    "KubernetesController",
    "Kr8sController",
    # Errors
    "ClusterQueryError",
    # Data classes
    "CommandResult",
    "PodInfo",
    "JobInfo",
    "NodeInfo",
    "ServiceInfo",
    "IssuerStatus",
    # Utilities
    "run_sync",
]
