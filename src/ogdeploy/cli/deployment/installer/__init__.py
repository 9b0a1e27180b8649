"""Installer package for OpenGovernance deployments.

Each concern of the installation workflow lives in its own module:

- probe: read-only environment queries
- gate: prerequisite checks (tools, authentication, cluster suitability)
- planner: pure planning of ordered reconcile actions
- reconciler: idempotent application of each action
- infra: Terraform / OpenTofu provisioning of the EKS cluster
- readiness: cancellable polling and the readiness checks
- reporting: progress, plan and access summary output
- manifests: Helm values, Ingress and Issuer builders

The Installer class in installer.py orchestrates these components.

Usage:
    from ogdeploy.cli.deployment.installer import Installer, InstallRequest

    installer = Installer(commands, inputs, config, console=console)
    installer.install(InstallRequest(domain="og.example.com"))
"""

from .errors import (
    AuthenticationFailure,
    DeploymentError,
    ExternalActionFailure,
    InvalidInput,
    TimeoutExceeded,
    ToolMissing,
    UnsuitableCluster,
    UserAborted,
)
from .installer import ConfigureRequest, Installer, InstallOutcome, InstallRequest
from .models import AccessMode, DeploymentPlan, DeploymentTarget, InstallType, Platform
from .planner import PlannerOptions, plan_deployment
from .readiness import CancellationToken, ReadinessWaiter

__all__ = [
    "Installer",
    "InstallRequest",
    "ConfigureRequest",
    "InstallOutcome",
    "plan_deployment",
    "PlannerOptions",
    "CancellationToken",
    "ReadinessWaiter",
    "AccessMode",
    "DeploymentPlan",
    "DeploymentTarget",
    "InstallType",
    "Platform",
    # Errors
    "DeploymentError",
    "ToolMissing",
    "AuthenticationFailure",
    "UnsuitableCluster",
    "InvalidInput",
    "ExternalActionFailure",
    "TimeoutExceeded",
    "UserAborted",
]
