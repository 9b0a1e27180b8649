"""Deployment constants and configuration.

This module centralizes all magic strings, paths, and policy values
used throughout the installation process.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from ogdeploy.utils.paths import get_state_dir


@dataclass(frozen=True)
class WaitPolicy:
    """Polling interval and deadline for one readiness check, in seconds."""

    interval: float
    timeout: float


@dataclass(frozen=True)
class DeploymentConstants:
    """Constants for the OpenGovernance installation.

    This class provides a centralized location for all deployment-related
    constants, making them easy to find, update, and test.

    All attributes are class-level and immutable.
    """

    # Application release
    DEFAULT_NAMESPACE: str = "opengovernance"
    HELM_RELEASE_NAME: str = "opengovernance"
    HELM_REPO_NAME: str = "opengovernance"
    HELM_REPO_URL: str = "https://opengovern.github.io/charts"
    HELM_CHART_NAME: str = "opengovernance"
    HELM_TIMEOUT: str = "10m"

    # Ingress controller
    INGRESS_NGINX_RELEASE: str = "ingress-nginx"
    INGRESS_NGINX_REPO_NAME: str = "ingress-nginx"
    INGRESS_NGINX_REPO_URL: str = "https://kubernetes.github.io/ingress-nginx"
    INGRESS_NGINX_SERVICE: str = "ingress-nginx-controller"
    NGINX_INGRESS_CLASS: str = "nginx"
    ALB_INGRESS_CLASS: str = "alb"

    # cert-manager
    CERT_MANAGER_RELEASE: str = "cert-manager"
    CERT_MANAGER_NAMESPACE: str = "cert-manager"
    CERT_MANAGER_REPO_NAME: str = "jetstack"
    CERT_MANAGER_REPO_URL: str = "https://charts.jetstack.io"
    ISSUER_NAME: str = "letsencrypt-nginx"
    ISSUER_PRIVATE_KEY_SECRET: str = "letsencrypt-nginx-private-key"
    ACME_DIRECTORY_URL: str = "https://acme-v02.api.letsencrypt.org/directory"

    # Application resources
    INGRESS_NAME: str = "opengovernance-ingress"
    PROXY_SERVICE_NAME: str = "nginx-proxy"
    PROXY_SERVICE_PORT: int = 80
    PORT_FORWARD_LOCAL_PORT: int = 8080
    MIGRATOR_JOB_PREFIX: str = "migrator-job"
    RESTART_SELECTORS: tuple[str, ...] = ("app=nginx-proxy", "app.kubernetes.io/name=dex")
    HEALTHY_POD_PHASES: frozenset[str] = frozenset({"Running", "Succeeded", "Completed"})

    # Default sign-in, printed for the operator. A documented default, not a secret.
    DEFAULT_USERNAME: str = "admin@opengovernance.io"
    DEFAULT_PASSWORD: str = "password"

    # Cluster policy
    MIN_READY_NODES: int = 3

    # Infrastructure (AWS)
    INFRA_REPO_URL: str = "https://github.com/opengovern/deploy-opengovernance.git"
    INFRA_SUBDIR: str = "aws/eks"
    INFRA_BINARIES: tuple[str, ...] = ("tofu", "terraform")
    INFRA_KUBECONFIG_OUTPUT: str = "configure_kubectl"
    INFRA_PROGRESS_INTERVAL: float = 10.0

    # Required tools per platform (infra binary checked separately)
    GENERIC_TOOLS: tuple[str, ...] = ("kubectl", "helm")
    AWS_TOOLS: tuple[str, ...] = ("git", "kubectl", "aws", "helm")

    # Prompts
    INSTALL_TYPE_PROMPT_TIMEOUT: float = 30.0
    DOMAIN_PROMPT_TIMEOUT: float = 90.0
    DOMAIN_PROMPT_ATTEMPT_TIMEOUT: float = 15.0

    # Readiness policies
    WORKLOAD_WAIT: WaitPolicy = WaitPolicy(interval=30.0, timeout=720.0)
    EXTERNAL_ADDRESS_WAIT: WaitPolicy = WaitPolicy(interval=15.0, timeout=360.0)
    ISSUER_WAIT: WaitPolicy = WaitPolicy(interval=10.0, timeout=360.0)
    CERT_MANAGER_WAIT: WaitPolicy = WaitPolicy(interval=5.0, timeout=120.0)

    # Input validation
    DOMAIN_PATTERN: re.Pattern[str] = re.compile(
        r"^(([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)\.)+([A-Za-z]{2,})$"
    )
    EMAIL_PATTERN: re.Pattern[str] = re.compile(
        r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$"
    )

    @property
    def helm_chart_ref(self) -> str:
        """Get the repo-qualified chart reference (e.g. opengovernance/opengovernance)."""
        return f"{self.HELM_REPO_NAME}/{self.HELM_CHART_NAME}"


class DeploymentPaths:
    """Path resolver for installer state, logs and cloned infrastructure.

    All paths are derived from the per-user state directory.
    """

    def __init__(self, state_dir: Path | None = None) -> None:
        """Initialize deployment paths.

        Args:
            state_dir: State directory (default: ~/.opengovernance)
        """
        self._state_dir = state_dir or get_state_dir()
        self._constants = DEFAULT_CONSTANTS

        self.infra_repo = self._state_dir / "deploy-terraform"
        self.infra_dir = self.infra_repo / self._constants.INFRA_SUBDIR

    @property
    def state_dir(self) -> Path:
        """Get path to the state directory."""
        return self._state_dir

    @property
    def log_file(self) -> Path:
        """Get path to the operator log."""
        return self._state_dir / "install.log"

    @property
    def debug_log_file(self) -> Path:
        """Get path to the verbose tool-output log."""
        return self._state_dir / "helm_debug.log"

    @property
    def config_file(self) -> Path:
        """Get path to the optional installer config.yaml."""
        return self._state_dir / "config.yaml"

    @property
    def plan_file(self) -> Path:
        """Get path to the saved infra plan."""
        return self.infra_dir / "plan.tfplan"


DEFAULT_CONSTANTS = DeploymentConstants()
