"""Data model for the installation workflow.

Everything here is immutable: probes build a ClusterContext once, the
planner turns it into a DeploymentPlan, and the reconciler consumes the
plan's actions without modifying them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from .errors import InvalidInput

S = TypeVar("S")

# =============================================================================
# Enumerations
# =============================================================================


class Platform(Enum):
    """Where the platform is being installed."""

    AWS = "aws"
    DIGITALOCEAN = "digitalocean"
    GENERIC = "generic"


class InstallType(Enum):
    """Operator-selected installation type."""

    HTTPS = "1"  # Custom domain, TLS where a certificate source exists
    BASIC = "2"  # No ingress, access through port-forwarding


class ClusterProvider(Enum):
    """Provider behind the current kubectl context."""

    AWS = "aws"
    OTHER = "other"
    NONE = "none"


class ReleaseStatus(Enum):
    """Condensed Helm release status."""

    DEPLOYED = "deployed"
    PENDING = "pending"
    FAILED = "failed"
    ABSENT = "absent"

    @classmethod
    def from_helm(cls, status: str) -> ReleaseStatus:
        """Map a raw Helm status string onto the condensed set."""
        status = status.lower()
        if status == "deployed":
            return cls.DEPLOYED
        if status.startswith("pending") or status == "uninstalling":
            return cls.PENDING
        if not status:
            return cls.ABSENT
        # failed, superseded, uninstalled, unknown
        return cls.FAILED


class ActionKind(Enum):
    """Kinds of reconcile actions, in the order they usually appear."""

    DESTROY_INFRA = "DestroyInfra"
    CREATE_INFRA = "CreateInfra"
    INSTALL_CHART = "InstallChart"
    UPGRADE_CHART = "UpgradeChart"
    APPLY_ISSUER = "ApplyIssuer"
    APPLY_INGRESS = "ApplyIngress"
    RESTART_PODS = "RestartPods"


class WaitTarget(Enum):
    """Readiness condition polled after an action."""

    WORKLOAD = "workload"
    CERT_MANAGER = "cert-manager"
    EXTERNAL_ADDRESS = "external-address"
    ISSUER = "issuer"


class AccessMode(Enum):
    """How the operator reaches the installed platform."""

    PORT_FORWARD = "port-forward"
    ACM_HTTPS = "acm-https"
    ACME_HTTPS = "acme-https"
    HTTP_DOMAIN = "http-domain"
    EXTERNAL_ADDRESS = "external-address"


class IngressShape(Enum):
    """Routing shape of the application Ingress."""

    HOSTLESS = "hostless"
    HOST_ONLY = "host-only"
    HOST_TLS = "host-tls"


# =============================================================================
# Target and Cluster
# =============================================================================


@dataclass(frozen=True)
class DeploymentTarget:
    """What the operator asked for, after prompts and certificate lookup.

    Raises:
        InvalidInput: If use_https is set without a domain or a certificate
            source (ACM certificate ARN or ACME email)
    """

    platform: Platform
    domain: str | None = None
    email: str | None = None
    use_https: bool = False
    region: str | None = None
    certificate_arn: str | None = None

    def __post_init__(self) -> None:
        if self.use_https and not self.domain:
            raise InvalidInput("HTTPS requires a domain")
        if self.use_https and not (self.certificate_arn or self.email):
            raise InvalidInput(
                "HTTPS requires a certificate source",
                "Provide an email for Let's Encrypt or issue an ACM certificate for the domain.",
            )

    @property
    def protocol(self) -> str:
        """Get the URL scheme the platform is served on."""
        return "https" if self.use_https else "http"

    @property
    def base_url(self) -> str | None:
        """Get the public URL, or None without a domain."""
        return f"{self.protocol}://{self.domain}" if self.domain else None


@dataclass(frozen=True)
class ReleaseRef:
    """A Helm release observed in the cluster."""

    name: str
    namespace: str
    chart_version: str = ""
    status: ReleaseStatus = ReleaseStatus.ABSENT


@dataclass(frozen=True)
class ClusterContext:
    """Snapshot of the cluster behind the current kubectl context."""

    current_provider: ClusterProvider = ClusterProvider.NONE
    ready_node_count: int = 0
    active_namespace_releases: frozenset[ReleaseRef] = frozenset()
    context_name: str = ""

    @property
    def configured(self) -> bool:
        """Whether a reachable cluster is configured."""
        return self.current_provider is not ClusterProvider.NONE

    def release(self, name: str) -> ReleaseRef | None:
        """Get a release in the target namespace by name."""
        for ref in self.active_namespace_releases:
            if ref.name == name:
                return ref
        return None


# =============================================================================
# Action Specs
# =============================================================================


@dataclass(frozen=True)
class ChartSpec:
    """A Helm release the installer owns."""

    release_name: str
    chart_ref: str
    namespace: str
    repo_name: str
    repo_url: str
    values: dict[str, Any] = field(default_factory=dict)
    version: str | None = None
    timeout: str = "10m"
    # cert-manager counts as installed wherever it lives
    search_all_namespaces: bool = False


@dataclass(frozen=True)
class IngressSpec:
    """The application Ingress."""

    name: str
    namespace: str
    shape: IngressShape
    ingress_class: str
    service_name: str
    service_port: int
    host: str | None = None
    issuer: str | None = None
    tls_secret: str | None = None
    certificate_arn: str | None = None
    always_apply: bool = False


@dataclass(frozen=True)
class IssuerSpec:
    """A namespaced ACME Issuer with an HTTP-01 solver."""

    name: str
    namespace: str
    email: str
    server: str
    private_key_secret: str
    ingress_class: str


@dataclass(frozen=True)
class RestartSpec:
    """Pods to recreate so they pick up new configuration."""

    namespace: str
    selectors: tuple[str, ...]


@dataclass(frozen=True)
class InfraSpec:
    """The Terraform/OpenTofu module that creates the EKS cluster."""

    repo_url: str
    repo_dir: Path
    workdir: Path
    plan_file: Path
    region: str | None = None
    kubeconfig_output: str = "configure_kubectl"

    @property
    def variables(self) -> dict[str, str]:
        """Get the -var assignments passed to plan and destroy."""
        return {"region": self.region} if self.region else {}


ActionSpec = ChartSpec | IngressSpec | IssuerSpec | RestartSpec | InfraSpec


@dataclass(frozen=True)
class ReconcileAction:
    """One idempotent step of a deployment plan."""

    kind: ActionKind
    spec: ActionSpec
    idempotency_key: str
    wait_for: WaitTarget | None = None
    description: str = ""
    # idempotency key of an earlier action; skipped when that action changed nothing
    triggered_by: str | None = None

    def spec_as(self, kind: type[S]) -> S:
        """Get the spec as `kind`.

        Raises:
            TypeError: If the action carries a spec of another type
        """
        if not isinstance(self.spec, kind):
            raise TypeError(
                f"{self.kind.value} action carries {type(self.spec).__name__}, not {kind.__name__}"
            )
        return self.spec


# =============================================================================
# Plan and Results
# =============================================================================


@dataclass(frozen=True)
class DeploymentPlan:
    """Ordered actions plus the access mode they produce."""

    target: DeploymentTarget
    access_mode: AccessMode
    actions: tuple[ReconcileAction, ...]
    reuse_infra: bool = False

    @property
    def kinds(self) -> list[ActionKind]:
        """Get the action kinds in order."""
        return [a.kind for a in self.actions]

    def actions_of(self, kind: ActionKind) -> list[ReconcileAction]:
        """Get all actions of one kind."""
        return [a for a in self.actions if a.kind is kind]


@dataclass(frozen=True)
class ProgressSample:
    """Infrastructure apply progress at one point in time."""

    completed: int
    total: int
    poll_interval: float
    taken_at: datetime

    @property
    def percent(self) -> int:
        """Get completion as an integer percentage (100 when nothing is planned)."""
        if self.total <= 0:
            return 100
        return self.completed * 100 // self.total


@dataclass
class ReconcileResult:
    """Outcome of reconciling one action."""

    action: ReconcileAction
    applied: bool
    message: str = ""
    error: str | None = None
