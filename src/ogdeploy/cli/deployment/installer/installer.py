"""Installation orchestrator.

Installer wires the stages together: probe the environment, gate on
prerequisites, resolve the target through operator prompts, plan, then
reconcile each action and wait on its readiness condition before moving on.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from ogdeploy.infra.aws.client import AwsClient
from ogdeploy.infra.config import InstallerConfig
from ogdeploy.infra.constants import (
    DEFAULT_CONSTANTS,
    DeploymentConstants,
    DeploymentPaths,
    WaitPolicy,
)
from ogdeploy.infra.k8s.controller import ClusterQueryError
from ogdeploy.utils.console_like import ConsoleLike

from .errors import (
    ExternalActionFailure,
    InvalidInput,
    TimeoutExceeded,
    UnsuitableCluster,
)
from .gate import PrerequisiteGate
from .infra import InfraProvisioner
from .manifests import ingress_external_address
from .models import (
    AccessMode,
    ActionKind,
    ClusterContext,
    ClusterProvider,
    DeploymentPlan,
    DeploymentTarget,
    InfraSpec,
    IngressSpec,
    InstallType,
    IssuerSpec,
    Platform,
    ReconcileAction,
    ReconcileResult,
    WaitTarget,
)
from .planner import PlannerOptions, plan_deployment
from .probe import EnvironmentProbe
from .readiness import (
    CancellationToken,
    CheckResult,
    ReadinessWaiter,
    WorkloadSnapshot,
    cert_manager_check,
    external_address_check,
    issuer_check,
    workload_check,
)
from .reconciler import ResourceReconciler
from .reporting import AccessSummary, ReportingPresenter, build_access_summary, format_pod_table

if TYPE_CHECKING:
    from ogdeploy.cli.shared.prompts import InputProvider

    from ..shell_commands import ShellCommands
    from ..shell_commands.types import CommandResult


DIGITALOCEAN_CONTEXT_PREFIX = "do-"


# =============================================================================
# Requests and Outcomes
# =============================================================================


@dataclass(frozen=True)
class InstallRequest:
    """Options of the install command."""

    platform: Platform | None = None  # None: detect from the kubectl context
    domain: str | None = None
    email: str | None = None
    install_type: InstallType | None = None
    region: str | None = None
    dry_run: bool = False
    debug: bool = False


@dataclass(frozen=True)
class ConfigureRequest:
    """Options of the configure command."""

    domain: str | None
    email: str | None = None
    use_https: bool | None = None  # None: HTTPS when a certificate source exists
    dry_run: bool = False
    debug: bool = False


@dataclass
class InstallOutcome:
    """What an install or configure run did."""

    plan: DeploymentPlan
    results: list[ReconcileResult] = field(default_factory=list)
    summary: AccessSummary | None = None


# =============================================================================
# Validation
# =============================================================================


def validate_domain(domain: str, constants: DeploymentConstants = DEFAULT_CONSTANTS) -> str:
    """Check a domain name and return it lower-cased.

    Raises:
        InvalidInput: If the domain is not a fully-qualified name
    """
    domain = domain.strip().lower()
    if not constants.DOMAIN_PATTERN.match(domain):
        raise InvalidInput(
            f"Invalid domain '{domain}'",
            "Use a fully-qualified domain name such as opengovernance.example.com.",
        )
    return domain


def validate_email(email: str, constants: DeploymentConstants = DEFAULT_CONSTANTS) -> str:
    """Check an email address.

    Raises:
        InvalidInput: If the address is malformed
    """
    email = email.strip()
    if not constants.EMAIL_PATTERN.match(email):
        raise InvalidInput(f"Invalid email address '{email}'")
    return email


def resolve_platform(cluster: ClusterContext) -> Platform:
    """Pick the platform from the current kubectl context.

    EKS clusters mean AWS; DigitalOcean contexts are named do-<region>-<name>;
    any other reachable cluster is generic. Without a cluster, AWS is
    assumed since that is the only platform that can create one.
    """
    if cluster.current_provider is ClusterProvider.AWS:
        return Platform.AWS
    if cluster.current_provider is ClusterProvider.OTHER:
        if cluster.context_name.startswith(DIGITALOCEAN_CONTEXT_PREFIX):
            return Platform.DIGITALOCEAN
        return Platform.GENERIC
    return Platform.AWS


# =============================================================================
# Installer
# =============================================================================


class Installer:
    """Runs install, configure, status and uninstall against one namespace."""

    def __init__(
        self,
        commands: ShellCommands,
        inputs: InputProvider,
        config: InstallerConfig,
        *,
        console: ConsoleLike | None = None,
        constants: DeploymentConstants = DEFAULT_CONSTANTS,
        paths: DeploymentPaths | None = None,
        aws: AwsClient | None = None,
        token: CancellationToken | None = None,
        waiter: ReadinessWaiter | None = None,
        provisioner: InfraProvisioner | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the installer.

        Args:
            commands: Shell command executor
            inputs: Source of operator answers
            config: Installer settings
            console: Console for operator output (default: log only)
            constants: Deployment constants
            paths: State paths (default: the per-user state directory)
            aws: AWS client (default: created on demand for AWS)
            token: Cancellation token shared with the signal handlers
            waiter: Readiness waiter (default: real clock, token sleep)
            provisioner: Infrastructure provisioner
            clock: Monotonic clock for prompt deadlines
        """
        self.commands = commands
        self.inputs = inputs
        self.config = config
        self.constants = constants
        self.paths = paths or DeploymentPaths()
        self.token = token or CancellationToken()
        self.reporter = ReportingPresenter(console, constants)
        self.console = self.reporter.console
        self.probe = EnvironmentProbe(commands, aws, constants)
        self.gate = PrerequisiteGate(self.probe, constants)
        self.waiter = waiter or ReadinessWaiter(self.token)
        self.provisioner = provisioner or InfraProvisioner(commands, self.token, constants)
        self.reconciler = ResourceReconciler(
            commands, self.provisioner, inputs, constants, on_progress=self.reporter.progress
        )
        self._clock = clock

    @property
    def namespace(self) -> str:
        return self.config.namespace

    # =========================================================================
    # Install
    # =========================================================================

    def install(self, request: InstallRequest) -> InstallOutcome:
        """Install the platform.

        Args:
            request: Install options

        Returns:
            InstallOutcome; with dry_run only the plan is filled in

        Raises:
            DeploymentError: Any categorized failure
        """
        domain = validate_domain(request.domain, self.constants) if request.domain else None
        email = validate_email(request.email, self.constants) if request.email else None
        if email and not domain:
            raise InvalidInput("An email address requires a domain", "Pass the domain with -d.")

        if request.platform is not None:
            self.gate.check_tools(request.platform)
        cluster = self.probe.cluster_context(self.namespace)
        platform = request.platform or resolve_platform(cluster)
        if request.platform is None:
            self.console.info(f"Detected platform: {platform.value}")
            self.gate.check_tools(platform)

        if platform is Platform.AWS and self.probe.aws is None:
            self.probe.aws = AwsClient(region=request.region)

        self.gate.check_authentication(platform, cluster)
        self.gate.check_cluster(
            platform,
            cluster,
            release_name=self.config.release_name,
            min_ready_nodes=self.config.min_ready_nodes,
        )

        infra = self.infra_spec(request.region) if platform is Platform.AWS else None
        cluster, infra_exists, use_existing, clean = self._decide_infra(
            platform, cluster, infra, dry_run=request.dry_run
        )

        install_type, domain = self._resolve_access(platform, request.install_type, domain)
        target = self._resolve_target(platform, domain, email, request.region)

        options = PlannerOptions(
            config=self.config,
            install_type=install_type,
            infra=infra,
            infra_exists=infra_exists,
            use_existing_infra=use_existing,
            clean_infra=clean,
            debug=request.debug or self.config.debug,
        )
        plan = plan_deployment(target, cluster, options, self.constants)
        return self._execute(plan, dry_run=request.dry_run)

    def infra_spec(self, region: str | None = None) -> InfraSpec:
        """Build the infrastructure spec from the state paths."""
        return InfraSpec(
            repo_url=self.config.infra_repo_url,
            repo_dir=self.paths.infra_repo,
            workdir=self.paths.infra_dir,
            plan_file=self.paths.plan_file,
            region=region,
            kubeconfig_output=self.constants.INFRA_KUBECONFIG_OUTPUT,
        )

    def _decide_infra(
        self,
        platform: Platform,
        cluster: ClusterContext,
        infra: InfraSpec | None,
        *,
        dry_run: bool,
    ) -> tuple[ClusterContext, bool, bool, bool]:
        """Ask whether to reuse, clean or create infrastructure.

        Returns:
            (cluster, infra_exists, use_existing_infra, clean_infra)
        """
        if platform is not Platform.AWS or infra is None:
            return cluster, False, False, False

        if cluster.configured and self.inputs.confirm(
            f"A suitable EKS cluster ({cluster.context_name}) is configured. "
            "Use it and skip infrastructure setup?",
            default=True,
        ):
            return cluster, False, True, False

        existing = self.probe.infra_state(infra.workdir)
        if not existing:
            return cluster, False, False, False

        choice = self.inputs.choose(
            f"Existing infrastructure state found ({len(existing)} resources).",
            [
                ("u", "Use the existing infrastructure"),
                ("c", "Clean it up and create new infrastructure"),
            ],
            default="u",
        )
        if choice == "c":
            return cluster, True, False, True

        if not dry_run:
            self.provisioner.configure_kubectl(infra)
            cluster = self.probe.cluster_context(self.namespace)
            self.gate.check_cluster(
                platform,
                cluster,
                release_name=self.config.release_name,
                min_ready_nodes=self.config.min_ready_nodes,
            )
        return cluster, True, True, False

    def _resolve_access(
        self,
        platform: Platform,
        install_type: InstallType | None,
        domain: str | None,
    ) -> tuple[InstallType | None, str | None]:
        """Settle the install type and domain, prompting on AWS."""
        if install_type is InstallType.BASIC:
            if domain:
                self.console.warn(f"Ignoring domain {domain} for a basic installation")
            return InstallType.BASIC, None

        if platform is not Platform.AWS:
            return install_type, domain
        if domain:
            return InstallType.HTTPS, domain

        if install_type is None:
            choice = self.inputs.choose(
                "Select the installation type",
                [
                    (InstallType.HTTPS.value, "Install with a custom domain (HTTPS when a certificate exists)"),
                    (InstallType.BASIC.value, "Basic install, access through port-forwarding"),
                ],
                default=InstallType.BASIC.value,
                timeout=self.constants.INSTALL_TYPE_PROMPT_TIMEOUT,
            )
            if InstallType(choice) is InstallType.BASIC:
                return InstallType.BASIC, None

        domain = self._prompt_domain()
        if not domain:
            self.console.warn("No domain provided; falling back to a basic installation")
            return InstallType.BASIC, None
        return InstallType.HTTPS, domain

    def _prompt_domain(self) -> str | None:
        """Prompt for a domain until one is confirmed or the deadline passes."""
        attempt_timeout = self.constants.DOMAIN_PROMPT_ATTEMPT_TIMEOUT
        max_attempts = max(int(self.constants.DOMAIN_PROMPT_TIMEOUT // attempt_timeout), 1)
        deadline = self._clock() + self.constants.DOMAIN_PROMPT_TIMEOUT

        for _ in range(max_attempts):
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            entry = self.inputs.text(
                "Enter the domain for OpenGovernance", timeout=min(attempt_timeout, remaining)
            )
            if not entry:
                continue
            try:
                domain = validate_domain(entry, self.constants)
            except InvalidInput as e:
                self.console.warn(e.message)
                continue
            if self.inputs.confirm(f"Use '{domain}' as the domain?", default=True):
                return domain
        return None

    def _resolve_target(
        self,
        platform: Platform,
        domain: str | None,
        email: str | None,
        region: str | None,
    ) -> DeploymentTarget:
        certificate_arn = None
        if domain and platform is Platform.AWS:
            certificate_arn = self.probe.find_certificate(domain)
            if certificate_arn:
                self.console.ok(f"Found an issued ACM certificate for {domain}")
            elif email:
                self.console.info(f"No ACM certificate for {domain}; using Let's Encrypt")
            else:
                self.console.info(f"No ACM certificate for {domain}; serving plain HTTP")

        return DeploymentTarget(
            platform=platform,
            domain=domain,
            email=email if domain else None,
            use_https=bool(domain and (certificate_arn or email)),
            region=region,
            certificate_arn=certificate_arn,
        )

    # =========================================================================
    # Configure
    # =========================================================================

    def configure(self, request: ConfigureRequest) -> InstallOutcome:
        """Reconfigure an installed release with a custom domain.

        Raises:
            InvalidInput: Without a valid domain
            UnsuitableCluster: If the release is not installed
        """
        if not request.domain:
            raise InvalidInput("A domain is required to configure OpenGovernance", "Pass it with -d.")
        domain = validate_domain(request.domain, self.constants)
        email = validate_email(request.email, self.constants) if request.email else None
        if request.use_https is False:
            email = None

        self.gate.check_tools(Platform.GENERIC)
        cluster = self.probe.cluster_context(self.namespace)
        self.gate.check_authentication(Platform.GENERIC, cluster)
        if cluster.release(self.config.release_name) is None:
            raise UnsuitableCluster(
                f"OpenGovernance is not installed in namespace '{self.namespace}'",
                "Run 'ogdeploy install' first.",
            )

        platform = resolve_platform(cluster)
        certificate_arn = None
        if platform is Platform.AWS and request.use_https is not False:
            if self.probe.aws is None:
                self.probe.aws = AwsClient()
            certificate_arn = self.probe.find_certificate(domain)

        use_https = (
            bool(certificate_arn or email) if request.use_https is None else request.use_https
        )
        target = DeploymentTarget(
            platform=platform,
            domain=domain,
            email=email,
            use_https=use_https,
            certificate_arn=certificate_arn,
        )
        options = PlannerOptions(
            config=self.config,
            install_type=InstallType.HTTPS,
            reconfigure=True,
            debug=request.debug or self.config.debug,
        )
        plan = plan_deployment(target, cluster, options, self.constants)
        return self._execute(plan, dry_run=request.dry_run)

    # =========================================================================
    # Execution
    # =========================================================================

    def _execute(self, plan: DeploymentPlan, *, dry_run: bool) -> InstallOutcome:
        self.reporter.plan(plan)
        outcome = InstallOutcome(plan=plan)
        if dry_run:
            self.console.info("Dry run: no changes were made")
            return outcome

        address: str | None = None
        changed: dict[str, bool] = {}
        for action in plan.actions:
            self.token.raise_if_cancelled()
            if action.triggered_by is not None and not changed.get(action.triggered_by, True):
                result = ReconcileResult(
                    action, applied=False, message=f"skipped, {action.triggered_by} unchanged"
                )
                self.reporter.action_result(result)
                outcome.results.append(result)
                continue

            result = self.reconciler.reconcile(action)
            self.reporter.action_result(result)
            outcome.results.append(result)
            changed[action.idempotency_key] = result.applied

            if action.wait_for is None:
                continue
            observed = self._wait(action, plan)
            if action.wait_for is WaitTarget.EXTERNAL_ADDRESS and observed:
                address = str(observed)

        outcome.summary = build_access_summary(
            plan.access_mode,
            self.namespace,
            base_url=plan.target.base_url,
            external_address=address,
            domain=plan.target.domain,
            constants=self.constants,
        )
        self.reporter.access_summary(outcome.summary)
        return outcome

    def _ingress_spec(self, plan: DeploymentPlan) -> IngressSpec:
        for action in plan.actions_of(ActionKind.APPLY_INGRESS):
            return action.spec_as(IngressSpec)
        raise ValueError("The plan has no ingress to wait on")

    def _wait(self, action: ReconcileAction, plan: DeploymentPlan) -> Any:
        """Wait for an action's readiness condition.

        Returns:
            The last observed value (the external address for address waits)

        Raises:
            TimeoutExceeded: For workload, cert-manager and issuer timeouts
        """
        kubectl = self.commands.kubectl
        target = action.wait_for
        check: Callable[[], CheckResult]
        policy: WaitPolicy

        if target is WaitTarget.WORKLOAD:
            check = workload_check(kubectl, self.namespace, self.constants)
            policy, description = self.constants.WORKLOAD_WAIT, "OpenGovernance pods"
        elif target is WaitTarget.CERT_MANAGER:
            check = cert_manager_check(kubectl, self.constants.CERT_MANAGER_NAMESPACE)
            policy, description = self.constants.CERT_MANAGER_WAIT, "cert-manager"
        elif target is WaitTarget.EXTERNAL_ADDRESS:
            check = external_address_check(kubectl, self._ingress_spec(plan), self.constants)
            policy, description = self.constants.EXTERNAL_ADDRESS_WAIT, "an external address"
        else:
            spec = action.spec_as(IssuerSpec)
            check = issuer_check(kubectl, spec.name, spec.namespace)
            policy, description = self.constants.ISSUER_WAIT, f"issuer {spec.name}"

        outcome = self.waiter.wait(
            check,
            policy.interval,
            policy.timeout,
            description=description,
            on_poll=lambda polls, result: self.reporter.waiting(description, polls, result.summary),
        )
        if outcome.ready:
            self.console.ok(f"{description.capitalize()} ready")
            return outcome.last_observed

        if target is WaitTarget.EXTERNAL_ADDRESS:
            self.console.warn(
                f"No external address assigned within {policy.timeout:.0f}s; "
                "use port-forwarding to reach the platform"
            )
            return None

        if target is WaitTarget.WORKLOAD:
            message = f"OpenGovernance pods were not ready within {policy.timeout / 60:.0f} minutes"
            snapshot = outcome.last_observed
            if isinstance(snapshot, WorkloadSnapshot):
                pods = snapshot.pods
            else:
                try:
                    pods = kubectl.get_pods(self.namespace)
                except ClusterQueryError as e:
                    raise TimeoutExceeded(message, str(e)) from e
            self.reporter.pod_table(pods, title=f"Pods in {self.namespace}")
            raise TimeoutExceeded(message, format_pod_table(pods))

        raise TimeoutExceeded(f"Timed out after {policy.timeout:.0f}s waiting for {description}")

    # =========================================================================
    # Status
    # =========================================================================

    def status(self) -> AccessSummary | None:
        """Show the release, its pods, the ingress and how to access it.

        Returns:
            The access summary, or None when the release is not installed
        """
        cluster = self.probe.cluster_context(self.namespace)
        self.gate.check_authentication(Platform.GENERIC, cluster)

        release = cluster.release(self.config.release_name)
        if release is None:
            self.console.warn(
                f"OpenGovernance is not installed in namespace '{self.namespace}'"
            )
            return None

        self.reporter.status_overview(
            self.commands.kubectl,
            self.namespace,
            release.name,
            release.chart_version,
            release.status.value,
        )
        summary = self._summary_from_ingress()
        self.reporter.access_summary(summary)
        return summary

    def _summary_from_ingress(self) -> AccessSummary:
        kubectl = self.commands.kubectl
        live = kubectl.get_ingress(self.constants.INGRESS_NAME, self.namespace)
        if live is None:
            return build_access_summary(
                AccessMode.PORT_FORWARD, self.namespace, constants=self.constants
            )

        spec = live.get("spec", {})
        annotations = live.get("metadata", {}).get("annotations", {}) or {}
        rules = spec.get("rules") or [{}]
        host = rules[0].get("host")
        address = ingress_external_address(live) or kubectl.get_service_external_address(
            self.constants.INGRESS_NGINX_SERVICE, self.namespace
        )

        if not host:
            mode = AccessMode.EXTERNAL_ADDRESS
        elif spec.get("tls"):
            mode = AccessMode.ACME_HTTPS
        elif "alb.ingress.kubernetes.io/certificate-arn" in annotations:
            mode = AccessMode.ACM_HTTPS
        else:
            mode = AccessMode.HTTP_DOMAIN
        scheme = "https" if mode in (AccessMode.ACME_HTTPS, AccessMode.ACM_HTTPS) else "http"

        return build_access_summary(
            mode,
            self.namespace,
            base_url=f"{scheme}://{host}" if host else None,
            external_address=address or None,
            domain=host,
            constants=self.constants,
        )

    # =========================================================================
    # Uninstall
    # =========================================================================

    def uninstall(self, *, delete_namespace: bool = False, destroy_infra: bool = False) -> None:
        """Remove the releases, optionally the namespace and the infrastructure.

        Raises:
            ExternalActionFailure: If helm, kubectl or terraform fails
        """
        cluster = self.probe.cluster_context(self.namespace)
        if cluster.configured:
            for name in (self.config.release_name, self.constants.INGRESS_NGINX_RELEASE):
                if cluster.release(name) is None:
                    continue
                self._check(
                    self.commands.helm.uninstall(name, self.namespace),
                    f"Failed to uninstall '{name}'",
                )
                self.console.ok(f"Uninstalled {name}")

            kubectl = self.commands.kubectl
            if delete_namespace and kubectl.namespace_exists(self.namespace):
                self._check(
                    kubectl.delete_namespace(self.namespace),
                    f"Failed to delete namespace '{self.namespace}'",
                )
                self.console.ok(f"Deleted namespace {self.namespace}")
        else:
            self.console.warn("kubectl is not connected to a cluster; skipping Helm releases")

        if destroy_infra:
            infra = self.infra_spec()
            if not self.probe.infra_state(infra.workdir):
                self.console.info("No infrastructure state found; nothing to destroy")
                return
            self.provisioner.destroy(infra)
            self.console.ok("Infrastructure destroyed")

    @staticmethod
    def _check(result: CommandResult, message: str) -> CommandResult:
        if not result.success:
            logger.debug("{}: {}", message, result.diagnostic)
            raise ExternalActionFailure(message, result.diagnostic)
        return result
