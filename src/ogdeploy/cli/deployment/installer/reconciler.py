"""Idempotent application of reconcile actions.

Each handler reads the live state first and only mutates when it differs
from the desired state, so re-running a satisfied action is a no-op.
Mutating failures raise ExternalActionFailure with the tool's own output;
read-only lookups treat missing resources as absent.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from ogdeploy.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants
from ogdeploy.infra.k8s.controller import ClusterQueryError

from ..shell_commands.types import CommandFailedError
from .errors import ExternalActionFailure, UserAborted
from .manifests import build_ingress, build_issuer, ingress_matches
from .models import (
    ActionKind,
    ChartSpec,
    InfraSpec,
    IngressSpec,
    IssuerSpec,
    ProgressSample,
    ReconcileAction,
    ReconcileResult,
    ReleaseStatus,
    RestartSpec,
)

if TYPE_CHECKING:
    from ogdeploy.cli.shared.prompts import InputProvider

    from ..shell_commands import ShellCommands
    from ..shell_commands.types import CommandResult, HelmRelease
    from .infra import InfraProvisioner


def _version_key(version: str) -> tuple[int, ...]:
    """Numeric sort key for a chart version ("v1.2.10-rc1" -> (1, 2, 10))."""
    core = re.split(r"[-+]", version.lstrip("v"), maxsplit=1)[0]
    return tuple(int(part) for part in re.findall(r"\d+", core))


def is_newer_version(candidate: str, installed: str) -> bool:
    """Check whether `candidate` is a newer chart version than `installed`."""
    if not candidate or not installed:
        return False
    return _version_key(candidate) > _version_key(installed)


class ResourceReconciler:
    """Applies reconcile actions against the cluster and the infrastructure."""

    def __init__(
        self,
        commands: ShellCommands,
        provisioner: InfraProvisioner,
        inputs: InputProvider,
        constants: DeploymentConstants = DEFAULT_CONSTANTS,
        *,
        on_progress: Callable[[ProgressSample], None] | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            commands: Shell command executor
            provisioner: Infrastructure provisioner for infra actions
            inputs: Source of operator confirmations
            constants: Deployment constants
            on_progress: Receives infrastructure apply progress samples
        """
        self.commands = commands
        self.provisioner = provisioner
        self.inputs = inputs
        self.constants = constants
        self.on_progress = on_progress
        self._handlers: dict[ActionKind, Callable[[ReconcileAction], ReconcileResult]] = {
            ActionKind.CREATE_INFRA: self._create_infra,
            ActionKind.DESTROY_INFRA: self._destroy_infra,
            ActionKind.INSTALL_CHART: self._install_chart,
            ActionKind.UPGRADE_CHART: self._upgrade_chart,
            ActionKind.APPLY_INGRESS: self._apply_ingress,
            ActionKind.APPLY_ISSUER: self._apply_issuer,
            ActionKind.RESTART_PODS: self._restart_pods,
        }

    def reconcile(self, action: ReconcileAction) -> ReconcileResult:
        """Bring one action's resource to its desired state.

        Args:
            action: Action to reconcile

        Returns:
            ReconcileResult; `applied` is False when nothing had to change

        Raises:
            ExternalActionFailure: If a mutating call fails
            UserAborted: If the operator declines a required confirmation
        """
        logger.debug("Reconciling {} ({})", action.kind.value, action.idempotency_key)
        result = self._handlers[action.kind](action)
        logger.info(
            "{}: {}", action.description or action.kind.value, result.message or "done"
        )
        return result

    # =========================================================================
    # Infrastructure
    # =========================================================================

    def _create_infra(self, action: ReconcileAction) -> ReconcileResult:
        spec = action.spec_as(InfraSpec)
        sample = self.provisioner.create(spec, self.on_progress)
        return ReconcileResult(
            action, applied=True, message=f"{sample.completed} of {sample.total} resources created"
        )

    def _destroy_infra(self, action: ReconcileAction) -> ReconcileResult:
        spec = action.spec_as(InfraSpec)
        existing = self.provisioner.existing_resources(spec)
        if not existing:
            return ReconcileResult(action, applied=False, message="no existing resources")

        if not self.inputs.confirm(
            f"Destroy {len(existing)} existing infrastructure resource(s)? This cannot be undone.",
            default=False,
        ):
            raise UserAborted("Infrastructure clean-up was not confirmed")

        self.provisioner.destroy(spec)
        return ReconcileResult(action, applied=True, message=f"{len(existing)} resources destroyed")

    # =========================================================================
    # Helm Charts
    # =========================================================================

    def _ensure_repo(self, spec: ChartSpec) -> None:
        helm = self.commands.helm
        if spec.repo_name not in helm.repo_names():
            self._check(
                helm.repo_add(spec.repo_name, spec.repo_url),
                f"Failed to add Helm repository '{spec.repo_name}'",
            )
        self._check(
            helm.repo_update(spec.repo_name),
            f"Failed to update Helm repository '{spec.repo_name}'",
        )

    def _find_release(self, spec: ChartSpec) -> HelmRelease | None:
        namespace = None if spec.search_all_namespaces else spec.namespace
        try:
            return self.commands.helm.get_release(spec.release_name, namespace)
        except CommandFailedError as e:
            raise ExternalActionFailure(
                f"Failed to look up release '{spec.release_name}'", e.result.diagnostic
            ) from e

    def _install(self, spec: ChartSpec) -> None:
        self._check(
            self.commands.helm.install(
                spec.release_name,
                spec.chart_ref,
                spec.namespace,
                values=spec.values or None,
                version=spec.version,
                timeout=spec.timeout,
            ),
            f"Failed to install '{spec.release_name}'",
        )

    def _upgrade(self, spec: ChartSpec, *, reuse_values: bool = False) -> None:
        self._check(
            self.commands.helm.upgrade(
                spec.release_name,
                spec.chart_ref,
                spec.namespace,
                values=spec.values or None,
                version=spec.version,
                timeout=spec.timeout,
                reuse_values=reuse_values,
            ),
            f"Failed to upgrade '{spec.release_name}'",
        )

    def _install_chart(self, action: ReconcileAction) -> ReconcileResult:
        spec = action.spec_as(ChartSpec)
        self._ensure_repo(spec)

        release = self._find_release(spec)
        status = ReleaseStatus.from_helm(release.status) if release else ReleaseStatus.ABSENT

        if release is None or status is ReleaseStatus.ABSENT:
            self._install(spec)
            return ReconcileResult(action, applied=True, message="installed")

        if status is ReleaseStatus.DEPLOYED:
            latest = self.commands.helm.search_latest_version(spec.chart_ref)
            installed = release.chart_version
            if (
                spec.version is None
                and latest
                and is_newer_version(latest, installed)
                and self.inputs.confirm(
                    f"'{spec.release_name}' {installed} is installed; {latest} is available. Upgrade?",
                    default=True,
                )
            ):
                self._upgrade(spec, reuse_values=True)
                return ReconcileResult(action, applied=True, message=f"upgraded to {latest}")
            return ReconcileResult(
                action, applied=False, message=f"already installed in '{release.namespace}'"
            )

        # pending or failed
        if not self.inputs.confirm(
            f"Release '{spec.release_name}' is {release.status}. Uninstall and reinstall it?",
            default=False,
        ):
            raise UserAborted(
                f"Release '{spec.release_name}' is {release.status} and was left in place",
                f"Inspect it with: helm status {spec.release_name} -n {release.namespace}",
            )
        self._check(
            self.commands.helm.uninstall(spec.release_name, release.namespace),
            f"Failed to uninstall '{spec.release_name}'",
        )
        self._install(spec)
        return ReconcileResult(action, applied=True, message="reinstalled")

    def _upgrade_chart(self, action: ReconcileAction) -> ReconcileResult:
        spec = action.spec_as(ChartSpec)
        self._ensure_repo(spec)

        if self._find_release(spec) is None:
            self._install(spec)
            return ReconcileResult(action, applied=True, message="installed")

        live_values = self.commands.helm.get_values(spec.release_name, spec.namespace)
        if live_values == spec.values:
            return ReconcileResult(action, applied=False, message="values unchanged")

        self._upgrade(spec)
        return ReconcileResult(action, applied=True, message="upgraded")

    # =========================================================================
    # Kubernetes Objects
    # =========================================================================

    def _apply_ingress(self, action: ReconcileAction) -> ReconcileResult:
        spec = action.spec_as(IngressSpec)
        kubectl = self.commands.kubectl

        desired = build_ingress(spec, alb_class=self.constants.ALB_INGRESS_CLASS)
        if not spec.always_apply and ingress_matches(desired, kubectl.get_ingress(spec.name, spec.namespace)):
            return ReconcileResult(action, applied=False, message="ingress unchanged")

        self._check(kubectl.apply_manifest(desired), f"Failed to apply ingress '{spec.name}'")
        return ReconcileResult(action, applied=True, message="ingress applied")

    def _apply_issuer(self, action: ReconcileAction) -> ReconcileResult:
        spec = action.spec_as(IssuerSpec)
        kubectl = self.commands.kubectl

        if kubectl.get_issuer_status(spec.name, spec.namespace).exists:
            return ReconcileResult(action, applied=False, message="issuer already exists")

        self._check(kubectl.apply_manifest(build_issuer(spec)), f"Failed to create issuer '{spec.name}'")
        return ReconcileResult(action, applied=True, message="issuer created")

    def _restart_pods(self, action: ReconcileAction) -> ReconcileResult:
        spec = action.spec_as(RestartSpec)
        kubectl = self.commands.kubectl

        restarted: list[str] = []
        for selector in spec.selectors:
            try:
                pods = kubectl.get_pods(spec.namespace, selector)
            except ClusterQueryError as e:
                raise ExternalActionFailure(f"Failed to restart pods matching '{selector}'", str(e)) from e
            if not pods:
                logger.debug("No pods match {}; skipping restart", selector)
                continue
            self._check(
                kubectl.delete_pods_by_label(spec.namespace, selector),
                f"Failed to restart pods matching '{selector}'",
            )
            restarted.append(selector)

        if not restarted:
            return ReconcileResult(action, applied=False, message="no pods to restart")
        return ReconcileResult(action, applied=True, message=f"restarted {', '.join(restarted)}")

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _check(result: CommandResult, message: str) -> CommandResult:
        if not result.success:
            raise ExternalActionFailure(message, result.diagnostic)
        return result
