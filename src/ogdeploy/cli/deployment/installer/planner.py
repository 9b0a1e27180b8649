"""Deployment planning.

plan_deployment() is a pure function: it turns the resolved target, the
cluster snapshot and the operator's choices into an ordered list of
reconcile actions. Nothing here talks to a cluster or a tool.

Access decision table, first match wins:

1. AWS only: reuse existing infrastructure when the operator elected to,
   otherwise (optionally destroy, then) create it
2. No domain and basic install -> port-forward, no ingress
3. Domain with an ISSUED ACM certificate -> HTTPS on the AWS load balancer
4. Domain and email -> Let's Encrypt HTTPS (cert-manager, issuer, TLS ingress)
5. Domain only -> plain HTTP on the domain
6. Anything else -> hostless ingress on the controller's external address
"""

from __future__ import annotations

from dataclasses import dataclass

from ogdeploy.infra.config import InstallerConfig
from ogdeploy.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants

from .manifests import build_app_values, build_cert_manager_values, build_ingress_nginx_values
from .models import (
    AccessMode,
    ActionKind,
    ChartSpec,
    ClusterContext,
    DeploymentPlan,
    DeploymentTarget,
    InfraSpec,
    IngressShape,
    IngressSpec,
    InstallType,
    IssuerSpec,
    Platform,
    ReconcileAction,
    RestartSpec,
    WaitTarget,
)


@dataclass(frozen=True)
class PlannerOptions:
    """Operator choices and settings that shape the plan."""

    config: InstallerConfig
    install_type: InstallType | None = None
    infra: InfraSpec | None = None
    infra_exists: bool = False
    use_existing_infra: bool = False
    clean_infra: bool = False
    reconfigure: bool = False
    debug: bool = False


def decide_access_mode(target: DeploymentTarget, install_type: InstallType | None) -> AccessMode:
    """Apply rules 2-6 of the access decision table."""
    if not target.domain:
        if install_type is InstallType.BASIC:
            return AccessMode.PORT_FORWARD
        return AccessMode.EXTERNAL_ADDRESS
    if target.certificate_arn:
        return AccessMode.ACM_HTTPS
    if target.email:
        return AccessMode.ACME_HTTPS
    return AccessMode.HTTP_DOMAIN


def _infra_actions(
    target: DeploymentTarget,
    cluster: ClusterContext,
    options: PlannerOptions,
) -> tuple[list[ReconcileAction], bool]:
    if target.platform is not Platform.AWS:
        return [], False

    reusable = options.infra_exists or cluster.configured
    if reusable and options.use_existing_infra:
        return [], True

    if options.infra is None:
        raise ValueError("An infrastructure spec is required to create AWS infrastructure")

    key = f"infra:{options.infra.workdir}"
    actions: list[ReconcileAction] = []
    if options.infra_exists and options.clean_infra:
        actions.append(
            ReconcileAction(
                kind=ActionKind.DESTROY_INFRA,
                spec=options.infra,
                idempotency_key=f"{key}:destroy",
                description="Destroy existing infrastructure",
            )
        )
    actions.append(
        ReconcileAction(
            kind=ActionKind.CREATE_INFRA,
            spec=options.infra,
            idempotency_key=f"{key}:create",
            description="Create EKS infrastructure",
        )
    )
    return actions, False


def _chart_action(
    spec: ChartSpec,
    description: str,
    wait_for: WaitTarget | None,
    *,
    kind: ActionKind = ActionKind.INSTALL_CHART,
) -> ReconcileAction:
    return ReconcileAction(
        kind=kind,
        spec=spec,
        idempotency_key=f"chart:{spec.namespace}/{spec.release_name}",
        wait_for=wait_for,
        description=description,
    )


def plan_deployment(
    target: DeploymentTarget,
    cluster: ClusterContext,
    options: PlannerOptions,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> DeploymentPlan:
    """Build the ordered deployment plan.

    Args:
        target: Resolved deployment target
        cluster: Snapshot of the configured cluster
        options: Operator choices
        constants: Deployment constants

    Returns:
        DeploymentPlan with the access mode and actions
    """
    config = options.config
    namespace = config.namespace
    access_mode = decide_access_mode(target, options.install_type)

    actions: list[ReconcileAction] = []
    reuse_infra = False
    if not options.reconfigure:
        infra_actions, reuse_infra = _infra_actions(target, cluster, options)
        actions.extend(infra_actions)

    app_chart = ChartSpec(
        release_name=config.release_name,
        chart_ref=config.chart_ref,
        namespace=namespace,
        repo_name=config.helm_repo_name,
        repo_url=config.helm_repo_url,
        values=build_app_values(target, debug=options.debug or options.reconfigure),
        version=config.chart_version,
        timeout=config.helm_timeout,
    )
    if not options.reconfigure:
        actions.append(_chart_action(app_chart, "Install OpenGovernance", WaitTarget.WORKLOAD))

    if access_mode is not AccessMode.PORT_FORWARD:
        actions.extend(_access_actions(target, access_mode, namespace, constants))

    if options.reconfigure:
        upgrade = _chart_action(
            app_chart,
            f"Upgrade OpenGovernance for {target.domain}",
            WaitTarget.WORKLOAD,
            kind=ActionKind.UPGRADE_CHART,
        )
        actions.append(upgrade)
        actions.append(
            ReconcileAction(
                kind=ActionKind.RESTART_PODS,
                spec=RestartSpec(namespace=namespace, selectors=constants.RESTART_SELECTORS),
                idempotency_key=f"restart:{namespace}",
                wait_for=WaitTarget.WORKLOAD,
                description="Restart proxy and identity pods",
                triggered_by=upgrade.idempotency_key,
            )
        )

    return DeploymentPlan(
        target=target,
        access_mode=access_mode,
        actions=tuple(actions),
        reuse_infra=reuse_infra,
    )


def _access_actions(
    target: DeploymentTarget,
    access_mode: AccessMode,
    namespace: str,
    constants: DeploymentConstants,
) -> list[ReconcileAction]:
    """Build the ingress controller, TLS and Ingress actions for rules 3-6."""
    use_alb = target.platform is Platform.AWS and access_mode is not AccessMode.ACME_HTTPS
    ingress_class = constants.ALB_INGRESS_CLASS if use_alb else constants.NGINX_INGRESS_CLASS
    acme = access_mode is AccessMode.ACME_HTTPS
    actions: list[ReconcileAction] = []

    if acme:
        actions.append(
            _chart_action(
                ChartSpec(
                    release_name=constants.CERT_MANAGER_RELEASE,
                    chart_ref=f"{constants.CERT_MANAGER_REPO_NAME}/{constants.CERT_MANAGER_RELEASE}",
                    namespace=constants.CERT_MANAGER_NAMESPACE,
                    repo_name=constants.CERT_MANAGER_REPO_NAME,
                    repo_url=constants.CERT_MANAGER_REPO_URL,
                    values=build_cert_manager_values(),
                    search_all_namespaces=True,
                ),
                "Install cert-manager",
                WaitTarget.CERT_MANAGER,
            )
        )

    if not use_alb:
        actions.append(
            _chart_action(
                ChartSpec(
                    release_name=constants.INGRESS_NGINX_RELEASE,
                    chart_ref=f"{constants.INGRESS_NGINX_REPO_NAME}/{constants.INGRESS_NGINX_RELEASE}",
                    namespace=namespace,
                    repo_name=constants.INGRESS_NGINX_REPO_NAME,
                    repo_url=constants.INGRESS_NGINX_REPO_URL,
                    values=build_ingress_nginx_values(),
                ),
                "Install NGINX ingress controller",
                WaitTarget.EXTERNAL_ADDRESS,
            )
        )

    if acme:
        actions.append(
            ReconcileAction(
                kind=ActionKind.APPLY_ISSUER,
                spec=IssuerSpec(
                    name=constants.ISSUER_NAME,
                    namespace=namespace,
                    email=target.email or "",
                    server=constants.ACME_DIRECTORY_URL,
                    private_key_secret=constants.ISSUER_PRIVATE_KEY_SECRET,
                    ingress_class=constants.NGINX_INGRESS_CLASS,
                ),
                idempotency_key=f"issuer:{namespace}/{constants.ISSUER_NAME}",
                wait_for=WaitTarget.ISSUER,
                description="Create Let's Encrypt issuer",
            )
        )

    shape = {
        AccessMode.ACM_HTTPS: IngressShape.HOST_TLS,
        AccessMode.ACME_HTTPS: IngressShape.HOST_TLS,
        AccessMode.HTTP_DOMAIN: IngressShape.HOST_ONLY,
    }.get(access_mode, IngressShape.HOSTLESS)

    ingress = IngressSpec(
        name=constants.INGRESS_NAME,
        namespace=namespace,
        shape=shape,
        ingress_class=ingress_class,
        service_name=constants.PROXY_SERVICE_NAME,
        service_port=constants.PROXY_SERVICE_PORT,
        host=target.domain if shape is not IngressShape.HOSTLESS else None,
        issuer=constants.ISSUER_NAME if acme else None,
        tls_secret=constants.ISSUER_NAME if acme else None,
        certificate_arn=target.certificate_arn if access_mode is AccessMode.ACM_HTTPS else None,
    )
    actions.append(
        ReconcileAction(
            kind=ActionKind.APPLY_INGRESS,
            spec=ingress,
            idempotency_key=f"ingress:{namespace}/{ingress.name}",
            # ALB publishes its address on the Ingress itself
            wait_for=WaitTarget.EXTERNAL_ADDRESS
            if use_alb and access_mode is AccessMode.EXTERNAL_ADDRESS
            else None,
            description=f"Apply {shape.value} ingress",
        )
    )
    return actions
