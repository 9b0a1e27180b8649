"""Tests for deployment planning and the access decision table."""

from __future__ import annotations

from pathlib import Path

import pytest

from ogdeploy.cli.deployment.installer.models import (
    AccessMode,
    ActionKind,
    ChartSpec,
    ClusterContext,
    ClusterProvider,
    DeploymentTarget,
    InfraSpec,
    IngressShape,
    IngressSpec,
    InstallType,
    IssuerSpec,
    Platform,
    WaitTarget,
)
from ogdeploy.cli.deployment.installer.planner import (
    PlannerOptions,
    decide_access_mode,
    plan_deployment,
)
from ogdeploy.infra.config import InstallerConfig
from ogdeploy.infra.constants import DEFAULT_CONSTANTS

ARN = "arn:aws:acm:us-east-1:123456789012:certificate/abcd"


@pytest.fixture
def infra_spec(tmp_path: Path) -> InfraSpec:
    repo = tmp_path / "deploy-terraform"
    return InfraSpec(
        repo_url="https://example.com/infra.git",
        repo_dir=repo,
        workdir=repo / "aws" / "eks",
        plan_file=repo / "aws" / "eks" / "plan.tfplan",
    )


def _chart_names(plan) -> list[str]:
    return [
        a.spec.release_name
        for a in plan.actions
        if a.kind in (ActionKind.INSTALL_CHART, ActionKind.UPGRADE_CHART)
    ]


def _ingress(plan) -> IngressSpec:
    [action] = plan.actions_of(ActionKind.APPLY_INGRESS)
    assert isinstance(action.spec, IngressSpec)
    return action.spec


class TestDecideAccessMode:
    """Tests for rules 2-6 of the decision table."""

    def test_basic_without_domain_is_port_forward(self) -> None:
        target = DeploymentTarget(platform=Platform.AWS)
        assert decide_access_mode(target, InstallType.BASIC) is AccessMode.PORT_FORWARD

    def test_no_domain_without_type_is_hostless(self) -> None:
        target = DeploymentTarget(platform=Platform.GENERIC)
        assert decide_access_mode(target, None) is AccessMode.EXTERNAL_ADDRESS

    def test_certificate_wins_over_email(self) -> None:
        target = DeploymentTarget(
            platform=Platform.AWS,
            domain="og.example.com",
            email="ops@example.com",
            use_https=True,
            certificate_arn=ARN,
        )
        assert decide_access_mode(target, InstallType.HTTPS) is AccessMode.ACM_HTTPS

    def test_email_means_lets_encrypt(self) -> None:
        target = DeploymentTarget(
            platform=Platform.GENERIC,
            domain="og.example.com",
            email="ops@example.com",
            use_https=True,
        )
        assert decide_access_mode(target, None) is AccessMode.ACME_HTTPS

    def test_domain_only_is_plain_http(self) -> None:
        target = DeploymentTarget(platform=Platform.GENERIC, domain="og.example.com")
        assert decide_access_mode(target, None) is AccessMode.HTTP_DOMAIN


class TestGenericPlans:
    """Plans for existing non-AWS clusters."""

    def test_hostless_install(
        self, config: InstallerConfig, generic_cluster: ClusterContext
    ) -> None:
        """No domain or email: app chart, NGINX controller, hostless ingress."""
        target = DeploymentTarget(platform=Platform.GENERIC)

        plan = plan_deployment(target, generic_cluster, PlannerOptions(config=config))

        assert plan.kinds == [
            ActionKind.INSTALL_CHART,
            ActionKind.INSTALL_CHART,
            ActionKind.APPLY_INGRESS,
        ]
        assert _chart_names(plan) == ["opengovernance", "ingress-nginx"]
        app, nginx, ingress = plan.actions
        assert app.spec.values == {}
        assert app.wait_for is WaitTarget.WORKLOAD
        assert nginx.wait_for is WaitTarget.EXTERNAL_ADDRESS
        assert ingress.spec.shape is IngressShape.HOSTLESS
        assert ingress.spec.host is None
        assert ingress.spec.ingress_class == "nginx"
        assert plan.access_mode is AccessMode.EXTERNAL_ADDRESS

    def test_lets_encrypt_install(
        self, config: InstallerConfig, generic_cluster: ClusterContext
    ) -> None:
        """Domain and email without a certificate: issuer plus host+TLS ingress."""
        target = DeploymentTarget(
            platform=Platform.GENERIC,
            domain="og.example.com",
            email="ops@example.com",
            use_https=True,
        )

        plan = plan_deployment(target, generic_cluster, PlannerOptions(config=config))

        assert plan.kinds == [
            ActionKind.INSTALL_CHART,
            ActionKind.INSTALL_CHART,
            ActionKind.INSTALL_CHART,
            ActionKind.APPLY_ISSUER,
            ActionKind.APPLY_INGRESS,
        ]
        assert _chart_names(plan) == ["opengovernance", "cert-manager", "ingress-nginx"]

        [issuer_action] = plan.actions_of(ActionKind.APPLY_ISSUER)
        issuer = issuer_action.spec
        assert isinstance(issuer, IssuerSpec)
        assert issuer.email == "ops@example.com"
        assert issuer.server == DEFAULT_CONSTANTS.ACME_DIRECTORY_URL
        assert issuer_action.wait_for is WaitTarget.ISSUER

        ingress = _ingress(plan)
        assert ingress.shape is IngressShape.HOST_TLS
        assert ingress.host == "og.example.com"
        assert ingress.issuer == "letsencrypt-nginx"
        assert ingress.certificate_arn is None

    def test_cert_manager_is_searched_in_all_namespaces(
        self, config: InstallerConfig, generic_cluster: ClusterContext
    ) -> None:
        target = DeploymentTarget(
            platform=Platform.GENERIC,
            domain="og.example.com",
            email="ops@example.com",
            use_https=True,
        )

        plan = plan_deployment(target, generic_cluster, PlannerOptions(config=config))

        cert_manager = plan.actions[1].spec
        assert isinstance(cert_manager, ChartSpec)
        assert cert_manager.namespace == "cert-manager"
        assert cert_manager.search_all_namespaces is True
        assert plan.actions[1].wait_for is WaitTarget.CERT_MANAGER

    def test_domain_values_are_passed_to_the_chart(
        self, config: InstallerConfig, generic_cluster: ClusterContext
    ) -> None:
        target = DeploymentTarget(platform=Platform.GENERIC, domain="og.example.com")

        plan = plan_deployment(target, generic_cluster, PlannerOptions(config=config))

        values = plan.actions[0].spec.values
        assert values["global"]["domain"] == "og.example.com"
        assert values["dex"]["config"]["issuer"] == "http://og.example.com/dex"
        assert _ingress(plan).shape is IngressShape.HOST_ONLY

    @pytest.mark.parametrize(
        "target",
        [
            DeploymentTarget(platform=Platform.GENERIC),
            DeploymentTarget(platform=Platform.DIGITALOCEAN, email=None),
            DeploymentTarget(platform=Platform.AWS),
        ],
    )
    @pytest.mark.parametrize("install_type", [None, InstallType.BASIC, InstallType.HTTPS])
    def test_no_domain_never_plans_tls(
        self,
        config: InstallerConfig,
        generic_cluster: ClusterContext,
        infra_spec: InfraSpec,
        target: DeploymentTarget,
        install_type: InstallType | None,
    ) -> None:
        options = PlannerOptions(config=config, install_type=install_type, infra=infra_spec)

        plan = plan_deployment(target, generic_cluster, options)

        assert ActionKind.APPLY_ISSUER not in plan.kinds
        for action in plan.actions_of(ActionKind.APPLY_INGRESS):
            assert action.spec.shape is IngressShape.HOSTLESS


class TestAwsPlans:
    """Plans for the AWS platform."""

    def test_certificate_uses_alb_without_issuer(
        self, config: InstallerConfig, infra_spec: InfraSpec
    ) -> None:
        """An ISSUED ACM certificate is used on the ALB; no issuer is created."""
        target = DeploymentTarget(
            platform=Platform.AWS,
            domain="og.example.com",
            use_https=True,
            certificate_arn=ARN,
        )
        cluster = ClusterContext(current_provider=ClusterProvider.AWS, ready_node_count=3)
        options = PlannerOptions(
            config=config,
            install_type=InstallType.HTTPS,
            infra=infra_spec,
            use_existing_infra=True,
        )

        plan = plan_deployment(target, cluster, options)

        assert plan.access_mode is AccessMode.ACM_HTTPS
        assert plan.reuse_infra is True
        assert ActionKind.APPLY_ISSUER not in plan.kinds
        assert _chart_names(plan) == ["opengovernance"]
        ingress = _ingress(plan)
        assert ingress.ingress_class == "alb"
        assert ingress.certificate_arn == ARN
        assert ingress.shape is IngressShape.HOST_TLS

    def test_new_cluster_is_created_first(
        self, config: InstallerConfig, infra_spec: InfraSpec
    ) -> None:
        target = DeploymentTarget(platform=Platform.AWS)
        options = PlannerOptions(config=config, install_type=InstallType.BASIC, infra=infra_spec)

        plan = plan_deployment(target, ClusterContext(), options)

        assert plan.kinds == [ActionKind.CREATE_INFRA, ActionKind.INSTALL_CHART]
        assert plan.access_mode is AccessMode.PORT_FORWARD

    def test_clean_existing_infra_destroys_before_create(
        self, config: InstallerConfig, infra_spec: InfraSpec
    ) -> None:
        target = DeploymentTarget(platform=Platform.AWS)
        options = PlannerOptions(
            config=config,
            install_type=InstallType.BASIC,
            infra=infra_spec,
            infra_exists=True,
            clean_infra=True,
        )

        plan = plan_deployment(target, ClusterContext(), options)

        assert plan.kinds[:2] == [ActionKind.DESTROY_INFRA, ActionKind.CREATE_INFRA]

    def test_hostless_alb_waits_on_ingress(
        self, config: InstallerConfig, infra_spec: InfraSpec
    ) -> None:
        target = DeploymentTarget(platform=Platform.AWS)
        cluster = ClusterContext(current_provider=ClusterProvider.AWS, ready_node_count=3)
        options = PlannerOptions(config=config, infra=infra_spec, use_existing_infra=True)

        plan = plan_deployment(target, cluster, options)

        [ingress_action] = plan.actions_of(ActionKind.APPLY_INGRESS)
        assert ingress_action.spec.ingress_class == "alb"
        assert ingress_action.wait_for is WaitTarget.EXTERNAL_ADDRESS

    def test_lets_encrypt_on_aws_uses_nginx(
        self, config: InstallerConfig, infra_spec: InfraSpec
    ) -> None:
        target = DeploymentTarget(
            platform=Platform.AWS,
            domain="og.example.com",
            email="ops@example.com",
            use_https=True,
        )
        cluster = ClusterContext(current_provider=ClusterProvider.AWS, ready_node_count=3)
        options = PlannerOptions(config=config, infra=infra_spec, use_existing_infra=True)

        plan = plan_deployment(target, cluster, options)

        assert "ingress-nginx" in _chart_names(plan)
        assert _ingress(plan).ingress_class == "nginx"

    def test_missing_infra_spec_is_rejected(self, config: InstallerConfig) -> None:
        target = DeploymentTarget(platform=Platform.AWS)

        with pytest.raises(ValueError):
            plan_deployment(target, ClusterContext(), PlannerOptions(config=config))


class TestReconfigurePlan:
    """Plans built by the configure command."""

    def test_reconfigure_upgrades_and_restarts(
        self, config: InstallerConfig, installed_cluster: ClusterContext
    ) -> None:
        target = DeploymentTarget(
            platform=Platform.GENERIC,
            domain="og.example.com",
            email="ops@example.com",
            use_https=True,
        )
        options = PlannerOptions(
            config=config, install_type=InstallType.HTTPS, reconfigure=True
        )

        plan = plan_deployment(target, installed_cluster, options)

        assert plan.kinds == [
            ActionKind.INSTALL_CHART,
            ActionKind.INSTALL_CHART,
            ActionKind.APPLY_ISSUER,
            ActionKind.APPLY_INGRESS,
            ActionKind.UPGRADE_CHART,
            ActionKind.RESTART_PODS,
        ]
        upgrade = plan.actions_of(ActionKind.UPGRADE_CHART)[0].spec
        assert upgrade.values["global"]["domain"] == "og.example.com"
        assert upgrade.values["dex"]["config"]["issuer"] == "https://og.example.com/dex"
        restart = plan.actions_of(ActionKind.RESTART_PODS)[0].spec
        assert restart.selectors == DEFAULT_CONSTANTS.RESTART_SELECTORS
        assert plan.actions_of(ActionKind.RESTART_PODS)[0].triggered_by == (
            plan.actions_of(ActionKind.UPGRADE_CHART)[0].idempotency_key
        )
