"""Tests for readiness polling and the readiness checks."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ogdeploy.cli.deployment.installer.errors import UserAborted
from ogdeploy.cli.deployment.installer.models import IngressShape, IngressSpec
from ogdeploy.cli.deployment.installer.readiness import (
    CancellationToken,
    CheckResult,
    ReadinessWaiter,
    WaitStatus,
    cert_manager_check,
    external_address_check,
    issuer_check,
    workload_check,
)
from ogdeploy.infra.k8s.controller import ClusterQueryError, IssuerStatus, JobInfo, PodInfo


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return False


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def waiter(clock: FakeClock) -> ReadinessWaiter:
    return ReadinessWaiter(clock=clock, sleep=clock.sleep)


class TestReadinessWaiter:
    """Tests for ReadinessWaiter.wait()."""

    def test_ready_on_first_poll(self, waiter: ReadinessWaiter, clock: FakeClock) -> None:
        outcome = waiter.wait(lambda: CheckResult(True, "x"), interval=30, timeout=720)

        assert outcome.status is WaitStatus.READY
        assert outcome.last_observed == "x"
        assert outcome.polls == 1
        assert clock.sleeps == []

    def test_ready_after_some_polls(self, waiter: ReadinessWaiter, clock: FakeClock) -> None:
        answers = iter([False, False, True])

        outcome = waiter.wait(lambda: CheckResult(next(answers)), interval=30, timeout=720)

        assert outcome.ready
        assert outcome.polls == 3
        assert outcome.elapsed == 60

    def test_times_out_exactly_at_deadline(
        self, waiter: ReadinessWaiter, clock: FakeClock
    ) -> None:
        """A never-ready check polls every interval and stops at the deadline."""
        outcome = waiter.wait(lambda: CheckResult(False), interval=30, timeout=720)

        assert outcome.status is WaitStatus.TIMED_OUT
        assert outcome.elapsed == 720
        assert outcome.polls == 25
        assert sum(clock.sleeps) == 720

    def test_last_sleep_is_shortened_to_the_deadline(
        self, waiter: ReadinessWaiter, clock: FakeClock
    ) -> None:
        outcome = waiter.wait(lambda: CheckResult(False), interval=15, timeout=40)

        assert outcome.elapsed == 40
        assert clock.sleeps == [15, 15, 10]

    def test_on_poll_receives_unsatisfied_results(self, waiter: ReadinessWaiter) -> None:
        seen: list[tuple[int, str]] = []
        answers = iter([CheckResult(False, summary="0/2"), CheckResult(True, summary="2/2")])

        waiter.wait(
            lambda: next(answers),
            interval=5,
            timeout=60,
            on_poll=lambda polls, result: seen.append((polls, result.summary)),
        )

        assert seen == [(1, "0/2")]

    def test_cancelled_token_aborts(self, clock: FakeClock) -> None:
        token = CancellationToken()
        calls = 0

        def _check() -> CheckResult:
            nonlocal calls
            calls += 1
            token.cancel("SIGTERM")
            return CheckResult(False)

        waiter = ReadinessWaiter(token, clock=clock, sleep=clock.sleep)

        with pytest.raises(UserAborted, match="SIGTERM"):
            waiter.wait(_check, interval=30, timeout=720)
        assert calls == 1


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_sleep_returns_immediately_when_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel("SIGINT")

        assert token.sleep(60) is True
        assert token.cancelled
        assert token.reason == "SIGINT"

    def test_sleep_without_cancel_returns_false(self) -> None:
        assert CancellationToken().sleep(0) is False


class TestWorkloadCheck:
    """Tests for the application workload check."""

    @pytest.fixture
    def kubectl(self) -> MagicMock:
        kubectl = MagicMock()
        kubectl.get_jobs.return_value = []
        return kubectl

    def test_healthy_pods_are_ready(self, kubectl: MagicMock, healthy_pods: list[PodInfo]) -> None:
        kubectl.get_pods.return_value = healthy_pods

        result = workload_check(kubectl, "opengovernance")()

        assert result.satisfied
        assert result.summary == "3/3 pods healthy"

    def test_crash_looping_pod_is_not_ready(
        self, kubectl: MagicMock, healthy_pods: list[PodInfo]
    ) -> None:
        kubectl.get_pods.return_value = [
            *healthy_pods,
            PodInfo(name="core-0", status="CrashLoopBackOff", restarts=7),
        ]

        result = workload_check(kubectl, "opengovernance")()

        assert not result.satisfied
        assert [p.name for p in result.observed.unhealthy_pods] == ["core-0"]

    def test_pending_migrator_job_is_not_ready(
        self, kubectl: MagicMock, healthy_pods: list[PodInfo]
    ) -> None:
        kubectl.get_pods.return_value = healthy_pods
        kubectl.get_jobs.return_value = [
            JobInfo(name="migrator-job-1", status="Running"),
            JobInfo(name="other-job", status="Failed"),
        ]

        result = workload_check(kubectl, "opengovernance")()

        assert not result.satisfied
        assert "1 migrator job(s) pending" in result.summary

    def test_completed_migrator_job_is_ready(
        self, kubectl: MagicMock, healthy_pods: list[PodInfo]
    ) -> None:
        kubectl.get_pods.return_value = healthy_pods
        kubectl.get_jobs.return_value = [JobInfo(name="migrator-job-1", status="Complete")]

        assert workload_check(kubectl, "opengovernance")().satisfied

    def test_failed_pod_listing_is_not_ready(self, kubectl: MagicMock) -> None:
        kubectl.get_pods.side_effect = ClusterQueryError(
            "Failed to list pods in opengovernance: 403 Forbidden"
        )

        result = workload_check(kubectl, "opengovernance")()

        assert not result.satisfied
        assert result.observed is None
        assert "403 Forbidden" in result.summary

    def test_failed_listing_times_out(
        self, kubectl: MagicMock, waiter: ReadinessWaiter, clock: FakeClock
    ) -> None:
        kubectl.get_jobs.side_effect = ClusterQueryError(
            "Failed to list jobs in opengovernance: connection reset"
        )
        kubectl.get_pods.return_value = []

        outcome = waiter.wait(workload_check(kubectl, "opengovernance"), interval=30, timeout=720)

        assert outcome.status is WaitStatus.TIMED_OUT
        assert outcome.polls == 25
        assert clock.now == 720


class TestOtherChecks:
    """Tests for the cert-manager, address and issuer checks."""

    def test_cert_manager_needs_pods(self) -> None:
        kubectl = MagicMock()
        kubectl.get_pods.return_value = []

        assert not cert_manager_check(kubectl, "cert-manager")().satisfied

    def test_cert_manager_listing_failure_is_not_ready(self) -> None:
        kubectl = MagicMock()
        kubectl.get_pods.side_effect = ClusterQueryError("Failed to list pods in cert-manager: Unauthorized")

        result = cert_manager_check(kubectl, "cert-manager")()

        assert not result.satisfied
        assert "Unauthorized" in result.summary

    def test_cert_manager_all_running(self) -> None:
        kubectl = MagicMock()
        kubectl.get_pods.return_value = [
            PodInfo(name="cert-manager-1", status="Running"),
            PodInfo(name="cert-manager-webhook-1", status="Running"),
        ]

        assert cert_manager_check(kubectl, "cert-manager")().satisfied

    def test_nginx_address_comes_from_the_controller_service(self) -> None:
        kubectl = MagicMock()
        kubectl.get_service_external_address.return_value = "203.0.113.10"
        spec = IngressSpec(
            name="opengovernance-ingress",
            namespace="opengovernance",
            shape=IngressShape.HOSTLESS,
            ingress_class="nginx",
            service_name="nginx-proxy",
            service_port=80,
        )

        result = external_address_check(kubectl, spec)()

        assert result.satisfied
        assert result.observed == "203.0.113.10"
        kubectl.get_service_external_address.assert_called_once_with(
            "ingress-nginx-controller", "opengovernance"
        )

    def test_alb_address_comes_from_the_ingress_status(self) -> None:
        kubectl = MagicMock()
        kubectl.get_ingress.return_value = {
            "status": {"loadBalancer": {"ingress": [{"hostname": "k8s-og.elb.amazonaws.com"}]}}
        }
        spec = IngressSpec(
            name="opengovernance-ingress",
            namespace="opengovernance",
            shape=IngressShape.HOSTLESS,
            ingress_class="alb",
            service_name="nginx-proxy",
            service_port=80,
        )

        result = external_address_check(kubectl, spec)()

        assert result.observed == "k8s-og.elb.amazonaws.com"
        kubectl.get_service_external_address.assert_not_called()

    def test_missing_address_is_not_ready(self) -> None:
        kubectl = MagicMock()
        kubectl.get_service_external_address.return_value = ""
        spec = IngressSpec(
            name="i",
            namespace="ns",
            shape=IngressShape.HOSTLESS,
            ingress_class="nginx",
            service_name="nginx-proxy",
            service_port=80,
        )

        result = external_address_check(kubectl, spec)()

        assert not result.satisfied
        assert result.observed is None

    def test_issuer_ready_condition(self) -> None:
        kubectl = MagicMock()
        kubectl.get_issuer_status.return_value = IssuerStatus(exists=True, ready=True)

        assert issuer_check(kubectl, "letsencrypt-nginx", "opengovernance")().satisfied
