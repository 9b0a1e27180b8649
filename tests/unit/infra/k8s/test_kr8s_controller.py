"""Tests for the kr8s-backed Kubernetes controller."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from ogdeploy.cli.deployment.shell_commands.kubectl import KubectlCommands
from ogdeploy.infra.k8s import Kr8sController, run_sync
from ogdeploy.infra.k8s.controller import ClusterQueryError, CommandResult


def _pod(name: str, phase: str, container_state: dict | None = None, restarts: int = 0):
    statuses = [{"restartCount": restarts, "state": container_state or {"running": {}}}]
    return SimpleNamespace(
        metadata={"name": name},
        spec={"nodeName": "node-a"},
        status={"phase": phase, "containerStatuses": statuses},
    )


@pytest.fixture
def controller() -> Kr8sController:
    controller = Kr8sController()
    controller._get_api = AsyncMock(return_value=object())  # type: ignore[method-assign]
    return controller


class TestGetPods:
    """Tests for pod status extraction."""

    def test_waiting_reason_overrides_phase(self, controller: Kr8sController) -> None:
        pods = [
            _pod("core-0", "Running", {"waiting": {"reason": "CrashLoopBackOff"}}, restarts=7),
            _pod("migrator-job-x1", "Succeeded", {"terminated": {"reason": "Completed"}}),
        ]

        async def _list(**kwargs):
            for pod in pods:
                yield pod

        with patch("ogdeploy.infra.k8s.kr8s_controller.Pod.list", side_effect=_list):
            result = run_sync(controller.get_pods("opengovernance"))

        assert [(p.name, p.status, p.restarts) for p in result] == [
            ("core-0", "CrashLoopBackOff", 7),
            ("migrator-job-x1", "Succeeded", 0),
        ]
        assert result[0].node == "node-a"

    def test_api_error_raises(self, controller: Kr8sController) -> None:
        controller._get_api = AsyncMock(side_effect=RuntimeError("403 Forbidden"))  # type: ignore[method-assign]

        with pytest.raises(ClusterQueryError, match="403 Forbidden"):
            run_sync(controller.get_pods("opengovernance"))

    def test_job_listing_error_raises(self, controller: Kr8sController) -> None:
        async def _list(**kwargs):
            raise ConnectionResetError("connection reset by peer")
            yield  # pragma: no cover

        with patch("ogdeploy.infra.k8s.kr8s_controller.Job.list", side_effect=_list):
            with pytest.raises(ClusterQueryError, match="Failed to list jobs in opengovernance"):
                run_sync(controller.get_jobs("opengovernance"))


class TestIssuerStatus:
    """Tests for reading the Issuer Ready condition."""

    def test_ready(self, controller: Kr8sController) -> None:
        body = {"status": {"conditions": [{"type": "Ready", "status": "True", "message": "ok"}]}}
        controller._kubectl = AsyncMock(  # type: ignore[method-assign]
            return_value=CommandResult(success=True, stdout=json.dumps(body))
        )

        status = run_sync(controller.get_issuer_status("letsencrypt-nginx", "opengovernance"))

        assert status.exists and status.ready
        assert status.message == "ok"

    def test_missing(self, controller: Kr8sController) -> None:
        controller._kubectl = AsyncMock(  # type: ignore[method-assign]
            return_value=CommandResult(success=False, stderr="NotFound", returncode=1)
        )

        status = run_sync(controller.get_issuer_status("letsencrypt-nginx", "opengovernance"))

        assert not status.exists
        assert not status.ready


@pytest.mark.parametrize(("timeout", "seconds"), [("120s", 120), ("5m", 300), ("1h", 3600), ("30", 30)])
def test_parse_timeout(timeout: str, seconds: float) -> None:
    assert Kr8sController()._parse_timeout(timeout) == seconds


def test_port_forward_command() -> None:
    assert KubectlCommands.port_forward_command("og", "nginx-proxy", 8080, 80) == (
        "kubectl port-forward -n og service/nginx-proxy 8080:80"
    )
