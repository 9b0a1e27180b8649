"""Readiness polling.

One poll-until utility (ReadinessWaiter) serves every wait in the installer.
The clock and sleep are injectable so waits can be driven by a fake clock,
and a CancellationToken interrupts a wait between polls.

The four readiness checks used after reconcile actions live here too:
application workload, cert-manager, ingress external address and Issuer.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger

from ogdeploy.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants
from ogdeploy.infra.k8s.controller import ClusterQueryError

from .errors import UserAborted
from .manifests import ingress_external_address

if TYPE_CHECKING:
    from ..shell_commands.kubectl import KubectlCommands
    from .models import IngressSpec


class CancellationToken:
    """Cooperative cancellation shared between the signal handlers and waits."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "Interrupted") -> None:
        """Request cancellation."""
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._event.is_set()

    def sleep(self, seconds: float) -> bool:
        """Sleep up to `seconds`, returning early when cancelled.

        Returns:
            True if the token was cancelled
        """
        return self._event.wait(max(seconds, 0.0))

    def raise_if_cancelled(self) -> None:
        """Raise UserAborted if cancellation was requested."""
        if self.cancelled:
            raise UserAborted(f"Installation aborted: {self.reason}")


class WaitStatus(Enum):
    """Terminal state of a wait."""

    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass
class CheckResult:
    """One observation of a readiness condition."""

    satisfied: bool
    observed: Any = None
    summary: str = ""


@dataclass
class WaitOutcome:
    """Result of ReadinessWaiter.wait()."""

    status: WaitStatus
    last_observed: Any = None
    elapsed: float = 0.0
    polls: int = 0

    @property
    def ready(self) -> bool:
        """Whether the condition was met before the deadline."""
        return self.status is WaitStatus.READY


class ReadinessWaiter:
    """Poll a check until it is satisfied, the deadline passes, or the run is cancelled."""

    def __init__(
        self,
        token: CancellationToken | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        """Initialize the waiter.

        Args:
            token: Cancellation token (default: a private, never-cancelled token)
            clock: Monotonic clock returning seconds
            sleep: Sleep function (default: the token's interruptible sleep)
        """
        self.token = token or CancellationToken()
        self._clock = clock
        self._sleep = sleep or self.token.sleep

    def wait(
        self,
        check: Callable[[], CheckResult],
        interval: float,
        timeout: float,
        *,
        description: str = "condition",
        on_poll: Callable[[int, CheckResult], None] | None = None,
    ) -> WaitOutcome:
        """Poll `check` every `interval` seconds for at most `timeout` seconds.

        The last poll happens exactly at the deadline; the sleep before it
        is shortened to the remaining time.

        Args:
            check: Readiness check
            interval: Seconds between polls
            timeout: Deadline in seconds from the first poll
            description: What is being waited for (for the debug log)
            on_poll: Called after each unsatisfied poll with the poll count

        Returns:
            WaitOutcome with READY or TIMED_OUT

        Raises:
            UserAborted: If the cancellation token fires
        """
        start = self._clock()
        polls = 0
        last: CheckResult | None = None

        while True:
            self.token.raise_if_cancelled()

            last = check()
            polls += 1
            elapsed = self._clock() - start

            if last.satisfied:
                logger.debug("{} ready after {:.0f}s ({} polls)", description, elapsed, polls)
                return WaitOutcome(WaitStatus.READY, last.observed, elapsed, polls)

            if elapsed >= timeout:
                logger.debug("{} not ready after {:.0f}s ({} polls)", description, elapsed, polls)
                return WaitOutcome(WaitStatus.TIMED_OUT, last.observed, elapsed, polls)

            if on_poll is not None:
                on_poll(polls, last)

            self._sleep(min(interval, timeout - elapsed))


# =============================================================================
# Readiness Checks
# =============================================================================


@dataclass
class WorkloadSnapshot:
    """Pods and migrator jobs observed in the application namespace."""

    pods: list[Any] = field(default_factory=list)
    jobs: list[Any] = field(default_factory=list)
    unhealthy_pods: list[Any] = field(default_factory=list)
    pending_jobs: list[Any] = field(default_factory=list)


def workload_check(
    kubectl: KubectlCommands,
    namespace: str,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> Callable[[], CheckResult]:
    """Build the application readiness check.

    Satisfied when no pod is outside the healthy phases and every migrator
    job has completed. A failed list query is never satisfied.
    """

    def _check() -> CheckResult:
        try:
            pods = kubectl.get_pods(namespace)
            jobs = [
                j for j in kubectl.get_jobs(namespace)
                if j.name.startswith(constants.MIGRATOR_JOB_PREFIX)
            ]
        except ClusterQueryError as e:
            logger.debug("{}", e)
            return CheckResult(False, None, str(e))
        snapshot = WorkloadSnapshot(
            pods=pods,
            jobs=jobs,
            unhealthy_pods=[p for p in pods if p.status not in constants.HEALTHY_POD_PHASES],
            pending_jobs=[j for j in jobs if j.status != "Complete"],
        )
        satisfied = not snapshot.unhealthy_pods and not snapshot.pending_jobs
        summary = (
            f"{len(pods) - len(snapshot.unhealthy_pods)}/{len(pods)} pods healthy"
        )
        if snapshot.pending_jobs:
            summary += f", {len(snapshot.pending_jobs)} migrator job(s) pending"
        return CheckResult(satisfied, snapshot, summary)

    return _check


def cert_manager_check(kubectl: KubectlCommands, namespace: str) -> Callable[[], CheckResult]:
    """Build the cert-manager readiness check (all pods Running)."""

    def _check() -> CheckResult:
        try:
            pods = kubectl.get_pods(namespace)
        except ClusterQueryError as e:
            logger.debug("{}", e)
            return CheckResult(False, None, str(e))
        running = [p for p in pods if p.status == "Running"]
        satisfied = bool(pods) and len(running) == len(pods)
        return CheckResult(satisfied, pods, f"{len(running)}/{len(pods)} cert-manager pods running")

    return _check


def external_address_check(
    kubectl: KubectlCommands,
    ingress: IngressSpec,
    constants: DeploymentConstants = DEFAULT_CONSTANTS,
) -> Callable[[], CheckResult]:
    """Build the external address check for an Ingress.

    NGINX exposes the address on the controller Service; the AWS load
    balancer controller publishes it on the Ingress status.
    """

    def _check() -> CheckResult:
        if ingress.ingress_class == constants.ALB_INGRESS_CLASS:
            address = ingress_external_address(kubectl.get_ingress(ingress.name, ingress.namespace))
        else:
            address = kubectl.get_service_external_address(
                constants.INGRESS_NGINX_SERVICE, ingress.namespace
            )
        return CheckResult(bool(address), address or None, address or "no address assigned")

    return _check


def issuer_check(kubectl: KubectlCommands, name: str, namespace: str) -> Callable[[], CheckResult]:
    """Build the Issuer Ready-condition check."""

    def _check() -> CheckResult:
        status = kubectl.get_issuer_status(name, namespace)
        return CheckResult(status.ready, status, status.message or "not ready")

    return _check
