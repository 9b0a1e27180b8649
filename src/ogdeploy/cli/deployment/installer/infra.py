"""EKS infrastructure provisioning with Terraform / OpenTofu.

Apply runs as a background process while the main thread compares the
state against the planned resource addresses and reports progress. The
loop ends when the process exits or the cancellation token fires, in which
case the process is terminated.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from ogdeploy.infra.constants import DEFAULT_CONSTANTS, DeploymentConstants

from .errors import ExternalActionFailure, UserAborted
from .models import InfraSpec, ProgressSample
from .readiness import CancellationToken

if TYPE_CHECKING:
    from ..shell_commands import ShellCommands
    from ..shell_commands.types import CommandResult


def _tail(text: str, lines: int = 40) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


class InfraProvisioner:
    """Creates, reuses and destroys the EKS cluster defined by the infra module."""

    def __init__(
        self,
        commands: ShellCommands,
        token: CancellationToken | None = None,
        constants: DeploymentConstants = DEFAULT_CONSTANTS,
        *,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        """Initialize the provisioner.

        Args:
            commands: Shell command executor
            token: Cancellation token checked while apply runs
            constants: Deployment constants
            sleep: Sleep between progress samples; returns True when cancelled
                (default: the token's interruptible sleep)
        """
        self.commands = commands
        self.token = token or CancellationToken()
        self.constants = constants
        self._sleep = sleep or self.token.sleep

    # =========================================================================
    # Queries
    # =========================================================================

    def existing_resources(self, spec: InfraSpec) -> list[str]:
        """List resources in the current infrastructure state."""
        return self.commands.terraform.state_list(spec.workdir)

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        spec: InfraSpec,
        on_progress: Callable[[ProgressSample], None] | None = None,
    ) -> ProgressSample:
        """Clone the module, plan, apply in the background and configure kubectl.

        Args:
            spec: Infrastructure spec
            on_progress: Called with each progress sample

        Returns:
            The final progress sample

        Raises:
            ExternalActionFailure: If git, init, plan, apply or the kubectl
                configuration fails
            UserAborted: If cancelled while apply runs
        """
        terraform = self.commands.terraform

        logger.info("Cloning infrastructure module from {}", spec.repo_url)
        self._check(
            self.commands.git.clone(spec.repo_url, spec.repo_dir),
            "Failed to clone the infrastructure repository",
        )

        binary = terraform.binary or "terraform"
        logger.info("Initializing {}", binary)
        self._check(terraform.init(spec.workdir), f"{binary} init failed")

        logger.info("Planning {} deployment", binary)
        self._check(
            terraform.plan(spec.workdir, spec.plan_file, spec.variables),
            f"{binary} plan failed",
        )
        planned = terraform.planned_addresses(spec.workdir, spec.plan_file)
        logger.info("Applying {} deployment ({} resources)", binary, len(planned))

        try:
            process = terraform.start_apply(spec.workdir, spec.plan_file)
        except OSError as e:
            raise ExternalActionFailure(f"Failed to start {binary} apply", str(e)) from e

        sample = self._sample(spec, planned)
        try:
            while process.running:
                if self._sleep(self.constants.INFRA_PROGRESS_INTERVAL) or self.token.cancelled:
                    raise UserAborted(f"Installation aborted: {self.token.reason or 'cancelled'}")
                sample = self._sample(spec, planned)
                if on_progress is not None:
                    on_progress(sample)
        except BaseException:
            process.terminate()
            raise

        result = process.wait()
        if not result.success:
            raise ExternalActionFailure(f"{binary} apply failed", _tail(result.stdout))

        sample = self._sample(spec, planned)
        if on_progress is not None:
            on_progress(sample)

        self.configure_kubectl(spec)
        return sample

    def _sample(self, spec: InfraSpec, planned: list[str]) -> ProgressSample:
        applied = set(self.commands.terraform.state_list(spec.workdir))
        completed = sum(1 for address in planned if address in applied)
        return ProgressSample(
            completed=completed,
            total=len(planned),
            poll_interval=self.constants.INFRA_PROGRESS_INTERVAL,
            taken_at=datetime.now(UTC),
        )

    # =========================================================================
    # Reuse / Destroy
    # =========================================================================

    def configure_kubectl(self, spec: InfraSpec) -> None:
        """Point kubectl at the cluster using the module's kubeconfig output.

        Raises:
            ExternalActionFailure: If the output is missing or the command fails
        """
        output = self._check(
            self.commands.terraform.output_raw(spec.workdir, spec.kubeconfig_output),
            f"Failed to read the '{spec.kubeconfig_output}' output",
        )
        script = output.stdout.strip()
        if not script:
            raise ExternalActionFailure(f"The '{spec.kubeconfig_output}' output is empty")
        logger.info("Configuring kubectl for the new cluster")
        self._check(
            self.commands.kubectl.configure_from_script(script),
            "Failed to configure kubectl",
        )

    def destroy(self, spec: InfraSpec) -> None:
        """Destroy all resources in the current state.

        Raises:
            ExternalActionFailure: If destroy fails
        """
        binary = self.commands.terraform.binary or "terraform"
        logger.info("Destroying existing infrastructure with {}", binary)
        self._check(
            self.commands.terraform.destroy(spec.workdir, spec.variables),
            f"{binary} destroy failed",
        )

    @staticmethod
    def _check(result: CommandResult, message: str) -> CommandResult:
        if not result.success:
            raise ExternalActionFailure(message, _tail(result.diagnostic))
        return result
