"""Tests for the ogdeploy command line."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from ogdeploy.cli import app, install_signal_handlers
from ogdeploy.cli.deployment.installer import (
    CancellationToken,
    ConfigureRequest,
    InstallRequest,
    InstallType,
    Platform,
    UnsuitableCluster,
)

runner = CliRunner()


@pytest.fixture
def installer() -> Iterator[MagicMock]:
    """Installer returned by CLIContext.installer()."""
    with patch("ogdeploy.cli.context.Installer") as installer_cls:
        yield installer_cls.return_value


class TestInstallCommand:
    """Tests for ogdeploy install."""

    def test_builds_request_from_options(self, installer: MagicMock) -> None:
        result = runner.invoke(
            app,
            ["install", "-p", "generic", "-d", "og.example.com", "-e", "ops@example.com", "--dry-run"],
        )

        assert result.exit_code == 0, result.output
        installer.install.assert_called_once_with(
            InstallRequest(
                platform=Platform.GENERIC,
                domain="og.example.com",
                email="ops@example.com",
                dry_run=True,
            )
        )

    def test_auto_platform_and_basic_type(self, installer: MagicMock) -> None:
        result = runner.invoke(app, ["install", "-t", "2", "-y"])

        assert result.exit_code == 0, result.output
        request = installer.install.call_args[0][0]
        assert request.platform is None
        assert request.install_type is InstallType.BASIC

    def test_invalid_install_type(self, installer: MagicMock) -> None:
        result = runner.invoke(app, ["install", "-t", "3"])

        assert result.exit_code == 1
        assert "Invalid installation type" in result.output
        installer.install.assert_not_called()

    def test_invalid_platform(self, installer: MagicMock) -> None:
        result = runner.invoke(app, ["install", "-p", "gcp"])

        assert result.exit_code == 1
        assert "Invalid platform" in result.output

    def test_unknown_flag_is_a_usage_error(self) -> None:
        result = runner.invoke(app, ["install", "--bogus"])

        assert result.exit_code == 2

    def test_categorized_failure_exits_1(self, installer: MagicMock) -> None:
        installer.install.side_effect = UnsuitableCluster(
            "OpenGovernance is already installed", "Run 'ogdeploy configure' instead."
        )

        result = runner.invoke(app, ["install", "-p", "generic"])

        assert result.exit_code == 1
        assert "[Unsuitable cluster]" in result.output

    def test_invalid_config_file(self, isolated_state_dir: Path) -> None:
        isolated_state_dir.mkdir(parents=True)
        (isolated_state_dir / "config.yaml").write_text("- not a mapping\n")

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Invalid input" in result.output


class TestOtherCommands:
    """Tests for configure, status and uninstall."""

    def test_configure(self, installer: MagicMock) -> None:
        result = runner.invoke(app, ["configure", "-d", "og.example.com", "--no-https"])

        assert result.exit_code == 0, result.output
        installer.configure.assert_called_once_with(
            ConfigureRequest(domain="og.example.com", use_https=False)
        )

    def test_status(self, installer: MagicMock) -> None:
        result = runner.invoke(app, ["status", "-n", "og-dev"])

        assert result.exit_code == 0, result.output
        installer.status.assert_called_once_with()

    def test_uninstall_declined(self, installer: MagicMock) -> None:
        result = runner.invoke(app, ["uninstall", "--delete-namespace"], input="n\n")

        assert result.exit_code == 1
        assert "[Aborted] Uninstall was not confirmed" in result.output
        installer.uninstall.assert_not_called()

    def test_uninstall_interrupted_at_prompt(self, installer: MagicMock) -> None:
        with patch("ogdeploy.cli.shared.console.Console.input", side_effect=KeyboardInterrupt):
            result = runner.invoke(app, ["uninstall"])

        assert result.exit_code == 1
        installer.uninstall.assert_not_called()

    def test_uninstall_confirmed(self, installer: MagicMock) -> None:
        result = runner.invoke(app, ["uninstall", "--destroy-infra", "-y"])

        assert result.exit_code == 0, result.output
        installer.uninstall.assert_called_once_with(delete_namespace=False, destroy_infra=True)


class TestAwsTemplateCommand:
    """Tests for ogdeploy aws-template."""

    def test_prints_yaml(self) -> None:
        result = runner.invoke(app, ["aws-template", "--ou", "ou-abcd-11111111"])

        assert result.exit_code == 0, result.output
        template = yaml.safe_load(result.output)
        assert template["AWSTemplateFormatVersion"] == "2010-09-09"
        assert template["Parameters"]["OrganizationUnitList"]["Default"] == "ou-abcd-11111111"

    def test_writes_file(self, tmp_path: Path) -> None:
        output = tmp_path / "out" / "org.yaml"

        result = runner.invoke(app, ["aws-template", "-o", str(output), "--iam-user", "Audit"])

        assert result.exit_code == 0, result.output
        template = yaml.safe_load(output.read_text())
        assert template["Parameters"]["IAMUsernameInOrganizationAccount"]["Default"] == "Audit"


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("install", "configure", "status", "uninstall", "aws-template"):
        assert command in result.output


def test_signal_cancels_token(monkeypatch: pytest.MonkeyPatch) -> None:
    import signal

    handlers = {}
    monkeypatch.setattr(signal, "signal", lambda sig, handler: handlers.__setitem__(sig, handler))
    token = CancellationToken()

    install_signal_handlers(token)

    with pytest.raises(KeyboardInterrupt):
        handlers[signal.SIGTERM](signal.SIGTERM, None)
    assert token.cancelled
    assert token.reason == "SIGTERM"
