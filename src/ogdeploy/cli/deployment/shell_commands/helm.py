"""Helm command abstractions.

This module provides commands for Helm repository and release management,
including installation, upgrades, uninstallation, and status queries.
Values are passed to Helm as YAML on stdin (`-f -`).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import yaml

from .types import CommandFailedError, CommandResult, HelmRelease

if TYPE_CHECKING:
    from .runner import CommandRunner


def _parse_releases(stdout: str) -> list[HelmRelease]:
    try:
        releases_data = json.loads(stdout)
    except json.JSONDecodeError:
        return []
    return [
        HelmRelease(
            name=r.get("name", ""),
            namespace=r.get("namespace", ""),
            status=r.get("status", ""),
            revision=str(r.get("revision", "")),
            chart=r.get("chart", ""),
            app_version=r.get("app_version", ""),
        )
        for r in releases_data or []
    ]


class HelmCommands:
    """Helm-related shell commands.

    Provides operations for:
    - Chart repositories (list, add, update, search)
    - Release management (install, upgrade, uninstall)
    - Status queries (list releases, user-supplied values)
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize Helm commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    # =========================================================================
    # Repositories
    # =========================================================================

    def repo_names(self) -> list[str]:
        """List the names of configured chart repositories.

        Helm exits nonzero when no repository is configured; that is
        reported as an empty list.
        """
        result = self._runner.run(["helm", "repo", "list", "-o", "json"])
        if not result.success or not result.stdout:
            return []
        try:
            return [r.get("name", "") for r in json.loads(result.stdout) or []]
        except json.JSONDecodeError:
            return []

    def repo_add(self, name: str, url: str) -> CommandResult:
        """Add a chart repository."""
        return self._runner.run(["helm", "repo", "add", name, url])

    def repo_update(self, *names: str) -> CommandResult:
        """Update chart repository indexes (all when no name is given)."""
        return self._runner.run(["helm", "repo", "update", *names])

    def search_latest_version(self, chart_ref: str) -> str | None:
        """Get the newest chart version available in the local repo index.

        Args:
            chart_ref: Repo-qualified chart reference (e.g. "opengovernance/opengovernance")

        Returns:
            Version string, or None if the chart is not found
        """
        result = self._runner.run(["helm", "search", "repo", chart_ref, "-o", "json"])
        if not result.success or not result.stdout:
            return None
        try:
            entries = json.loads(result.stdout) or []
        except json.JSONDecodeError:
            return None
        for entry in entries:
            if entry.get("name") == chart_ref:
                return entry.get("version") or None
        return None

    # =========================================================================
    # Release Management
    # =========================================================================

    def install(
        self,
        release_name: str,
        chart_ref: str,
        namespace: str,
        *,
        values: dict[str, Any] | None = None,
        version: str | None = None,
        timeout: str = "10m",
        create_namespace: bool = True,
        wait: bool = False,
    ) -> CommandResult:
        """Install a chart as a new release.

        Args:
            release_name: Name for the Helm release
            chart_ref: Repo-qualified chart reference
            namespace: Kubernetes namespace for the release
            values: Values passed to the chart
            version: Chart version constraint (default: latest)
            timeout: Maximum time for Helm operations
            create_namespace: Whether to create the namespace if missing
            wait: Whether to wait for resources to be ready

        Returns:
            CommandResult with install status

        Example:
            >>> helm.install(
            ...     "opengovernance",
            ...     "opengovernance/opengovernance",
            ...     "opengovernance",
            ...     values={"global": {"domain": "og.example.com"}},
            ... )
        """
        cmd = ["helm", "install", release_name, chart_ref, "--namespace", namespace]
        if create_namespace:
            cmd.append("--create-namespace")
        if wait:
            cmd.append("--wait")
        cmd.extend(self._common_flags(version=version, timeout=timeout, values=values))
        return self._runner.run(cmd, input_data=self._values_input(values))

    def upgrade(
        self,
        release_name: str,
        chart_ref: str,
        namespace: str,
        *,
        values: dict[str, Any] | None = None,
        version: str | None = None,
        timeout: str = "10m",
        reuse_values: bool = False,
    ) -> CommandResult:
        """Upgrade an existing release.

        Args:
            release_name: Name of the release to upgrade
            chart_ref: Repo-qualified chart reference
            namespace: Kubernetes namespace of the release
            values: Values passed to the chart
            version: Chart version constraint (default: latest)
            timeout: Maximum time for Helm operations
            reuse_values: Merge with the release's current values

        Returns:
            CommandResult with upgrade status
        """
        cmd = ["helm", "upgrade", release_name, chart_ref, "--namespace", namespace]
        if reuse_values:
            cmd.append("--reuse-values")
        cmd.extend(self._common_flags(version=version, timeout=timeout, values=values))
        return self._runner.run(cmd, input_data=self._values_input(values))

    def uninstall(
        self,
        release_name: str,
        namespace: str,
        *,
        wait: bool = True,
    ) -> CommandResult:
        """Uninstall a Helm release.

        Args:
            release_name: Name of the release to uninstall
            namespace: Kubernetes namespace
            wait: Whether to wait for resources to be deleted

        Returns:
            CommandResult with uninstall status
        """
        cmd = ["helm", "uninstall", release_name, "-n", namespace]
        if wait:
            cmd.append("--wait")
        return self._runner.run(cmd)

    # =========================================================================
    # Status Queries
    # =========================================================================

    def list_releases(
        self,
        namespace: str | None = None,
    ) -> list[HelmRelease]:
        """List Helm releases in every state.

        Args:
            namespace: Kubernetes namespace to query (all namespaces when None)

        Returns:
            List of HelmRelease objects

        Raises:
            CommandFailedError: If helm cannot list releases (e.g. cluster unreachable)
        """
        cmd = ["helm", "list", "--all", "-o", "json"]
        if namespace is None:
            cmd.append("--all-namespaces")
        else:
            cmd.extend(["-n", namespace])

        result = self._runner.run(cmd)
        if not result.success:
            raise CommandFailedError(cmd, result)
        if not result.stdout:
            return []
        return _parse_releases(result.stdout)

    def get_release(self, release_name: str, namespace: str | None = None) -> HelmRelease | None:
        """Find a release by name.

        Args:
            release_name: Release to look for
            namespace: Namespace to search (all namespaces when None)

        Returns:
            The release, or None if it does not exist

        Raises:
            CommandFailedError: If helm cannot list releases
        """
        for release in self.list_releases(namespace):
            if release.name == release_name:
                return release
        return None

    def get_values(self, release_name: str, namespace: str) -> dict[str, Any]:
        """Get the user-supplied values of a release.

        Returns:
            Values mapping ({} when none were supplied or the release is missing)
        """
        result = self._runner.run(
            ["helm", "get", "values", release_name, "-n", namespace, "-o", "json"]
        )
        if not result.success or not result.stdout:
            return {}
        try:
            values = json.loads(result.stdout)
        except json.JSONDecodeError:
            return {}
        return values if isinstance(values, dict) else {}

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _common_flags(
        *, version: str | None, timeout: str, values: dict[str, Any] | None
    ) -> list[str]:
        flags = ["--timeout", timeout]
        if version:
            flags.extend(["--version", version])
        if values:
            flags.extend(["-f", "-"])
        return flags

    @staticmethod
    def _values_input(values: dict[str, Any] | None) -> str | None:
        return yaml.safe_dump(values, sort_keys=False) if values else None
