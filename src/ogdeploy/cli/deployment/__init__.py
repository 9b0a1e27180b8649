"""Deployment package for OpenGovernance installations.

The package is organized into subpackages for modularity:
- shell_commands: Abstractions for the external tools (helm, kubectl,
  terraform/tofu, git)
- installer: Components of the install/configure workflow
"""

from .installer import DeploymentError, Installer

__all__ = ["Installer", "DeploymentError"]
