"""Installer configuration loading.

Operator-tunable settings live in an optional YAML file in the state
directory and can be overridden through OGDEPLOY_* environment variables
(a .env file in the working directory is honored). Fixed policy values stay
in DeploymentConstants.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from ogdeploy.infra.constants import DEFAULT_CONSTANTS

ENV_PREFIX = "OGDEPLOY_"


class InstallerConfig(BaseModel):
    """Settings an operator may override per environment."""

    namespace: str = DEFAULT_CONSTANTS.DEFAULT_NAMESPACE
    release_name: str = DEFAULT_CONSTANTS.HELM_RELEASE_NAME
    helm_repo_name: str = DEFAULT_CONSTANTS.HELM_REPO_NAME
    helm_repo_url: str = DEFAULT_CONSTANTS.HELM_REPO_URL
    chart_name: str = DEFAULT_CONSTANTS.HELM_CHART_NAME
    chart_version: str | None = None
    helm_timeout: str = DEFAULT_CONSTANTS.HELM_TIMEOUT
    infra_repo_url: str = DEFAULT_CONSTANTS.INFRA_REPO_URL
    min_ready_nodes: int = Field(default=DEFAULT_CONSTANTS.MIN_READY_NODES, ge=1)
    debug: bool = False

    @property
    def chart_ref(self) -> str:
        """Get the repo-qualified chart reference."""
        return f"{self.helm_repo_name}/{self.chart_name}"


def _env_overrides() -> dict[str, Any]:
    """Collect OGDEPLOY_<FIELD> overrides from the environment."""
    overrides: dict[str, Any] = {}
    for field_name in InstallerConfig.model_fields:
        value = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if value is not None:
            overrides[field_name] = value
    return overrides


def load_installer_config(config_file: Path | None = None) -> InstallerConfig:
    """Load installer settings.

    Precedence (highest first): OGDEPLOY_* environment variables, the YAML
    file, model defaults.

    Args:
        config_file: Optional YAML file; ignored when missing

    Returns:
        Validated InstallerConfig

    Raises:
        ValueError: If the YAML is not a mapping or a value fails validation
    """
    load_dotenv(override=False)

    data: dict[str, Any] = {}
    if config_file is not None and config_file.exists():
        with open(config_file) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{config_file} must contain a mapping at the top level")
        data.update(loaded)
        logger.debug("Loaded installer config from {}", config_file)

    data.update(_env_overrides())

    try:
        return InstallerConfig(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid installer configuration: {e}") from e
