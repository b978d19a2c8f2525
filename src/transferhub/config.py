"""Deployment configuration for the transfer stack.

A deployment is described by ``config/<environment>.yml``: the AWS target,
the run type, the worker CLI release, logging and the raw parameter values.
The process environment can override the run type (``RUN_TYPE``), the CLI
release (``CLI_RELEASE``), the log level (``LOG_LEVEL``) and any single
parameter: ``TRANSFER_PARAM_SOURCE_BUCKET`` sets parameter ``source-bucket``.

Parameter values stay raw here; the parameter catalog for the selected run
type coerces and validates them.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

from .runtime import RunType

PARAM_ENV_PREFIX = "TRANSFER_PARAM_"


class AWSConfig(BaseModel):
    """AWS-related configuration."""
    region: str = "us-west-2"
    profile: Optional[str] = None


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class DeploymentConfig(BaseModel):
    """Main configuration object."""
    environment: str = "dev"
    app_name: str = "data-transfer-hub"
    run_type: RunType = RunType.CLUSTER
    cli_release: str = "1.0.0"
    aws: AWSConfig = Field(default_factory=AWSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    parameters: Dict[str, Any] = Field(default_factory=dict)


def default_config_dir() -> Path:
    return Path(__file__).resolve().parent.parent.parent / "config"


def load_config(environment: Optional[str] = None, config_dir: Optional[Path] = None) -> DeploymentConfig:
    """Load configuration from YAML and environment variables.

    Args:
        environment: Environment name (dev/prod). If None, uses ENVIRONMENT env var.
        config_dir: Directory holding ``<environment>.yml``.

    Returns:
        Loaded configuration object.

    Raises:
        FileNotFoundError: If configuration file doesn't exist.
    """
    env = environment or os.getenv("ENVIRONMENT", "dev")
    config_file = Path(config_dir or default_config_dir()) / f"{env}.yml"

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    with open(config_file, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    config_data.setdefault("environment", env)
    config_data = _apply_env_overrides(config_data)

    return DeploymentConfig(**config_data)


def _apply_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration data."""
    if os.getenv("AWS_REGION"):
        config_data.setdefault("aws", {})["region"] = os.getenv("AWS_REGION")
    if os.getenv("AWS_PROFILE"):
        config_data.setdefault("aws", {})["profile"] = os.getenv("AWS_PROFILE")

    if os.getenv("RUN_TYPE"):
        config_data["run_type"] = os.getenv("RUN_TYPE", "").strip().lower()
    if os.getenv("CLI_RELEASE"):
        config_data["cli_release"] = os.getenv("CLI_RELEASE")
    if os.getenv("LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = os.getenv("LOG_LEVEL", "").upper()

    # TRANSFER_PARAM_ALARM_EMAIL -> parameters["alarm-email"]
    params = config_data.get("parameters") or {}
    for key, value in os.environ.items():
        if key.startswith(PARAM_ENV_PREFIX) and len(key) > len(PARAM_ENV_PREFIX):
            name = key[len(PARAM_ENV_PREFIX):].lower().replace("_", "-")
            params[name] = value
    config_data["parameters"] = params

    return config_data


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure root logging for command-line entry points."""
    config = config or LoggingConfig()
    logging.basicConfig(level=config.level.upper(), format=config.format)


def is_aws_deploy_allowed() -> bool:
    """Check if AWS deployments are allowed (safety flag)."""
    return os.getenv("ALLOW_AWS_DEPLOY", "").lower() in ("1", "true", "yes")
