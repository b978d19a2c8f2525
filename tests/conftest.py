import os
import sys
from pathlib import Path

import pytest

# Make `infra` (repository root) and `transferhub` (src/) importable without installation.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = str(ROOT / "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)


@pytest.fixture
def base_parameters():
    """Minimal valid parameter values shared by both runtime modes."""
    return {
        "source-bucket": "src-bucket",
        "destination-bucket": "dest-bucket",
        "vpc-id": "vpc-12345678",
        "subnet-ids": ["subnet-aaaa1111", "subnet-bbbb2222"],
        "alarm-email": "ops@example.com",
    }


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that change configuration loading."""
    for key in ("ENVIRONMENT", "AWS_REGION", "AWS_PROFILE", "RUN_TYPE", "CLI_RELEASE", "LOG_LEVEL", "ALLOW_AWS_DEPLOY"):
        monkeypatch.delenv(key, raising=False)
    for key in list(os.environ):
        if key.startswith("TRANSFER_PARAM_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def build_stack():
    """Factory synthesizing a DataTransferStack from parameter values."""
    from aws_cdk import App

    from infra.data_transfer_stack import DataTransferStack

    def _build(parameters, run_type="cluster", **overrides):
        config = {
            "environment": "test",
            "app_name": "data-transfer-hub-test",
            "run_type": run_type,
            "cli_release": "1.0.0",
            "parameters": parameters,
        }
        config.update(overrides)
        return DataTransferStack(App(), "TestTransferStack", config=config)

    return _build
