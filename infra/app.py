"""CDK App entry point for the Data Transfer Hub S3 plugin."""

import logging
import os
import sys
from pathlib import Path

# Make the repository root and src/ importable when run as `python infra/app.py`
ROOT = Path(__file__).resolve().parent.parent
for path in (ROOT, ROOT / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from aws_cdk import App, Environment
from transferhub.config import configure_logging, is_aws_deploy_allowed, load_config
from transferhub.errors import ValidationError

from infra.data_transfer_stack import DataTransferStack

logger = logging.getLogger(__name__)


def main():
    """Main CDK app entry point."""
    app = App()

    env_name = os.getenv("ENVIRONMENT", "dev")
    config = load_config(env_name)
    configure_logging(config.logging)

    if not is_aws_deploy_allowed():
        logger.warning("ALLOW_AWS_DEPLOY not set. This is a dry-run synthesis only.")

    run_type = app.node.try_get_context("runType") or config.run_type

    env = Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        region=config.aws.region,
    )

    try:
        DataTransferStack(
            app,
            f"DataTransferHub-{config.environment}",
            config=config,
            run_type=run_type,
            env=env,
        )
    except ValidationError as exc:
        for violation in exc.violations:
            logger.error("Invalid parameter %s", violation)
        sys.exit(2)

    app.synth()


if __name__ == "__main__":
    main()
