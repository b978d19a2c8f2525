"""Deploy the Data Transfer Hub S3 plugin stack.

This script validates the configuration in-process, synthesizes and deploys the
CDK app, and reads the stack's output contract back from CloudFormation.
It defaults to dry-run mode and requires the explicit --apply flag (plus
ALLOW_AWS_DEPLOY=1) for an actual deployment.
"""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add repository root and src to path for config access
ROOT = Path(__file__).resolve().parent.parent
for _path in (ROOT, ROOT / "src"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from transferhub.cli import build_plan
from transferhub.config import configure_logging, is_aws_deploy_allowed, load_config
from transferhub.errors import CompositionError, ProvisioningError, ValidationError

logger = logging.getLogger("deploy_transfer")

CDK_APP = "python infra/app.py"


def run_command(cmd: List[str], dry_run: bool = True, env: Optional[Dict[str, str]] = None) -> subprocess.CompletedProcess:
    """Run a command with optional dry-run mode.

    Raises:
        ProvisioningError: If the command exits non-zero.
    """
    if dry_run:
        logger.info("DRY RUN: %s", " ".join(cmd))
        return subprocess.CompletedProcess(cmd, 0)

    logger.info("Running: %s", " ".join(cmd))
    result = subprocess.run(cmd, capture_output=True, text=True, env=env)
    if result.returncode != 0:
        raise ProvisioningError(
            f"{cmd[0]} {cmd[1]} failed with exit code {result.returncode}",
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result


def cdk_command(action: str, run_type: str) -> List[str]:
    cmd = ["cdk", action, "--app", CDK_APP, "--context", f"runType={run_type}"]
    if action == "deploy":
        cmd += ["--require-approval", "never"]
    return cmd


def fetch_stack_outputs(stack_name: str, cloudformation=None) -> Dict[str, str]:
    """Read the output contract of a deployed stack.

    Raises:
        ProvisioningError: If CloudFormation cannot describe the stack.
    """
    client = cloudformation or boto3.client("cloudformation")
    try:
        response = client.describe_stacks(StackName=stack_name)
    except (ClientError, BotoCoreError) as exc:
        raise ProvisioningError(f"Unable to describe stack {stack_name}: {exc}") from exc

    stacks = response.get("Stacks", [])
    if not stacks:
        raise ProvisioningError(f"Stack {stack_name} not found")
    return {o["OutputKey"]: o["OutputValue"] for o in stacks[0].get("Outputs", [])}


def deploy(environment: str, run_type: Optional[str] = None, dry_run: bool = True, synth_only: bool = False) -> Dict[str, str]:
    """Validate, synthesize and (optionally) deploy. Returns the stack outputs when deployed."""
    config = load_config(environment)
    configure_logging(config.logging)
    plan = build_plan(config, run_type=run_type)
    logger.info("Validated %d parameters for %s mode", len(plan["parameters"]), plan["run_type"])

    env = os.environ.copy()
    env["ENVIRONMENT"] = environment

    run_command(cdk_command("synth", plan["run_type"]), dry_run=dry_run, env=env)
    if synth_only:
        return {}

    run_command(cdk_command("deploy", plan["run_type"]), dry_run=dry_run, env=env)
    if dry_run:
        return {}
    return fetch_stack_outputs(f"DataTransferHub-{config.environment}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Deploy the Data Transfer Hub S3 plugin stack")
    parser.add_argument(
        "--environment",
        default=os.getenv("ENVIRONMENT", "dev"),
        help="Target environment (default: dev)"
    )
    parser.add_argument("--run-type", choices=["cluster", "fleet"], default=None)
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Actually perform the deployment (default: dry-run)"
    )
    parser.add_argument(
        "--synth-only",
        action="store_true",
        help="Only synthesize templates, don't deploy"
    )
    args = parser.parse_args(argv)

    dry_run = not args.apply
    if args.apply and not is_aws_deploy_allowed():
        sys.stderr.write("ERROR: Real AWS deployments are disabled by default. Set ALLOW_AWS_DEPLOY=1.\n")
        return 2

    try:
        outputs = deploy(args.environment, run_type=args.run_type, dry_run=dry_run, synth_only=args.synth_only)
    except ValidationError as exc:
        logger.error("%s", exc)
        return 2
    except CompositionError as exc:
        logger.error("Deployment failed: %s", exc)
        return 1

    for key, value in sorted(outputs.items()):
        print(f"{key}={value}")
    if dry_run:
        logger.info("Use --apply flag to perform actual deployment")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
