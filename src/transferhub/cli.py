from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict

from .config import DeploymentConfig, configure_logging, load_config
from .contract import discovery_contract, worker_contract
from .errors import ValidationError
from .parameters import declare_transfer_parameters
from .predicates import EventTriggerPredicate
from .runtime import ClusterSpec, select_runtime_mode

logger = logging.getLogger(__name__)

PLACEHOLDERS = {
    "region": "<region>",
    "ledger_name": "<job-table-name>",
    "queue_name": "<job-queue-name>",
}


def build_plan(config: DeploymentConfig, run_type: str | None = None) -> Dict[str, Any]:
    """Validate ``config`` and summarise what the stack would contain.

    Resource names are only known after deployment, so the contracts carry
    placeholders for them.
    """
    run_type = run_type or config.run_type
    catalog = declare_transfer_parameters(run_type)
    params = catalog.validate(config.parameters)
    mode = select_runtime_mode(run_type, params)
    values = params.as_strings()

    if isinstance(mode, ClusterSpec):
        contracts = {"discovery": discovery_contract(values, **PLACEHOLDERS)}
        mode_detail = {"cluster_name": mode.cluster_name, "schedule": mode.schedule}
    else:
        contracts = {"worker": worker_contract(values, **PLACEHOLDERS)}
        mode_detail = {
            "min_capacity": mode.min_capacity,
            "max_capacity": mode.max_capacity,
            "desired_capacity": mode.desired_capacity,
        }

    return {
        "environment": config.environment,
        "run_type": mode.run_type.value,
        "mode": mode_detail,
        "event_trigger_active": EventTriggerPredicate.from_parameters(params).evaluate(),
        "parameters": values,
        "environment_contracts": contracts,
        "outputs": ["TableName", "QueueName", "DLQQueueName", "AlarmTopicName"]
        + (["FleetName"] if "worker" in contracts else []),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="transfer-plan")
    parser.add_argument("command", choices=["validate", "plan"])
    parser.add_argument("--env", default="dev", help="Environment name (config/<env>.yml)")
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory holding the YAML configs")
    parser.add_argument("--run-type", choices=["cluster", "fleet"], default=None)
    args = parser.parse_args(argv)

    try:
        config = load_config(args.env, config_dir=args.config_dir)
    except FileNotFoundError as exc:
        print(exc)
        return 2
    configure_logging(config.logging)

    try:
        plan = build_plan(config, run_type=args.run_type)
    except ValidationError as exc:
        print(exc)
        return 2

    if args.command == "validate":
        print(f"OK: {len(plan['parameters'])} parameters valid for {plan['run_type']} mode")
    else:
        print(json.dumps(plan, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
