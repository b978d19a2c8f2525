"""Environment contracts handed to the data-plane processes.

Values come from a mapping of parameter name to string. During synthesis that
mapping holds CloudFormation parameter tokens; for ``transfer-plan`` it holds
the concrete validated values.
"""

from typing import Dict, Mapping, Tuple

from .errors import InvariantViolation

EnvironmentContract = Dict[str, str]

# (variable, parameter name)
DISCOVERY_VARIABLES: Tuple[Tuple[str, str], ...] = (
    ("SOURCE_TYPE", "source-type"),
    ("SRC_BUCKET", "source-bucket"),
    ("SRC_PREFIX", "source-prefix"),
    ("SRC_REGION", "source-region"),
    ("SRC_ENDPOINT", "source-endpoint"),
    ("SRC_CREDENTIALS", "source-credentials"),
    ("SRC_IN_CURRENT_ACCOUNT", "source-in-current-account"),
    ("DEST_BUCKET", "destination-bucket"),
    ("DEST_PREFIX", "destination-prefix"),
    ("DEST_REGION", "destination-region"),
    ("DEST_CREDENTIALS", "destination-credentials"),
    ("DEST_IN_CURRENT_ACCOUNT", "destination-in-current-account"),
    ("FINDER_DEPTH", "discovery-depth"),
    ("FINDER_NUMBER", "discovery-parallelism"),
)

WORKER_VARIABLES: Tuple[Tuple[str, str], ...] = DISCOVERY_VARIABLES + (
    ("DEST_STORAGE_CLASS", "destination-storage-class"),
    ("DEST_ACL", "destination-acl"),
    ("WORKER_NUMBER", "worker-threads"),
    ("INCLUDE_METADATA", "include-metadata"),
)


def _build(
    variables: Tuple[Tuple[str, str], ...],
    values: Mapping[str, str],
    region: str,
    ledger_name: str,
    queue_name: str,
) -> EnvironmentContract:
    missing = [param for _, param in variables if param not in values]
    if missing:
        raise InvariantViolation(f"environment contract needs parameters {missing}")
    env = {
        "AWS_DEFAULT_REGION": region,
        "JOB_TABLE_NAME": ledger_name,
        "JOB_QUEUE_NAME": queue_name,
    }
    env.update({var: values[param] for var, param in variables})
    return env


def discovery_contract(values: Mapping[str, str], *, region: str, ledger_name: str, queue_name: str) -> EnvironmentContract:
    """Environment for the finder process."""
    return _build(DISCOVERY_VARIABLES, values, region, ledger_name, queue_name)


def worker_contract(values: Mapping[str, str], *, region: str, ledger_name: str, queue_name: str) -> EnvironmentContract:
    """Environment for the worker process: the finder's plus copy settings."""
    return _build(WORKER_VARIABLES, values, region, ledger_name, queue_name)
