"""Runtime mode selection.

The compute layer runs in exactly one of two shapes:

- CLUSTER: the discovery (finder) task runs on an existing ECS cluster.
- FLEET: a worker pool in an Auto Scaling group scales on queue depth.

The choice is made once, before any resource exists, and is carried through
composition as the tagged union ``RuntimeMode``; composers dispatch on the
concrete mode type instead of re-reading raw flags.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Union

from .catalog import ParameterSet
from .errors import InvariantViolation, ValidationError, Violation

logger = logging.getLogger(__name__)

CAPACITY_PARAMETERS = ("min-capacity", "max-capacity", "desired-capacity")


class RunType(str, Enum):
    """Compute deployment shapes."""
    CLUSTER = "cluster"
    FLEET = "fleet"


@dataclass(frozen=True)
class ClusterSpec:
    """Discovery task on a named ECS cluster."""
    cluster_name: str
    schedule: str
    subnet_count: int

    @property
    def run_type(self) -> RunType:
        return RunType.CLUSTER


@dataclass(frozen=True)
class FleetSpec:
    """Autoscaling worker pool bounds."""
    min_capacity: int
    max_capacity: int
    desired_capacity: int
    subnet_count: int

    def __post_init__(self) -> None:
        problems = _capacity_violations(self.min_capacity, self.max_capacity, self.desired_capacity)
        if problems:
            raise InvariantViolation("; ".join(str(p) for p in problems))

    @property
    def run_type(self) -> RunType:
        return RunType.FLEET


RuntimeMode = Union[ClusterSpec, FleetSpec]


def parse_run_type(value: Union[str, RunType]) -> RunType:
    """Parse a run type from config or CDK context (case-insensitive)."""
    if isinstance(value, RunType):
        return value
    try:
        return RunType(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(r.value for r in RunType)
        raise ValidationError([Violation("run-type", "allowed_values", f"value {value!r} is not one of: {allowed}")])


def _capacity_violations(min_capacity: int, max_capacity: int, desired_capacity: int) -> List[Violation]:
    problems = []
    for name, value in (
        ("min-capacity", min_capacity),
        ("max-capacity", max_capacity),
        ("desired-capacity", desired_capacity),
    ):
        if value < 0:
            problems.append(Violation(name, "minimum", f"value {value} must be non-negative"))
    if min_capacity > max_capacity:
        problems.append(Violation(
            "min-capacity", "capacity_bounds",
            f"min-capacity {min_capacity} exceeds max-capacity {max_capacity}",
        ))
    if not min_capacity <= desired_capacity <= max_capacity:
        problems.append(Violation(
            "desired-capacity", "capacity_bounds",
            f"desired-capacity {desired_capacity} is outside [{min_capacity}, {max_capacity}]",
        ))
    return problems


def check_capacity_bounds(values: Mapping[str, Any]) -> List[Violation]:
    """Catalog check for FLEET bounds; runs once all three capacities resolved."""
    if not all(name in values for name in CAPACITY_PARAMETERS):
        return []
    return _capacity_violations(*(values[name] for name in CAPACITY_PARAMETERS))


def select_runtime_mode(run_type: Union[str, RunType], params: ParameterSet) -> RuntimeMode:
    """Decide the runtime mode from validated parameters.

    Raises:
        ValidationError: If FLEET capacity bounds are inconsistent. This is
            raised before any fleet resource specification exists.
    """
    run_type = parse_run_type(run_type)
    subnet_count = len(params["subnet-ids"])

    if run_type is RunType.CLUSTER:
        mode: RuntimeMode = ClusterSpec(
            cluster_name=params["cluster-name"],
            schedule=params["discovery-schedule"],
            subnet_count=subnet_count,
        )
    else:
        bounds = (params["min-capacity"], params["max-capacity"], params["desired-capacity"])
        problems = _capacity_violations(*bounds)
        if problems:
            raise ValidationError(problems)
        mode = FleetSpec(*bounds, subnet_count=subnet_count)

    logger.info("Selected runtime mode %s", mode)
    return mode
