"""Builds the resources of the selected runtime mode, and only those."""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from aws_cdk import (
    aws_ec2 as ec2,
)
from aws_cdk import (
    aws_iam as iam,
)
from aws_cdk import (
    aws_sqs as sqs,
)
from constructs import Construct

from transferhub.errors import InvariantViolation
from transferhub.runtime import ClusterSpec, FleetSpec, RuntimeMode

from infra.ec2_worker_stack import WorkerFleet
from infra.ecs_finder_stack import DiscoveryTask

logger = logging.getLogger(__name__)

DISCOVERY_ROLE = "discovery"
WORKER_ROLE = "worker"


@dataclass(frozen=True)
class FleetCapacity:
    """Capacity values handed to the Auto Scaling group (numbers or tokens)."""
    min_capacity: float
    max_capacity: float
    desired_capacity: float


@dataclass(frozen=True)
class ComputeTopology:
    """The compute branch that was built; exactly one of discovery/fleet is set."""
    mode: RuntimeMode
    role_key: str
    role: iam.IRole
    discovery: Optional[DiscoveryTask] = None
    fleet: Optional[WorkerFleet] = None

    @property
    def fleet_name(self) -> Optional[str]:
        return self.fleet.fleet_name if self.fleet else None


def select_and_build(
    scope: Construct,
    mode: RuntimeMode,
    *,
    env: Mapping[str, str],
    vpc: ec2.IVpc,
    queue: sqs.IQueue,
    cli_release: str,
    cluster_name: str = "",
    schedule: str = "",
    capacity: Optional[FleetCapacity] = None,
) -> ComputeTopology:
    """Instantiate the compute resources for ``mode``.

    ``env`` must be the contract matching the mode (discovery for CLUSTER,
    worker for FLEET). ``capacity`` is required for FLEET.
    """
    if isinstance(mode, ClusterSpec):
        task = DiscoveryTask(
            scope, "ECSStack",
            env=env,
            vpc=vpc,
            cluster_name=cluster_name or mode.cluster_name,
            schedule=schedule or mode.schedule,
            cli_release=cli_release,
        )
        logger.info("Built discovery task for cluster mode")
        return ComputeTopology(mode=mode, role_key=DISCOVERY_ROLE, role=task.role, discovery=task)

    if isinstance(mode, FleetSpec):
        if capacity is None:
            capacity = FleetCapacity(mode.min_capacity, mode.max_capacity, mode.desired_capacity)
        fleet = WorkerFleet(
            scope, "EC2WorkerStack",
            env=env,
            vpc=vpc,
            queue=queue,
            min_capacity=capacity.min_capacity,
            max_capacity=capacity.max_capacity,
            desired_capacity=capacity.desired_capacity,
            cli_release=cli_release,
        )
        logger.info("Built worker fleet (min=%s, max=%s, desired=%s)",
                    mode.min_capacity, mode.max_capacity, mode.desired_capacity)
        return ComputeTopology(mode=mode, role_key=WORKER_ROLE, role=fleet.role, fleet=fleet)

    raise InvariantViolation(f"unknown runtime mode {mode!r}")
