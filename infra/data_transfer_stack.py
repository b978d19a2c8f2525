"""Data Transfer Hub S3 plugin CDK stack.

Composition order:
1. Parameter catalog validated and emitted as CloudFormation parameters
2. Shared resources (ledger, queue, DLQ, alarm channel)
3. Compute branch of the selected runtime mode, then its permission grants
4. Dashboard
5. Conditional S3 event trigger
6. Output contract
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from aws_cdk import (
    Aws,
    CfnOutput,
    CfnParameter,
    Fn,
    Stack,
    Tags,
)
from aws_cdk import (
    aws_ec2 as ec2,
)
from aws_cdk import (
    aws_s3 as s3,
)
from constructs import Construct
from pydantic import BaseModel

from transferhub.catalog import ParameterCatalog, ParameterKind, ParameterSet
from transferhub.config import DeploymentConfig
from transferhub.contract import discovery_contract, worker_contract
from transferhub.parameters import declare_transfer_parameters
from transferhub.predicates import EventTriggerPredicate, TriggerMode
from transferhub.runtime import ClusterSpec, FleetSpec, RunType, RuntimeMode, select_runtime_mode

from infra.common_resources import CommonResources
from infra.compute_topology import ComputeTopology, FleetCapacity, select_and_build
from infra.dashboard_stack import TransferDashboard
from infra.event_stack import EventSubTopology, compose_event_trigger
from infra.permissions import PermissionGraph, TransferResources, apply_discovery_rules, apply_worker_rules

logger = logging.getLogger(__name__)

TEMPLATE_DESCRIPTION = "(SO8002) - Data Transfer Hub - S3 Plugin - Template version {version}"


class DataTransferStack(Stack):
    """Deployment topology for one source -> destination transfer."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: Union[Dict[str, Any], BaseModel],
        run_type: Optional[Union[str, RunType]] = None,
        **kwargs
    ) -> None:
        """Validate the configuration and compose the stack.

        Args:
            scope: CDK scope
            construct_id: Stack identifier
            config: ``DeploymentConfig`` or an equivalent plain dictionary
            run_type: Overrides ``config.run_type`` (e.g. from CDK context)
            **kwargs: Additional stack arguments

        Raises:
            ValidationError: Before the stack is attached to ``scope``, so a
                failed validation leaves no partial plan behind.
        """
        if isinstance(config, BaseModel):
            config = config.model_dump()
        deployment = DeploymentConfig(**config)

        # Validate everything before any construct exists.
        catalog = declare_transfer_parameters(run_type or deployment.run_type)
        params = catalog.validate(deployment.parameters)
        mode = select_runtime_mode(run_type or deployment.run_type, params)

        kwargs.setdefault("description", TEMPLATE_DESCRIPTION.format(version=deployment.cli_release))
        super().__init__(scope, construct_id, **kwargs)

        self.config = deployment
        self.catalog: ParameterCatalog = catalog
        self.params: ParameterSet = params
        self.mode: RuntimeMode = mode

        self.cfn_parameters = self._create_parameters()
        self.template_options.metadata = {
            "AWS::CloudFormation::Interface": self.catalog.interface_metadata(),
        }
        values = self._parameter_values()

        vpc = self._import_vpc()
        self.common = CommonResources(self, "Common", alarm_email=values["alarm-email"])

        self.compute = self._build_compute(values, vpc)
        self.permissions = self._grant_permissions(values)

        self.dashboard = TransferDashboard(
            self, "DashboardStack",
            mode=self.mode,
            queue=self.common.sqs_queue,
            dlq=self.common.dlq,
            fleet_name=self.compute.fleet_name,
        )

        self.event_trigger: EventSubTopology = compose_event_trigger(
            self,
            predicate=EventTriggerPredicate.from_parameters(self.params),
            in_current_account=values["source-in-current-account"],
            source_type=values["source-type"],
            trigger_mode=values["event-trigger-mode"],
            queue=self.common.sqs_queue,
            bucket_name=values["source-bucket"],
            prefix=values["source-prefix"],
        )

        self.outputs = self._emit_outputs()
        self._apply_tags()

    def _create_parameters(self) -> Dict[str, CfnParameter]:
        """One CloudFormation parameter per catalog entry, defaulting to the validated value."""
        defaults = self.params.as_strings()
        created = {}
        for param in self.catalog.parameters:
            default: Any = defaults[param.name]
            if param.kind is ParameterKind.NUMBER:
                default = self.params[param.name]
            allowed = param.allowed_values
            if param.name == "event-trigger-mode":
                allowed = TriggerMode(self.params[param.name]).switchable_modes()
            created[param.name] = CfnParameter(
                self, param.logical_id,
                type=param.template_type,
                default=default,
                description=param.description or None,
                allowed_values=list(allowed) if allowed else None,
                allowed_pattern=param.pattern,
                min_value=param.minimum,
            )
        return created

    def _parameter_values(self) -> Dict[str, str]:
        """Template references for every scalar parameter."""
        return {
            name: cfn.value_as_string
            for name, cfn in self.cfn_parameters.items()
            if self.catalog[name].kind is not ParameterKind.LIST
        }

    def _import_vpc(self) -> ec2.IVpc:
        subnets = self.cfn_parameters["subnet-ids"].value_as_list
        count = len(self.params["subnet-ids"])
        return ec2.Vpc.from_vpc_attributes(
            self, "ECSVpc",
            vpc_id=self.cfn_parameters["vpc-id"].value_as_string,
            availability_zones=[Fn.select(i, Fn.get_azs()) for i in range(count)],
            public_subnet_ids=[Fn.select(i, subnets) for i in range(count)],
        )

    def _build_compute(self, values: Mapping[str, str], vpc: ec2.IVpc) -> ComputeTopology:
        contract_args = dict(
            region=Aws.REGION,
            ledger_name=self.common.job_table.table_name,
            queue_name=self.common.sqs_queue.queue_name,
        )
        if isinstance(self.mode, ClusterSpec):
            return select_and_build(
                self, self.mode,
                env=discovery_contract(values, **contract_args),
                vpc=vpc,
                queue=self.common.sqs_queue,
                cli_release=self.config.cli_release,
                cluster_name=values["cluster-name"],
                schedule=values["discovery-schedule"],
            )

        capacity = FleetCapacity(
            min_capacity=self.cfn_parameters["min-capacity"].value_as_number,
            max_capacity=self.cfn_parameters["max-capacity"].value_as_number,
            desired_capacity=self.cfn_parameters["desired-capacity"].value_as_number,
        )
        return select_and_build(
            self, self.mode,
            env=worker_contract(values, **contract_args),
            vpc=vpc,
            queue=self.common.sqs_queue,
            cli_release=self.config.cli_release,
            capacity=capacity,
        )

    def _grant_permissions(self, values: Mapping[str, str]) -> PermissionGraph:
        graph = PermissionGraph(self, {self.compute.role_key: self.compute.role})
        resources = TransferResources(
            table=self.common.job_table,
            queue=self.common.sqs_queue,
            source_bucket=s3.Bucket.from_bucket_name(self, "SrcBucket", values["source-bucket"]),
            destination_bucket=s3.Bucket.from_bucket_name(self, "DestBucket", values["destination-bucket"]),
            source_credentials=values["source-credentials"],
            destination_credentials=values["destination-credentials"],
        )
        if isinstance(self.mode, FleetSpec):
            apply_worker_rules(graph, self.compute.role, resources)
        else:
            apply_discovery_rules(graph, self.compute.role, resources)
        logger.info("Granted %d permission(s) to the %s role", len(graph.grants), self.compute.role_key)
        return graph

    def _emit_outputs(self) -> Dict[str, CfnOutput]:
        outputs = {
            "TableName": CfnOutput(
                self, "TableName",
                value=self.common.job_table.table_name,
                description="DynamoDB Table Name",
            ),
            "QueueName": CfnOutput(
                self, "QueueName",
                value=self.common.sqs_queue.queue_name,
                description="Queue Name",
            ),
            "DLQQueueName": CfnOutput(
                self, "DLQQueueName",
                value=self.common.dlq.queue_name,
                description="Dead Letter Queue Name",
            ),
            "AlarmTopicName": CfnOutput(
                self, "AlarmTopicName",
                value=self.common.alarm_topic.topic_name,
                description="Alarm Topic Name",
            ),
        }
        if self.compute.fleet_name is not None:
            outputs["FleetName"] = CfnOutput(
                self, "FleetName",
                value=self.compute.fleet_name,
                description="Worker Auto Scaling Group Name",
            )
        return outputs

    def _apply_tags(self) -> None:
        """Apply consistent tags to all resources."""
        tags = {
            "Application": self.config.app_name,
            "Environment": self.config.environment,
            "ManagedBy": "CDK",
        }

        for key, value in tags.items():
            Tags.of(self).add(key, value)
