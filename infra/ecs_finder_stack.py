"""CLUSTER mode: finder task on an existing ECS cluster."""

from typing import Mapping

from aws_cdk import RemovalPolicy
from aws_cdk import (
    aws_ec2 as ec2,
)
from aws_cdk import (
    aws_ecs as ecs,
)
from aws_cdk import (
    aws_events as events,
)
from aws_cdk import (
    aws_events_targets as targets,
)
from aws_cdk import (
    aws_iam as iam,
)
from aws_cdk import (
    aws_logs as logs,
)
from constructs import Construct

CLI_IMAGE_REPOSITORY = "public.ecr.aws/aws-gcr-solutions/data-transfer-hub-cli"


class DiscoveryTask(Construct):
    """Fargate task definition for the finder, run on a schedule.

    The task definition receives the full discovery environment contract and is
    bound to the named cluster and the configured subnets through the
    EventBridge rule that launches it.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        env: Mapping[str, str],
        vpc: ec2.IVpc,
        cluster_name: str,
        schedule: str,
        cli_release: str,
    ) -> None:
        super().__init__(scope, construct_id)

        self.log_group = logs.LogGroup(
            self, "FinderLogGroup",
            retention=logs.RetentionDays.TWO_WEEKS,
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.task_definition = ecs.FargateTaskDefinition(
            self, "JobFinderTaskDef",
            cpu=1024,
            memory_limit_mib=8192,
            runtime_platform=ecs.RuntimePlatform(
                cpu_architecture=ecs.CpuArchitecture.ARM64,
                operating_system_family=ecs.OperatingSystemFamily.LINUX,
            ),
        )
        self.task_definition.add_container(
            "DefaultContainer",
            image=ecs.ContainerImage.from_registry(f"{CLI_IMAGE_REPOSITORY}:v{cli_release}"),
            command=["run", "-t", "Finder"],
            environment=dict(env),
            logging=ecs.LogDrivers.aws_logs(stream_prefix="ecsJobSender", log_group=self.log_group),
        )

        self.cluster = ecs.Cluster.from_cluster_attributes(
            self, "ECSCluster",
            cluster_name=cluster_name,
            vpc=vpc,
            security_groups=[],
        )

        self.schedule_rule = events.Rule(
            self, "FinderSchedule",
            schedule=events.Schedule.expression(schedule),
            description="Run the Data Transfer Hub finder task",
        )
        self.schedule_rule.add_target(targets.EcsTask(
            cluster=self.cluster,
            task_definition=self.task_definition,
            subnet_selection=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            assign_public_ip=True,
            platform_version=ecs.FargatePlatformVersion.LATEST,
        ))

    @property
    def role(self) -> iam.IRole:
        return self.task_definition.task_role
