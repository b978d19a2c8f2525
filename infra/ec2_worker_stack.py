"""FLEET mode: EC2 worker pool scaling on queue depth."""

from typing import Mapping, Union

from aws_cdk import Duration
from aws_cdk import (
    aws_autoscaling as autoscaling,
)
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

CLI_DOWNLOAD_BASE = "https://aws-gcr-solutions.s3.amazonaws.com/data-transfer-hub-cli"
WORKER_ENV_FILE = "/home/ec2-user/worker.env"
ENV_DELIMITER = "DTH_WORKER_ENV"

# (lower bound of visible messages, instances to add); empty queue scales in fully
SCALE_OUT_STEPS = ((100, 1), (500, 5), (2000, 10))

Number = Union[int, float]


def worker_user_data(env: Mapping[str, str], cli_release: str) -> ec2.UserData:
    """Boot script: download the CLI, write the contract, start the worker.

    The contract goes through a quoted heredoc and is loaded with ``read -r``,
    so resolved values reach the worker verbatim and are never parsed as shell.
    """
    for name, value in env.items():
        if "\n" in value:
            raise InvariantViolation(f"worker environment value for {name} spans multiple lines")

    archive = f"dthcli_{cli_release}_linux_arm64.tar.gz"
    user_data = ec2.UserData.for_linux()
    user_data.add_commands(
        "yum update -y",
        "cd /home/ec2-user/",
        f"curl -LO {CLI_DOWNLOAD_BASE}/v{cli_release}/{archive}",
        f"tar zxvf {archive}",
        f"cat > {WORKER_ENV_FILE} <<'{ENV_DELIMITER}'",
        *[f"{name}={value}" for name, value in env.items()],
        ENV_DELIMITER,
        f"while IFS= read -r line; do export \"${{line%%=*}}=${{line#*=}}\"; done < {WORKER_ENV_FILE}",
        "./dthcli run -t Worker |& tee -a /home/ec2-user/worker.log",
    )
    return user_data


class WorkerFleet(Construct):
    """Auto Scaling group of workers consuming the transfer queue."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        env: Mapping[str, str],
        vpc: ec2.IVpc,
        queue: sqs.IQueue,
        min_capacity: Number,
        max_capacity: Number,
        desired_capacity: Number,
        cli_release: str,
        instance_type: str = "t4g.micro",
    ) -> None:
        super().__init__(scope, construct_id)

        self.role = iam.Role(
            self, "WorkerRole",
            assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("AmazonSSMManagedInstanceCore")
            ],
        )

        self.security_group = ec2.SecurityGroup(
            self, "S3TransferWorkerSG",
            vpc=vpc,
            description="Security Group for Data Transfer Hub worker instances",
            allow_all_outbound=True,
        )

        launch_template = ec2.LaunchTemplate(
            self, "WorkerLaunchTemplate",
            instance_type=ec2.InstanceType(instance_type),
            machine_image=ec2.MachineImage.latest_amazon_linux2023(
                cpu_type=ec2.AmazonLinuxCpuType.ARM_64,
            ),
            user_data=worker_user_data(env, cli_release),
            security_group=self.security_group,
            role=self.role,
            require_imdsv2=True,
        )

        self.worker_asg = autoscaling.AutoScalingGroup(
            self, "S3RepWorkerASG",
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            launch_template=launch_template,
            min_capacity=min_capacity,
            max_capacity=max_capacity,
            desired_capacity=desired_capacity,
        )

        self.worker_asg.scale_on_metric(
            "ScaleOutSQS",
            metric=queue.metric_approximate_number_of_messages_visible(
                period=Duration.minutes(1),
                statistic="Sum",
            ),
            scaling_steps=[
                autoscaling.ScalingInterval(upper=0, change=-10000),
                *[autoscaling.ScalingInterval(lower=lower, change=change) for lower, change in SCALE_OUT_STEPS],
            ],
            adjustment_type=autoscaling.AdjustmentType.CHANGE_IN_CAPACITY,
        )

    @property
    def fleet_name(self) -> str:
        return self.worker_asg.auto_scaling_group_name
