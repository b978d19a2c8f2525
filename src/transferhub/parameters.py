"""Declarations of every deployment parameter."""

from typing import Union

from .catalog import ParameterCatalog, ParameterCatalogBuilder, ParameterKind
from .runtime import RunType, check_capacity_bounds, parse_run_type

SOURCE_TYPES = ("Amazon_S3", "Aliyun_OSS", "Qiniu_Kodo", "Tencent_COS")
STORAGE_CLASSES = ("STANDARD", "STANDARD_IA", "ONEZONE_IA", "INTELLIGENT_TIERING")
CANNED_ACLS = (
    "private",
    "public-read",
    "public-read-write",
    "authenticated-read",
    "aws-exec-read",
    "bucket-owner-read",
    "bucket-owner-full-control",
)
TRIGGER_MODES = ("disabled", "creations", "creations-and-deletions")
BOOLEAN = ("true", "false")

EMAIL_PATTERN = r"\w[-\w.+]*@([A-Za-z0-9][-A-Za-z0-9]+\.)+[A-Za-z]{2,14}"
SCHEDULE_PATTERN = r"(rate|cron)\(.+\)"

SOURCE = "Source Information"
DESTINATION = "Destination Information"
CLUSTER = "ECS Cluster Information"
NETWORK = "Network Information"
NOTIFICATION = "Notification Information"
ADVANCED = "Advanced Options"


def declare_transfer_parameters(run_type: Union[str, RunType]) -> ParameterCatalog:
    """Declare the full parameter catalog for the given run type.

    Capacity bounds only exist for FLEET, the discovery schedule only for
    CLUSTER. Everything else is shared.
    """
    run_type = parse_run_type(run_type)
    b = ParameterCatalogBuilder()
    S, N, L, E = ParameterKind.STRING, ParameterKind.NUMBER, ParameterKind.LIST, ParameterKind.ENUM

    b.declare("source-type", E, label="Source Type", group=SOURCE, default="Amazon_S3",
              allowed_values=SOURCE_TYPES,
              description="Choose type of source storage, including Amazon S3, Aliyun OSS, Qiniu Kodo, Tencent COS")
    b.declare("source-bucket", S, label="Source Bucket", group=SOURCE,
              description="Source Bucket Name")
    b.declare("source-prefix", S, label="Source Prefix", group=SOURCE, default="",
              description="Source Prefix (Optional)")
    b.declare("source-region", S, label="Source Region", group=SOURCE, default="",
              description="Source Region Name")
    b.declare("source-endpoint", S, label="Source Endpoint URL", group=SOURCE, default="",
              description="Source Endpoint URL (Optional), leave blank unless you want to provide a custom Endpoint URL")
    b.declare("source-in-current-account", E, label="Source In Current Account", group=SOURCE,
              default="false", allowed_values=BOOLEAN,
              description="Source Bucket in current account? If not, you should provide a credential with read access")
    b.declare("source-credentials", S, label="Source Credentials", group=SOURCE, default="",
              description="The secret name in Secrets Manager used to keep AK/SK credentials for Source Bucket")

    b.declare("destination-bucket", S, label="Destination Bucket", group=DESTINATION,
              description="Destination Bucket Name")
    b.declare("destination-prefix", S, label="Destination Prefix", group=DESTINATION, default="",
              description="Destination Prefix (Optional)")
    b.declare("destination-region", S, label="Destination Region", group=DESTINATION, default="",
              description="Destination Region Name")
    b.declare("destination-in-current-account", E, label="Destination In Current Account",
              group=DESTINATION, default="true", allowed_values=BOOLEAN,
              description="Destination Bucket in current account? If not, you should provide a credential with read and write access")
    b.declare("destination-credentials", S, label="Destination Credentials", group=DESTINATION, default="",
              description="The secret name in Secrets Manager used to keep AK/SK credentials for Destination Bucket")
    b.declare("destination-storage-class", E, label="Destination Storage Class", group=DESTINATION,
              default="STANDARD", allowed_values=STORAGE_CLASSES,
              description="Destination Storage Class, Default to STANDARD")
    b.declare("destination-acl", E, label="Destination Access Control List", group=DESTINATION,
              default="bucket-owner-full-control", allowed_values=CANNED_ACLS,
              description="Destination Access Control List")

    b.declare("cluster-name", S, label="ECS Cluster Name", group=CLUSTER, default="",
              description="ECS Cluster Name to run ECS task (Please make sure the cluster exists)")
    if run_type is RunType.CLUSTER:
        b.declare("discovery-schedule", S, label="Discovery Schedule", group=CLUSTER,
                  default="rate(1 hour)", pattern=SCHEDULE_PATTERN,
                  description="EventBridge schedule expression used to run the finder task")

    b.declare("vpc-id", S, label="VPC ID", group=NETWORK, cfn_type="AWS::EC2::VPC::Id",
              description="VPC ID to run ECS task and EC2 instances, e.g. vpc-bef13dc7")
    b.declare("subnet-ids", L, label="Subnet IDs", group=NETWORK, min_items=2,
              cfn_type="List<AWS::EC2::Subnet::Id>",
              description="Subnet IDs to run ECS task and EC2 instances. Please provide two subnets at least")

    b.declare("alarm-email", S, label="Alarm Email", group=NOTIFICATION, pattern=EMAIL_PATTERN,
              description="Error notification will be sent to this email address")

    b.declare("event-trigger-mode", E, label="Enable S3 Event", group=SOURCE, default="disabled",
              allowed_values=TRIGGER_MODES,
              description="Whether to enable S3 Event to trigger the replication. Only applicable if source is in current account")

    b.declare("include-metadata", E, label="Include Metadata", group=ADVANCED, default="true",
              allowed_values=BOOLEAN,
              description="Add replication of object metadata, there will be additional API calls")
    b.declare("discovery-depth", N, label="Finder Depth", group=ADVANCED, default=0, minimum=0,
              description="The depth of sub folders to compare in parallel. 0 means comparing all objects in sequence")
    b.declare("discovery-parallelism", N, label="Finder Number", group=ADVANCED, default=1, minimum=1,
              description="The number of finder threads to run in parallel")
    b.declare("worker-threads", N, label="Worker Number", group=ADVANCED, default=4, minimum=1,
              description="The number of worker threads to run in one worker node/instance")

    if run_type is RunType.FLEET:
        b.declare("max-capacity", N, label="Maximum Capacity", group=ADVANCED, default=20, minimum=0,
                  description="Maximum Capacity for Auto Scaling Group")
        b.declare("min-capacity", N, label="Minimum Capacity", group=ADVANCED, default=1, minimum=0,
                  description="Minimum Capacity for Auto Scaling Group")
        b.declare("desired-capacity", N, label="Desired Capacity", group=ADVANCED, default=1, minimum=0,
                  description="Desired Capacity for Auto Scaling Group")
        b.add_check(check_capacity_bounds)

    return b.build()
