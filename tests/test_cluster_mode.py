"""Synthesis tests for CLUSTER mode (finder task on an existing ECS cluster)."""

import pytest
from aws_cdk import assertions

from infra.permissions import QUEUE_SEND_ACTIONS
from transferhub.errors import ValidationError

Match = assertions.Match


@pytest.fixture
def parameters(base_parameters):
    return dict(base_parameters, **{"cluster-name": "transfer-cluster", "discovery-schedule": "rate(30 minutes)"})


@pytest.fixture
def stack(build_stack, parameters):
    return build_stack(parameters)


@pytest.fixture
def template(stack):
    return assertions.Template.from_stack(stack)


def _container_environment(template):
    task_defs = template.find_resources("AWS::ECS::TaskDefinition")
    assert len(task_defs) == 1
    container = next(iter(task_defs.values()))["Properties"]["ContainerDefinitions"][0]
    return {e["Name"]: e["Value"] for e in container["Environment"]}, container


def test_only_cluster_branch_is_built(template):
    template.resource_count_is("AWS::ECS::TaskDefinition", 1)
    template.resource_count_is("AWS::AutoScaling::AutoScalingGroup", 0)
    template.resource_count_is("AWS::EC2::LaunchTemplate", 0)


def test_finder_container(template):
    env, container = _container_environment(template)

    assert container["Image"] == "public.ecr.aws/aws-gcr-solutions/data-transfer-hub-cli:v1.0.0"
    assert container["Command"] == ["run", "-t", "Finder"]
    assert env["SRC_BUCKET"] == {"Ref": "sourceBucket"}
    assert env["FINDER_DEPTH"] == {"Ref": "discoveryDepth"}
    assert env["JOB_TABLE_NAME"] == {"Ref": "S3TransferTable"}
    assert env["AWS_DEFAULT_REGION"] == {"Ref": "AWS::Region"}
    assert "WORKER_NUMBER" not in env

    template.has_resource_properties("AWS::ECS::TaskDefinition", {
        "Cpu": "1024",
        "Memory": "8192",
        "RequiresCompatibilities": ["FARGATE"],
        "RuntimePlatform": {"CpuArchitecture": "ARM64", "OperatingSystemFamily": "LINUX"},
    })


def test_finder_runs_on_schedule(template):
    template.has_resource_properties("AWS::Events::Rule", {
        "ScheduleExpression": {"Ref": "discoverySchedule"},
        "Targets": [Match.object_like({
            "EcsParameters": Match.object_like({"LaunchType": "FARGATE", "TaskCount": 1}),
        })],
    })


def test_parameters_default_to_validated_values(template):
    params = template.to_json()["Parameters"]

    assert params["sourceBucket"]["Default"] == "src-bucket"
    assert params["clusterName"]["Default"] == "transfer-cluster"
    assert params["discoverySchedule"]["Default"] == "rate(30 minutes)"
    assert params["subnetIds"]["Type"] == "List<AWS::EC2::Subnet::Id>"
    assert params["subnetIds"]["Default"] == "subnet-aaaa1111,subnet-bbbb2222"
    assert params["vpcId"]["Type"] == "AWS::EC2::VPC::Id"
    assert params["workerThreads"]["Type"] == "Number"
    assert params["workerThreads"]["Default"] == 4
    assert params["sourceType"]["AllowedValues"] == ["Amazon_S3", "Aliyun_OSS", "Qiniu_Kodo", "Tencent_COS"]
    assert "maxCapacity" not in params


def test_parameter_interface_metadata(template):
    interface = template.to_json()["Metadata"]["AWS::CloudFormation::Interface"]
    groups = {g["Label"]["default"]: g["Parameters"] for g in interface["ParameterGroups"]}

    assert groups["ECS Cluster Information"] == ["clusterName", "discoverySchedule"]
    assert groups["Network Information"] == ["vpcId", "subnetIds"]
    assert interface["ParameterLabels"]["sourceBucket"] == {"default": "Source Bucket"}


def test_outputs_have_no_fleet_name(template):
    assert set(template.find_outputs("*")) == {"TableName", "QueueName", "DLQQueueName", "AlarmTopicName"}


def test_finder_role_sends_but_never_consumes(stack, template):
    grants = stack.permissions.grants_for("discovery")
    assert {g.resource for g in grants} == {
        "ledger", "queue", "source-bucket", "destination-bucket",
        "source-credentials", "destination-credentials",
    }
    assert stack.permissions.grants_for("worker") == []

    statements = [
        s
        for p in template.find_resources("AWS::IAM::Policy").values()
        for s in p["Properties"]["PolicyDocument"]["Statement"]
    ]
    actions = [set(s["Action"]) if isinstance(s["Action"], list) else {s["Action"]} for s in statements]
    assert set(QUEUE_SEND_ACTIONS) in actions
    assert not any("sqs:ReceiveMessage" in a for a in actions)


def test_tags_applied(template):
    template.has_resource_properties("AWS::SQS::Queue", {
        "Tags": Match.array_with([{"Key": "ManagedBy", "Value": "CDK"}]),
    })


def test_invalid_parameters_leave_no_stack(build_stack, base_parameters):
    values = dict(base_parameters, **{"alarm-email": "nobody", "subnet-ids": ["subnet-1"]})

    with pytest.raises(ValidationError) as exc_info:
        build_stack(values)

    assert set(exc_info.value.parameters) == {"alarm-email", "subnet-ids"}
