"""Tests for the permission graph."""

import pytest
from aws_cdk import App, Stack, assertions
from aws_cdk import aws_dynamodb as dynamodb
from aws_cdk import aws_iam as iam
from aws_cdk import aws_s3 as s3
from aws_cdk import aws_sqs as sqs

from infra.permissions import (
    QUEUE_CONSUME_ACTIONS,
    QUEUE_SEND_ACTIONS,
    Access,
    PermissionGraph,
    TransferResources,
    apply_discovery_rules,
    apply_worker_rules,
)
from transferhub.errors import InvariantViolation


@pytest.fixture
def stack():
    return Stack(App(), "PermissionTest")


@pytest.fixture
def role(stack):
    return iam.Role(stack, "FinderRole", assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"))


@pytest.fixture
def queue(stack):
    return sqs.Queue(stack, "Queue")


@pytest.fixture
def resources(stack, queue):
    return TransferResources(
        table=dynamodb.Table(
            stack, "Ledger",
            partition_key=dynamodb.Attribute(name="ObjectKey", type=dynamodb.AttributeType.STRING),
        ),
        queue=queue,
        source_bucket=s3.Bucket.from_bucket_name(stack, "Src", "src-bucket"),
        destination_bucket=s3.Bucket.from_bucket_name(stack, "Dest", "dest-bucket"),
        source_credentials="src-secret",
        destination_credentials="dest-secret",
    )


def _statements(stack):
    policies = assertions.Template.from_stack(stack).find_resources("AWS::IAM::Policy")
    return [s for p in policies.values() for s in p["Properties"]["PolicyDocument"]["Statement"]]


def test_repeated_grant_is_idempotent(stack, role, queue):
    graph = PermissionGraph(stack, {"discovery": role})

    first = graph.grant_queue_send(role, queue)
    second = graph.grant_queue_send(role, queue)

    assert first is second
    assert len(graph.grants) == 1
    assert first.access is Access.WRITE
    assert first.actions == frozenset(QUEUE_SEND_ACTIONS)
    assert len(_statements(stack)) == 1


def test_unregistered_role_is_rejected(stack, role, queue):
    stranger = iam.Role(stack, "WorkerRole", assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"))
    graph = PermissionGraph(stack, {"discovery": role})

    with pytest.raises(InvariantViolation, match="not part of the selected runtime mode"):
        graph.grant_queue_consume(stranger, queue)
    assert graph.grants == []


def test_role_cannot_both_send_and_consume(stack, role, queue):
    graph = PermissionGraph(stack, {"discovery": role})
    graph.grant_queue_send(role, queue)

    with pytest.raises(InvariantViolation):
        graph.grant_queue_consume(role, queue)


def test_discovery_rules(stack, role, resources):
    graph = PermissionGraph(stack, {"discovery": role})
    apply_discovery_rules(graph, role, resources)

    by_resource = {g.resource: g for g in graph.grants_for("discovery")}
    assert set(by_resource) == {
        "ledger", "queue", "source-bucket", "destination-bucket",
        "source-credentials", "destination-credentials",
    }
    assert by_resource["queue"].actions == frozenset(QUEUE_SEND_ACTIONS)
    assert by_resource["destination-bucket"].access is Access.READ
    assert not any(a.startswith("s3:Put") for g in graph.grants for a in g.actions)


def test_worker_rules(stack, resources):
    worker = iam.Role(stack, "WorkerRole", assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"))
    graph = PermissionGraph(stack, {"worker": worker})
    apply_worker_rules(graph, worker, resources)

    by_resource = {g.resource: g for g in graph.grants_for("worker")}
    assert by_resource["queue"].actions == frozenset(QUEUE_CONSUME_ACTIONS)
    assert by_resource["source-bucket"].access is Access.READ
    assert by_resource["destination-bucket"].access is Access.READWRITE
    assert "s3:PutObject" in by_resource["destination-bucket"].actions


def test_secret_grant_is_scoped_to_one_secret(stack, role, resources):
    graph = PermissionGraph(stack, {"discovery": role})
    graph.grant_secret_read(role, "source-credentials", resources.source_credentials)

    statement = _statements(stack)[0]
    assert sorted(statement["Action"]) == ["secretsmanager:DescribeSecret", "secretsmanager:GetSecretValue"]
    rendered = str(statement["Resource"])
    assert ":secret:src-secret-??????" in rendered
