"""Least-privilege permission graph between compute roles and resources.

Every grant is recorded as a ``PermissionGrant`` and materialised as a
statement in one inline policy per role. Grants are idempotent on
(role, resource, action set), and only roles registered for the selected
runtime mode can receive grants.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

from aws_cdk import ArnFormat, Stack
from aws_cdk import (
    aws_dynamodb as dynamodb,
)
from aws_cdk import (
    aws_iam as iam,
)
from aws_cdk import (
    aws_s3 as s3,
)
from aws_cdk import (
    aws_sqs as sqs,
)
from constructs import Construct

from transferhub.errors import InvariantViolation

logger = logging.getLogger(__name__)

LEDGER_CRUD_ACTIONS = (
    "dynamodb:BatchGetItem",
    "dynamodb:GetRecords",
    "dynamodb:GetShardIterator",
    "dynamodb:Query",
    "dynamodb:GetItem",
    "dynamodb:Scan",
    "dynamodb:ConditionCheckItem",
    "dynamodb:BatchWriteItem",
    "dynamodb:PutItem",
    "dynamodb:UpdateItem",
    "dynamodb:DeleteItem",
)
QUEUE_SEND_ACTIONS = (
    "sqs:SendMessage",
    "sqs:GetQueueAttributes",
    "sqs:GetQueueUrl",
)
QUEUE_CONSUME_ACTIONS = (
    "sqs:ReceiveMessage",
    "sqs:ChangeMessageVisibility",
    "sqs:GetQueueUrl",
    "sqs:DeleteMessage",
    "sqs:GetQueueAttributes",
)
BUCKET_READ_ACTIONS = (
    "s3:GetObject*",
    "s3:GetBucket*",
    "s3:List*",
)
BUCKET_WRITE_ACTIONS = (
    "s3:DeleteObject*",
    "s3:PutObject",
    "s3:PutObjectLegalHold",
    "s3:PutObjectRetention",
    "s3:PutObjectTagging",
    "s3:PutObjectVersionTagging",
    "s3:Abort*",
)
SECRET_READ_ACTIONS = (
    "secretsmanager:GetSecretValue",
    "secretsmanager:DescribeSecret",
)


class Access(str, Enum):
    READ = "read"
    WRITE = "write"
    READWRITE = "readwrite"


@dataclass(frozen=True)
class PermissionGrant:
    """One recorded grant; ``grantee`` is the role's role key."""
    grantee: str
    resource: str
    actions: FrozenSet[str]
    access: Access


class PermissionGraph:
    """Grant builder scoped to the roles of one runtime mode."""

    def __init__(self, scope: Construct, roles: Mapping[str, iam.IRole]) -> None:
        self._scope = scope
        self._roles = dict(roles)
        self._grants: Dict[Tuple[str, str, FrozenSet[str]], PermissionGrant] = {}
        self._policies: Dict[str, iam.Policy] = {}

    @property
    def grants(self) -> List[PermissionGrant]:
        return list(self._grants.values())

    def grants_for(self, role_key: str) -> List[PermissionGrant]:
        return [g for g in self._grants.values() if g.grantee == role_key]

    def _role_key(self, role: iam.IRole) -> str:
        for key, registered in self._roles.items():
            if registered.node.path == role.node.path:
                return key
        raise InvariantViolation(
            f"role {role.node.path} is not part of the selected runtime mode ({', '.join(self._roles)})"
        )

    def grant(
        self,
        role: iam.IRole,
        resource: str,
        resource_arns: Sequence[str],
        actions: Iterable[str],
        access: Access,
    ) -> PermissionGrant:
        """Grant ``actions`` on ``resource_arns``; repeated identical grants collapse."""
        role_key = self._role_key(role)
        action_set = frozenset(actions)
        key = (role_key, resource, action_set)
        if key in self._grants:
            logger.debug("Skipping duplicate grant %s -> %s", role_key, resource)
            return self._grants[key]

        grant = PermissionGrant(role_key, resource, action_set, access)
        self._grants[key] = grant
        self._policy_for(role_key, role).add_statements(iam.PolicyStatement(
            actions=sorted(action_set),
            resources=list(resource_arns),
        ))
        return grant

    def _policy_for(self, role_key: str, role: iam.IRole) -> iam.Policy:
        if role_key not in self._policies:
            self._policies[role_key] = iam.Policy(
                self._scope, f"{role_key.capitalize()}TransferPolicy",
                roles=[role],
            )
        return self._policies[role_key]

    def _has_actions(self, role_key: str, resource: str, actions: Iterable[str]) -> bool:
        wanted = frozenset(actions)
        return any(g.resource == resource and g.actions == wanted for g in self.grants_for(role_key))

    def grant_ledger_access(self, role: iam.IRole, table: dynamodb.ITable) -> PermissionGrant:
        return self.grant(role, "ledger", [table.table_arn], LEDGER_CRUD_ACTIONS, Access.READWRITE)

    def grant_queue_send(self, role: iam.IRole, queue: sqs.IQueue) -> PermissionGrant:
        if self._has_actions(self._role_key(role), "queue", QUEUE_CONSUME_ACTIONS):
            raise InvariantViolation(f"role {role.node.path} already consumes from the queue")
        return self.grant(role, "queue", [queue.queue_arn], QUEUE_SEND_ACTIONS, Access.WRITE)

    def grant_queue_consume(self, role: iam.IRole, queue: sqs.IQueue) -> PermissionGrant:
        if self._has_actions(self._role_key(role), "queue", QUEUE_SEND_ACTIONS):
            raise InvariantViolation(f"role {role.node.path} already sends to the queue")
        return self.grant(role, "queue", [queue.queue_arn], QUEUE_CONSUME_ACTIONS, Access.READ)

    def grant_bucket_read(self, role: iam.IRole, name: str, bucket: s3.IBucket) -> PermissionGrant:
        return self.grant(
            role, name, [bucket.bucket_arn, bucket.arn_for_objects("*")],
            BUCKET_READ_ACTIONS, Access.READ,
        )

    def grant_bucket_read_write(self, role: iam.IRole, name: str, bucket: s3.IBucket) -> PermissionGrant:
        return self.grant(
            role, name, [bucket.bucket_arn, bucket.arn_for_objects("*")],
            BUCKET_READ_ACTIONS + BUCKET_WRITE_ACTIONS, Access.READWRITE,
        )

    def grant_secret_read(self, role: iam.IRole, name: str, secret_name: str) -> PermissionGrant:
        """Scope to the versioned ARN of one secret; Secrets Manager appends six characters."""
        arn = Stack.of(self._scope).format_arn(
            service="secretsmanager",
            resource="secret",
            resource_name=f"{secret_name}-??????",
            arn_format=ArnFormat.COLON_RESOURCE_NAME,
        )
        return self.grant(role, name, [arn], SECRET_READ_ACTIONS, Access.READ)


@dataclass(frozen=True)
class TransferResources:
    """Resource handles the compute roles are granted access to."""
    table: dynamodb.ITable
    queue: sqs.IQueue
    source_bucket: s3.IBucket
    destination_bucket: s3.IBucket
    source_credentials: str
    destination_credentials: str


def apply_discovery_rules(graph: PermissionGraph, role: iam.IRole, res: TransferResources) -> None:
    """Finder: full ledger, queue send, read both buckets, read credentials."""
    graph.grant_ledger_access(role, res.table)
    graph.grant_queue_send(role, res.queue)
    graph.grant_bucket_read(role, "source-bucket", res.source_bucket)
    graph.grant_bucket_read(role, "destination-bucket", res.destination_bucket)
    graph.grant_secret_read(role, "source-credentials", res.source_credentials)
    graph.grant_secret_read(role, "destination-credentials", res.destination_credentials)


def apply_worker_rules(graph: PermissionGraph, role: iam.IRole, res: TransferResources) -> None:
    """Worker: full ledger, queue consume, read source, read-write destination, read credentials."""
    graph.grant_ledger_access(role, res.table)
    graph.grant_queue_consume(role, res.queue)
    graph.grant_bucket_read(role, "source-bucket", res.source_bucket)
    graph.grant_bucket_read_write(role, "destination-bucket", res.destination_bucket)
    graph.grant_secret_read(role, "source-credentials", res.source_credentials)
    graph.grant_secret_read(role, "destination-credentials", res.destination_credentials)
