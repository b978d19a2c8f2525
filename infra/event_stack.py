"""Optional S3 event ingestion into the transfer queue.

The nested stack is always synthesized in full. Whether CloudFormation creates
it is decided by the ``UseS3Event`` condition, so switching the trigger on only
requires a parameter change, not a new template.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import jsii
from aws_cdk import CfnCondition, Fn, NestedStack
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

from transferhub.predicates import NATIVE_SOURCE_TYPE, EventTriggerPredicate, TriggerMode

logger = logging.getLogger(__name__)


def event_types_for(mode: TriggerMode) -> List[s3.EventType]:
    """Created objects always; removals too for creations-and-deletions."""
    types = [s3.EventType.OBJECT_CREATED]
    if mode.includes_deletions:
        types.append(s3.EventType.OBJECT_REMOVED)
    return types


@jsii.implements(s3.IBucketNotificationDestination)
class QueueNotificationDestination:
    """Queue destination whose send permission lives in the event stack.

    ``s3_notifications.SqsDestination`` would add the permission to the queue's
    own policy in the parent stack, outside the conditional sub-topology.
    """

    def __init__(self, queue: sqs.IQueue, policy: sqs.QueuePolicy) -> None:
        self._queue = queue
        self._policy = policy

    def bind(self, scope: Construct, bucket: s3.IBucket) -> s3.BucketNotificationDestinationConfig:
        return s3.BucketNotificationDestinationConfig(
            arn=self._queue.queue_arn,
            type=s3.BucketNotificationDestinationType.QUEUE,
            dependencies=[self._policy],
        )


class EventStack(NestedStack):
    """Bucket notifications (prefix filtered) forwarded to the work queue."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        bucket_name: str,
        prefix: str,
        queue: sqs.IQueue,
        event_types: List[s3.EventType],
    ) -> None:
        super().__init__(scope, construct_id)

        self.bucket = s3.Bucket.from_bucket_name(self, "EventSourceBucket", bucket_name)

        self.queue_policy = sqs.QueuePolicy(self, "S3EventQueuePolicy", queues=[queue])
        self.queue_policy.document.add_statements(iam.PolicyStatement(
            sid="AllowS3EventNotifications",
            principals=[iam.ServicePrincipal("s3.amazonaws.com")],
            actions=["sqs:SendMessage", "sqs:GetQueueAttributes", "sqs:GetQueueUrl"],
            resources=[queue.queue_arn],
            conditions={"ArnLike": {"aws:SourceArn": self.bucket.bucket_arn}},
        ))

        destination = QueueNotificationDestination(queue, self.queue_policy)
        for event_type in event_types:
            self.bucket.add_event_notification(
                event_type,
                destination,
                s3.NotificationKeyFilter(prefix=prefix),
            )


@dataclass(frozen=True)
class EventSubTopology:
    """The built event sub-topology with the predicate that gates it."""
    stack: EventStack
    condition: CfnCondition
    predicate: EventTriggerPredicate

    @property
    def active(self) -> bool:
        return self.predicate.evaluate()

    def if_active(self) -> Optional["EventSubTopology"]:
        return self if self.active else None


def compose_event_trigger(
    scope: Construct,
    *,
    predicate: EventTriggerPredicate,
    in_current_account: str,
    source_type: str,
    trigger_mode: str,
    queue: sqs.IQueue,
    bucket_name: str,
    prefix: str,
) -> EventSubTopology:
    """Build the event sub-topology and gate it on ``UseS3Event``.

    ``in_current_account``, ``source_type`` and ``trigger_mode`` are the
    template-level values (parameter references) evaluated by CloudFormation;
    ``predicate`` is the same decision over the concrete values.
    """
    mode = predicate.trigger_mode
    if mode is TriggerMode.DISABLED:
        # inactive: subscribe creations so enabling it changes no resource
        mode = TriggerMode.CREATIONS

    stack = EventStack(
        scope, "EventStack",
        bucket_name=bucket_name,
        prefix=prefix,
        queue=queue,
        event_types=event_types_for(mode),
    )

    condition = CfnCondition(
        scope, "UseS3Event",
        expression=Fn.condition_and(
            Fn.condition_equals("true", in_current_account),
            Fn.condition_equals(NATIVE_SOURCE_TYPE, source_type),
            Fn.condition_not(Fn.condition_equals(TriggerMode.DISABLED.value, trigger_mode)),
        ),
    )
    stack.nested_stack_resource.cfn_options.condition = condition
    stack.nested_stack_resource.override_logical_id("EventStack")

    sub = EventSubTopology(stack=stack, condition=condition, predicate=predicate)
    logger.info("Event trigger composed (active=%s, mode=%s)", sub.active, predicate.trigger_mode.value)
    return sub
