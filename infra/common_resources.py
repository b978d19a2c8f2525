"""Shared resources consumed by every compute mode.

- DynamoDB job ledger keyed by object key
- SQS work queue with a dead-letter queue
- KMS key and SNS topic for alarm notifications
- CloudWatch alarm on dead-lettered messages
"""

from aws_cdk import Aws, Duration, RemovalPolicy
from aws_cdk import (
    aws_cloudwatch as cloudwatch,
)
from aws_cdk import (
    aws_cloudwatch_actions as cloudwatch_actions,
)
from aws_cdk import (
    aws_dynamodb as dynamodb,
)
from aws_cdk import (
    aws_iam as iam,
)
from aws_cdk import (
    aws_kms as kms,
)
from aws_cdk import (
    aws_sns as sns,
)
from aws_cdk import (
    aws_sns_subscriptions as sns_subs,
)
from aws_cdk import (
    aws_sqs as sqs,
)
from constructs import Construct

from transferhub.predicates import DlqAlarmPolicy

# Long enough for the worst-case single-object transfer.
QUEUE_VISIBILITY = Duration.minutes(15)
DLQ_VISIBILITY = Duration.minutes(30)
RETENTION = Duration.days(14)
MAX_RECEIVE_COUNT = 5

KEY_USE_ACTIONS = (
    "kms:GenerateDataKey*",
    "kms:Decrypt",
    "kms:Encrypt",
)
KEY_ADMIN_ACTIONS = (
    "kms:Create*",
    "kms:Describe*",
    "kms:Enable*",
    "kms:List*",
    "kms:Put*",
    "kms:Update*",
    "kms:Revoke*",
    "kms:Disable*",
    "kms:Get*",
    "kms:Delete*",
    "kms:TagResource",
    "kms:UntagResource",
    "kms:ScheduleKeyDeletion",
    "kms:CancelKeyDeletion",
)


class CommonResources(Construct):
    """Job ledger, work queue, DLQ and alarm channel."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        alarm_email: str,
        alarm_policy: DlqAlarmPolicy = DlqAlarmPolicy(),
    ) -> None:
        super().__init__(scope, construct_id)

        self.alarm_policy = alarm_policy
        self.job_table = self._create_job_table()
        self.dlq, self.sqs_queue = self._create_queues()
        self.key = self._create_topic_key()
        self.alarm_topic = self._create_alarm_topic(alarm_email)
        self.dlq_alarm = self._create_dlq_alarm()

    def _create_job_table(self) -> dynamodb.Table:
        table = dynamodb.Table(
            self, "S3TransferTable",
            partition_key=dynamodb.Attribute(name="ObjectKey", type=dynamodb.AttributeType.STRING),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.DESTROY,
            encryption=dynamodb.TableEncryption.DEFAULT,
            point_in_time_recovery=True,
        )
        table.node.default_child.override_logical_id("S3TransferTable")
        return table

    def _create_queues(self):
        dlq = sqs.Queue(
            self, "S3TransferQueueDLQ",
            visibility_timeout=DLQ_VISIBILITY,
            retention_period=RETENTION,
            encryption=sqs.QueueEncryption.KMS_MANAGED,
        )
        dlq.node.default_child.override_logical_id("S3TransferQueueDLQ")

        queue = sqs.Queue(
            self, "S3TransferQueue",
            visibility_timeout=QUEUE_VISIBILITY,
            retention_period=RETENTION,
            dead_letter_queue=sqs.DeadLetterQueue(queue=dlq, max_receive_count=MAX_RECEIVE_COUNT),
        )
        queue.node.default_child.override_logical_id("S3TransferQueue")
        return dlq, queue

    def _create_topic_key(self) -> kms.Key:
        """Rotating key; SNS and CloudWatch use it, the account only administers it."""
        return kms.Key(
            self, "SNSTopicEncryptionKey",
            enable_key_rotation=True,
            enabled=True,
            alias=f"alias/dth/sns/{Aws.STACK_NAME}",
            policy=iam.PolicyDocument(
                assign_sids=True,
                statements=[
                    iam.PolicyStatement(
                        actions=list(KEY_USE_ACTIONS),
                        resources=["*"],
                        effect=iam.Effect.ALLOW,
                        principals=[
                            iam.ServicePrincipal("sns.amazonaws.com"),
                            iam.ServicePrincipal("cloudwatch.amazonaws.com"),
                        ],
                    ),
                    # Without an account statement the key could never be updated or deleted.
                    iam.PolicyStatement(
                        actions=list(KEY_ADMIN_ACTIONS),
                        resources=["*"],
                        effect=iam.Effect.ALLOW,
                        principals=[iam.AccountRootPrincipal()],
                    ),
                ],
            ),
        )

    def _create_alarm_topic(self, alarm_email: str) -> sns.Topic:
        topic = sns.Topic(
            self, "S3TransferAlarmTopic",
            master_key=self.key,
            display_name=f"Data Transfer Hub Alarm ({Aws.STACK_NAME})",
        )
        topic.node.default_child.override_logical_id("S3TransferAlarmTopic")
        topic.add_subscription(sns_subs.EmailSubscription(alarm_email))
        return topic

    def _create_dlq_alarm(self) -> cloudwatch.Alarm:
        """Any dead-lettered message notifies the operator."""
        alarm = cloudwatch.Alarm(
            self, "S3TransferDLQAlarm",
            metric=self.dlq.metric_approximate_number_of_messages_visible(),
            threshold=self.alarm_policy.threshold,
            comparison_operator=cloudwatch.ComparisonOperator.GREATER_THAN_THRESHOLD,
            evaluation_periods=self.alarm_policy.evaluation_periods,
            datapoints_to_alarm=self.alarm_policy.datapoints_to_alarm,
            alarm_description="Messages were moved to the transfer dead-letter queue",
        )
        alarm.add_alarm_action(cloudwatch_actions.SnsAction(self.alarm_topic))
        return alarm
