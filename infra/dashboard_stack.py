"""CloudWatch dashboard for the transfer pipeline."""

from typing import List, Optional

from aws_cdk import Aws, Duration
from aws_cdk import (
    aws_cloudwatch as cloudwatch,
)
from aws_cdk import (
    aws_sqs as sqs,
)
from constructs import Construct

from transferhub.errors import InvariantViolation
from transferhub.runtime import FleetSpec, RuntimeMode

PERIOD = Duration.minutes(1)


class TransferDashboard(Construct):
    """Queue and DLQ widgets always; fleet widgets only in FLEET mode."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        mode: RuntimeMode,
        queue: sqs.IQueue,
        dlq: sqs.IQueue,
        fleet_name: Optional[str] = None,
    ) -> None:
        super().__init__(scope, construct_id)

        is_fleet = isinstance(mode, FleetSpec)
        if is_fleet and fleet_name is None:
            raise InvariantViolation("fleet mode dashboard needs the fleet name")
        if not is_fleet and fleet_name is not None:
            raise InvariantViolation("cluster mode has no fleet to chart")

        self.dashboard = cloudwatch.Dashboard(
            self, "S3Migration",
            dashboard_name=f"{Aws.STACK_NAME}-Dashboard-{Aws.REGION}",
        )

        self.widget_titles: List[str] = []
        widgets = self._queue_widgets(queue, dlq)
        if fleet_name is not None:
            widgets.extend(self._fleet_widgets(fleet_name))
        self.dashboard.add_widgets(*widgets)

    def _graph(self, title: str, metrics: List[cloudwatch.IMetric]) -> cloudwatch.GraphWidget:
        self.widget_titles.append(title)
        return cloudwatch.GraphWidget(title=title, left=metrics)

    def _queue_widgets(self, queue: sqs.IQueue, dlq: sqs.IQueue) -> List[cloudwatch.GraphWidget]:
        return [
            self._graph("SQS-Jobs", [
                queue.metric_approximate_number_of_messages_visible(period=PERIOD, statistic="Average"),
                queue.metric_approximate_number_of_messages_not_visible(period=PERIOD, statistic="Average"),
            ]),
            self._graph("SQS-DLQ", [
                dlq.metric_approximate_number_of_messages_visible(period=PERIOD, statistic="Average"),
            ]),
        ]

    def _fleet_widgets(self, fleet_name: str) -> List[cloudwatch.GraphWidget]:
        dims = {"AutoScalingGroupName": fleet_name}

        def asg_metric(name: str) -> cloudwatch.Metric:
            return cloudwatch.Metric(
                namespace="AWS/AutoScaling",
                metric_name=name,
                dimensions_map=dims,
                period=PERIOD,
                statistic="Average",
            )

        return [
            self._graph("Auto Scaling Group", [
                asg_metric("GroupDesiredCapacity"),
                asg_metric("GroupInServiceInstances"),
            ]),
            self._graph("Worker CPU Utilization", [
                cloudwatch.Metric(
                    namespace="AWS/EC2",
                    metric_name="CPUUtilization",
                    dimensions_map=dims,
                    period=PERIOD,
                    statistic="Average",
                ),
            ]),
        ]
