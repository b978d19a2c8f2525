"""Boolean policies evaluated on concrete values.

These mirror what the synthesized template evaluates at deploy time
(``UseS3Event`` condition, DLQ alarm), so the same decision can be checked
without CloudFormation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

from .catalog import ParameterSet

NATIVE_SOURCE_TYPE = "Amazon_S3"


class TriggerMode(str, Enum):
    DISABLED = "disabled"
    CREATIONS = "creations"
    CREATIONS_AND_DELETIONS = "creations-and-deletions"

    @property
    def includes_deletions(self) -> bool:
        return self is TriggerMode.CREATIONS_AND_DELETIONS

    def switchable_modes(self) -> Tuple[str, ...]:
        """Modes a synthesized template can be redeployed with.

        The event types are fixed at synthesis, so a template can only be
        switched off or back to the subscription it was built for.
        """
        subscribed = TriggerMode.CREATIONS_AND_DELETIONS if self.includes_deletions else TriggerMode.CREATIONS
        return (TriggerMode.DISABLED.value, subscribed.value)


@dataclass(frozen=True)
class EventTriggerPredicate:
    """Gate for the bucket-event sub-topology.

    True only when the source bucket is in the current account, the source is
    native S3 and a trigger mode other than ``disabled`` was chosen.
    """
    in_current_account: bool
    source_type: str
    trigger_mode: TriggerMode

    @classmethod
    def from_parameters(cls, params: ParameterSet) -> "EventTriggerPredicate":
        return cls(
            in_current_account=params.flag("source-in-current-account"),
            source_type=params["source-type"],
            trigger_mode=TriggerMode(params["event-trigger-mode"]),
        )

    def evaluate(self) -> bool:
        return (
            self.in_current_account
            and self.source_type == NATIVE_SOURCE_TYPE
            and self.trigger_mode is not TriggerMode.DISABLED
        )


@dataclass(frozen=True)
class DlqAlarmPolicy:
    """Zero-tolerance alarm on dead-lettered messages."""
    threshold: int = 0
    evaluation_periods: int = 1
    datapoints_to_alarm: int = 1

    def breaches(self, visible_count: int) -> bool:
        return visible_count > self.threshold

    def fires(self, visible_counts: Sequence[int]) -> bool:
        """Evaluate the most recent ``evaluation_periods`` datapoints."""
        window = list(visible_counts)[-self.evaluation_periods:]
        return sum(1 for count in window if self.breaches(count)) >= self.datapoints_to_alarm
