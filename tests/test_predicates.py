"""Tests for the event trigger predicate and DLQ alarm policy."""

import itertools

import pytest

from transferhub.parameters import declare_transfer_parameters
from transferhub.predicates import DlqAlarmPolicy, EventTriggerPredicate, TriggerMode


@pytest.mark.parametrize(
    "in_account, source_type, mode",
    list(itertools.product(
        [True, False],
        ["Amazon_S3", "Aliyun_OSS"],
        list(TriggerMode),
    )),
)
def test_trigger_active_only_for_native_in_account_enabled(in_account, source_type, mode):
    predicate = EventTriggerPredicate(in_account, source_type, mode)
    expected = in_account and source_type == "Amazon_S3" and mode is not TriggerMode.DISABLED
    assert predicate.evaluate() is expected


def test_predicate_from_parameters(base_parameters):
    values = dict(base_parameters, **{
        "source-in-current-account": "true",
        "event-trigger-mode": "creations-and-deletions",
    })
    params = declare_transfer_parameters("cluster").validate(values)

    predicate = EventTriggerPredicate.from_parameters(params)

    assert predicate.evaluate() is True
    assert predicate.trigger_mode.includes_deletions


def test_disabled_by_default(base_parameters):
    params = declare_transfer_parameters("fleet").validate(base_parameters)
    assert EventTriggerPredicate.from_parameters(params).evaluate() is False


def test_dlq_alarm_fires_on_any_message():
    policy = DlqAlarmPolicy()

    assert not policy.fires([0])
    assert policy.fires([1])
    assert policy.fires([0, 0, 3])
    assert not policy.fires([5, 0])


def test_dlq_alarm_with_wider_window():
    policy = DlqAlarmPolicy(threshold=2, evaluation_periods=3, datapoints_to_alarm=2)

    assert policy.fires([3, 0, 4])
    assert not policy.fires([3, 2, 1])


@pytest.mark.parametrize("mode,expected", [
    (TriggerMode.DISABLED, ("disabled", "creations")),
    (TriggerMode.CREATIONS, ("disabled", "creations")),
    (TriggerMode.CREATIONS_AND_DELETIONS, ("disabled", "creations-and-deletions")),
])
def test_switchable_modes_keep_the_synthesized_event_types(mode, expected):
    assert mode.switchable_modes() == expected
