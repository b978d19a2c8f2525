"""Tests for runtime mode selection."""

import pytest

from transferhub.catalog import ParameterSet
from transferhub.errors import InvariantViolation, ValidationError
from transferhub.parameters import declare_transfer_parameters
from transferhub.runtime import (
    ClusterSpec,
    FleetSpec,
    RunType,
    check_capacity_bounds,
    parse_run_type,
    select_runtime_mode,
)


def _params(run_type, values):
    return declare_transfer_parameters(run_type).validate(values)


def test_parse_run_type_is_case_insensitive():
    assert parse_run_type("FLEET") is RunType.FLEET
    assert parse_run_type(" cluster ") is RunType.CLUSTER
    assert parse_run_type(RunType.FLEET) is RunType.FLEET


def test_parse_run_type_rejects_unknown():
    with pytest.raises(ValidationError) as exc_info:
        parse_run_type("lambda")
    assert exc_info.value.violations[0].parameter == "run-type"


def test_cluster_mode(base_parameters):
    values = dict(base_parameters, **{"cluster-name": "transfer"})
    mode = select_runtime_mode("cluster", _params("cluster", values))

    assert isinstance(mode, ClusterSpec)
    assert mode == ClusterSpec(cluster_name="transfer", schedule="rate(1 hour)", subnet_count=2)
    assert mode.run_type is RunType.CLUSTER


def test_fleet_mode_defaults(base_parameters):
    mode = select_runtime_mode("fleet", _params("fleet", base_parameters))

    assert isinstance(mode, FleetSpec)
    assert (mode.min_capacity, mode.max_capacity, mode.desired_capacity) == (1, 20, 1)
    assert mode.run_type is RunType.FLEET


def test_fleet_min_above_max_fails_before_any_resource(base_parameters):
    values = dict(base_parameters, **{"min-capacity": 5, "max-capacity": 2, "desired-capacity": 3})

    with pytest.raises(ValidationError) as exc_info:
        select_runtime_mode("fleet", _params("fleet", values))

    rules = {(v.parameter, v.rule) for v in exc_info.value.violations}
    assert ("min-capacity", "capacity_bounds") in rules
    assert ("desired-capacity", "capacity_bounds") in rules


def test_fleet_desired_outside_bounds(base_parameters):
    values = dict(base_parameters, **{"min-capacity": 1, "max-capacity": 4, "desired-capacity": 9})

    with pytest.raises(ValidationError) as exc_info:
        select_runtime_mode("fleet", _params("fleet", values))
    assert exc_info.value.parameters == ("desired-capacity",)


def test_fleet_spec_guards_direct_construction():
    with pytest.raises(InvariantViolation):
        FleetSpec(min_capacity=3, max_capacity=1, desired_capacity=1, subnet_count=2)


def test_capacity_check_waits_for_all_three_bounds():
    assert check_capacity_bounds({"min-capacity": 5, "max-capacity": 2}) == []
    problems = check_capacity_bounds({"min-capacity": 5, "max-capacity": 2, "desired-capacity": 2})
    assert [(p.parameter, p.rule) for p in problems] == [
        ("min-capacity", "capacity_bounds"),
        ("desired-capacity", "capacity_bounds"),
    ]


def test_selection_still_guards_unchecked_parameter_sets():
    params = ParameterSet({"subnet-ids": ("a", "b"), "min-capacity": 3, "max-capacity": 1, "desired-capacity": 2})

    with pytest.raises(ValidationError) as exc_info:
        select_runtime_mode("fleet", params)
    assert "min-capacity" in exc_info.value.parameters
