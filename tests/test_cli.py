"""Tests for the transfer-plan CLI."""

import json

import pytest

from transferhub.cli import build_plan, main
from transferhub.config import DeploymentConfig
from transferhub.errors import ValidationError


@pytest.fixture
def config_dir(tmp_path, base_parameters):
    lines = ["run_type: cluster", "parameters:"]
    for name, value in base_parameters.items():
        if isinstance(value, list):
            value = ",".join(value)
        lines.append(f"  {name}: {value}")
    (tmp_path / "test.yml").write_text("\n".join(lines) + "\n")
    (tmp_path / "broken.yml").write_text("parameters:\n  alarm-email: nobody\n")
    return tmp_path


def test_cli_help():
    with pytest.raises(SystemExit) as exc_info:
        main(["--help"])
    assert exc_info.value.code == 0


def test_cli_missing_config(clean_env, tmp_path, capsys):
    result = main(["validate", "--env", "missing", "--config-dir", str(tmp_path)])
    assert result == 2
    assert "Configuration file not found" in capsys.readouterr().out


def test_cli_validate(clean_env, config_dir, capsys):
    result = main(["validate", "--env", "test", "--config-dir", str(config_dir)])

    assert result == 0
    assert "valid for cluster mode" in capsys.readouterr().out


def test_cli_validate_reports_all_violations(clean_env, config_dir, capsys):
    result = main(["validate", "--env", "broken", "--config-dir", str(config_dir)])

    out = capsys.readouterr().out
    assert result == 2
    assert "alarm-email" in out
    assert "source-bucket" in out
    assert "subnet-ids" in out


def test_cli_plan_fleet(clean_env, config_dir, capsys):
    result = main(["plan", "--env", "test", "--config-dir", str(config_dir), "--run-type", "fleet"])

    plan = json.loads(capsys.readouterr().out)
    assert result == 0
    assert plan["run_type"] == "fleet"
    assert plan["mode"] == {"min_capacity": 1, "max_capacity": 20, "desired_capacity": 1}
    assert list(plan["environment_contracts"]) == ["worker"]
    assert "FleetName" in plan["outputs"]


def test_build_plan_cluster(base_parameters):
    plan = build_plan(DeploymentConfig(environment="test", parameters=base_parameters))

    assert plan["run_type"] == "cluster"
    assert plan["mode"]["schedule"] == "rate(1 hour)"
    assert plan["event_trigger_active"] is False
    assert plan["environment_contracts"]["discovery"]["JOB_TABLE_NAME"] == "<job-table-name>"
    assert plan["outputs"] == ["TableName", "QueueName", "DLQQueueName", "AlarmTopicName"]


def test_build_plan_rejects_inconsistent_fleet(base_parameters):
    values = dict(base_parameters, **{"min-capacity": 3, "max-capacity": 1})
    with pytest.raises(ValidationError):
        build_plan(DeploymentConfig(parameters=values), run_type="fleet")
