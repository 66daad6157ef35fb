"""Unit tests for the command line entrypoint."""

import json

import pytest

from modbus_exporter import main as cli
from modbus_exporter.schemas.modbus_models import RegisterKind


@pytest.fixture
def env(monkeypatch, tmp_path, input_document, holding_document):
    """Point the exporter at schema files in a clean working directory."""
    monkeypatch.chdir(tmp_path)
    input_path = tmp_path / "input_registers.json"
    holding_path = tmp_path / "holding_registers.json"
    input_path.write_text(json.dumps(input_document))
    holding_path.write_text(json.dumps(holding_document))

    monkeypatch.setenv("INPUT_REGISTERS_PATH", str(input_path))
    monkeypatch.setenv("HOLDING_REGISTERS_PATH", str(holding_path))
    monkeypatch.setenv("INFLUXDB_ENABLED", "false")
    monkeypatch.setenv("PROMETHEUS_ENABLED", "false")
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    return monkeypatch


def test_check_valid_configuration(env, capsys):
    assert cli.main(["check"]) == cli.EXIT_OK

    out = capsys.readouterr().out
    assert "5 register(s)" in out
    assert "setpoint" in out


def test_check_rejects_invalid_schema(env, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([
        {"name": "a", "address": 0, "type": "float32"},
        {"name": "b", "address": 1, "type": "uint16"},
    ]))
    env.setenv("INPUT_REGISTERS_PATH", str(bad))

    assert cli.main(["check"]) == cli.EXIT_CONFIG_ERROR


def test_check_rejects_missing_schema_file(env, tmp_path):
    env.setenv("INPUT_REGISTERS_PATH", str(tmp_path / "missing.json"))
    assert cli.main(["check"]) == cli.EXIT_CONFIG_ERROR


def test_check_rejects_incomplete_sink(env):
    env.setenv("INFLUXDB_ENABLED", "true")
    env.delenv("INFLUXDB_TOKEN", raising=False)
    env.delenv("INFLUXDB_BUCKET", raising=False)

    assert cli.main(["check"]) == cli.EXIT_CONFIG_ERROR


def test_invalid_environment_value(env):
    env.setenv("MODBUS_PORT", "not-a-port")
    assert cli.main(["check"]) == cli.EXIT_CONFIG_ERROR


def test_unknown_log_level(env):
    assert cli.main(["--log-level", "CHATTY", "check"]) == cli.EXIT_CONFIG_ERROR


def test_run_refuses_to_start_with_invalid_sink(env):
    env.setenv("PROMETHEUS_ENABLED", "true")
    env.setenv("PROMETHEUS_JOB", "")

    assert cli.main(["run"]) == cli.EXIT_CONFIG_ERROR


def test_run_passes_command_line_log_level_to_uvicorn(env):
    served = {}
    env.setenv("API_ENABLED", "true")
    env.setattr(cli, "create_app", lambda settings, schema: "app")
    env.setattr(cli.uvicorn, "run", lambda app, **kwargs: served.update(kwargs, app=app))

    assert cli.main(["--log-level", "DEBUG", "run"]) == cli.EXIT_OK
    assert served["app"] == "app"
    assert served["log_level"] == "debug"


def test_dump_prints_decoded_values(env, fake_transport, capsys):
    env.setattr("modbus_exporter.pipeline.ModbusTransport", lambda **kwargs: fake_transport)

    assert cli.main(["dump"]) == cli.EXIT_OK

    out = capsys.readouterr().out
    lines = {line.split()[0]: line.split()[1] for line in out.splitlines() if line.strip()}
    assert float(lines["temp"]) == 10.0
    assert float(lines["setpoint"]) == 65536.0
    assert fake_transport.closed


def test_dump_reports_read_errors(env, fake_transport, capsys):
    fake_transport.fail_at = {(RegisterKind.HOLDING, 4)}
    env.setattr("modbus_exporter.pipeline.ModbusTransport", lambda **kwargs: fake_transport)

    assert cli.main(["dump"]) == cli.EXIT_READ_ERRORS

    captured = capsys.readouterr()
    assert "offset" not in captured.out
    assert "read error: holding[4:6]" in captured.err
