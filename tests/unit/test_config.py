"""Unit tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from modbus_exporter.config import Settings
from modbus_exporter.utils.exceptions import ConfigurationError


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MODBUS_HOST", "192.168.1.20")
    monkeypatch.setenv("MODBUS_PORT", "5020")
    monkeypatch.setenv("modbus_unit_id", "7")
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("WORD_ORDER", "little")

    settings = Settings()

    assert settings.modbus_host == "192.168.1.20"
    assert settings.modbus_port == 5020
    assert settings.modbus_unit_id == 7
    assert settings.poll_interval_seconds == 2.5
    assert settings.word_order == "little"
    assert settings.source_address == "192.168.1.20:5020/7"


def test_settings_from_dotenv_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("INFLUXDB_BUCKET", raising=False)
    (tmp_path / ".env").write_text("INFLUXDB_BUCKET=plant-telemetry\nMAX_READ_COUNT=60\n")

    settings = Settings()

    assert settings.influxdb_bucket == "plant-telemetry"
    assert settings.max_read_count == 60


@pytest.mark.parametrize("overrides", [
    {"MODBUS_PORT": 0},
    {"MODBUS_UNIT_ID": 256},
    {"POLL_INTERVAL_SECONDS": 0},
    {"WORD_ORDER": "middle"},
    {"MAX_READ_COUNT": 126},
    {"INFLUXDB_PRECISION": "minutes"},
])
def test_invalid_settings_rejected(settings_factory, overrides):
    with pytest.raises(ValidationError):
        settings_factory(**overrides)


def test_empty_register_path_means_not_configured(settings_factory):
    settings = settings_factory(INPUT_REGISTERS_PATH="  ", HOLDING_REGISTERS_PATH="")
    assert settings.input_registers_path is None
    assert settings.holding_registers_path is None


def test_settings_are_immutable(settings_factory):
    settings = settings_factory()
    with pytest.raises(ValidationError):
        settings.modbus_host = "elsewhere"


def test_disabled_sinks_have_no_config(settings_factory):
    settings = settings_factory(INFLUXDB_ENABLED=False, PROMETHEUS_ENABLED=False)
    assert settings.influxdb_sink_config() is None
    assert settings.prometheus_sink_config() is None


def test_influxdb_sink_config(settings_factory):
    settings = settings_factory(
        INFLUXDB_ENABLED=True,
        INFLUXDB_URL="http://influx:8086",
        INFLUXDB_TOKEN="secret",
        INFLUXDB_ORG="plant",
        INFLUXDB_BUCKET="telemetry",
        INFLUXDB_PRECISION="s",
        INFLUXDB_AUTH_SCHEME="Bearer",
    )

    config = settings.influxdb_sink_config()

    assert config.url == "http://influx:8086"
    assert config.bucket == "telemetry"
    assert config.precision == "s"
    assert config.auth_scheme == "Bearer"


def test_influxdb_sink_requires_token_and_bucket(settings_factory):
    settings = settings_factory(INFLUXDB_ENABLED=True, INFLUXDB_TOKEN=None, INFLUXDB_BUCKET=None)
    with pytest.raises(ConfigurationError) as exc_info:
        settings.influxdb_sink_config()
    assert "INFLUXDB_TOKEN" in exc_info.value.message
    assert "INFLUXDB_BUCKET" in exc_info.value.message


def test_prometheus_sink_config(settings_factory):
    settings = settings_factory(
        PROMETHEUS_ENABLED=True,
        PROMETHEUS_URL="http://gw:9091",
        PROMETHEUS_JOB="plc",
        PROMETHEUS_INSTANCE="line-1",
        PROMETHEUS_METRIC_PREFIX="plant_",
    )

    config = settings.prometheus_sink_config()

    assert config.job == "plc"
    assert config.grouping_key == (("instance", "line-1"),)
    assert config.metric_prefix == "plant_"
