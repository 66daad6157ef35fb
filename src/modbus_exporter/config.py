"""
Application configuration using Pydantic Settings.

Environment-driven configuration with validation and type safety. The
settings object is built once at startup and passed into the pipeline;
pipeline modules never read the environment themselves.
"""

from typing import Literal, Optional

from pydantic_settings import BaseSettings
from pydantic import BaseModel, Field, field_validator

from modbus_exporter.utils.exceptions import ConfigurationError


class InfluxDBSinkConfig(BaseModel):
    """Connection details for an InfluxDB v2 write endpoint."""
    url: str = Field(..., description="Base URL, e.g. http://influxdb:8086")
    token: str = Field(..., min_length=1, description="API token")
    org: str = Field(default="", description="Organization name or ID")
    bucket: str = Field(..., min_length=1, description="Destination bucket")
    precision: Literal["s", "ms", "us", "ns"] = Field(default="ns", description="Timestamp precision")
    auth_scheme: str = Field(default="Token", description="Authorization header scheme (Token or Bearer)")
    timeout_s: float = Field(default=5.0, gt=0, description="Per-export timeout")

    model_config = {"frozen": True}


class PrometheusSinkConfig(BaseModel):
    """Connection details for a Prometheus Pushgateway."""
    url: str = Field(..., description="Base URL, e.g. http://pushgateway:9091")
    job: str = Field(..., min_length=1, description="Job name used as grouping key")
    grouping_key: tuple[tuple[str, str], ...] = Field(
        default=(), description="Extra grouping labels appended to the push URL"
    )
    metric_prefix: str = Field(default="", description="Prefix prepended to every metric name")
    timeout_s: float = Field(default=5.0, gt=0, description="Per-export timeout")

    model_config = {"frozen": True}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Modbus Configuration
    modbus_host: str = Field(default="localhost", alias="MODBUS_HOST")
    modbus_port: int = Field(default=502, ge=1, le=65535, alias="MODBUS_PORT")
    modbus_unit_id: int = Field(default=1, ge=0, le=255, alias="MODBUS_UNIT_ID")
    modbus_timeout_s: float = Field(default=5.0, gt=0, alias="MODBUS_TIMEOUT_S")
    modbus_retries: int = Field(default=3, ge=0, alias="MODBUS_RETRIES")

    # Register Schema Configuration
    input_registers_path: Optional[str] = Field(default="config/input_registers.json", alias="INPUT_REGISTERS_PATH")
    holding_registers_path: Optional[str] = Field(default=None, alias="HOLDING_REGISTERS_PATH")
    word_order: Literal["big", "little"] = Field(default="big", alias="WORD_ORDER")

    # Polling Configuration
    poll_interval_seconds: float = Field(default=10.0, gt=0, alias="POLL_INTERVAL_SECONDS")
    read_timeout_s: float = Field(default=5.0, gt=0, alias="READ_TIMEOUT_S")
    max_read_count: int = Field(default=125, ge=2, le=125, alias="MAX_READ_COUNT")

    # InfluxDB Sink Configuration
    influxdb_enabled: bool = Field(default=False, alias="INFLUXDB_ENABLED")
    influxdb_url: str = Field(default="http://localhost:8086", alias="INFLUXDB_URL")
    influxdb_token: Optional[str] = Field(default=None, alias="INFLUXDB_TOKEN")
    influxdb_org: str = Field(default="", alias="INFLUXDB_ORG")
    influxdb_bucket: Optional[str] = Field(default=None, alias="INFLUXDB_BUCKET")
    influxdb_precision: Literal["s", "ms", "us", "ns"] = Field(default="ns", alias="INFLUXDB_PRECISION")
    influxdb_auth_scheme: str = Field(default="Token", alias="INFLUXDB_AUTH_SCHEME")
    influxdb_timeout_s: float = Field(default=5.0, gt=0, alias="INFLUXDB_TIMEOUT_S")

    # Prometheus Pushgateway Sink Configuration
    prometheus_enabled: bool = Field(default=False, alias="PROMETHEUS_ENABLED")
    prometheus_url: str = Field(default="http://localhost:9091", alias="PROMETHEUS_URL")
    prometheus_job: str = Field(default="modbus_exporter", alias="PROMETHEUS_JOB")
    prometheus_instance: Optional[str] = Field(default=None, alias="PROMETHEUS_INSTANCE")
    prometheus_metric_prefix: str = Field(default="", alias="PROMETHEUS_METRIC_PREFIX")
    prometheus_timeout_s: float = Field(default=5.0, gt=0, alias="PROMETHEUS_TIMEOUT_S")

    # Server Configuration
    api_enabled: bool = Field(default=True, alias="API_ENABLED")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        frozen = True
        extra = "ignore"

    @field_validator("input_registers_path", "holding_registers_path", mode="before")
    @classmethod
    def empty_path_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def source_address(self) -> str:
        """Identity of the polled device, used to tag exported samples."""
        return f"{self.modbus_host}:{self.modbus_port}/{self.modbus_unit_id}"

    def influxdb_sink_config(self) -> Optional[InfluxDBSinkConfig]:
        """
        Build the InfluxDB sink configuration.

        Returns:
            InfluxDBSinkConfig, or None when the sink is disabled

        Raises:
            ConfigurationError: If the sink is enabled without token or bucket
        """
        if not self.influxdb_enabled:
            return None
        missing = [
            alias for alias, value in (
                ("INFLUXDB_TOKEN", self.influxdb_token),
                ("INFLUXDB_BUCKET", self.influxdb_bucket),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(f"InfluxDB sink is enabled but {', '.join(missing)} is not set")
        return InfluxDBSinkConfig(
            url=self.influxdb_url,
            token=self.influxdb_token,
            org=self.influxdb_org,
            bucket=self.influxdb_bucket,
            precision=self.influxdb_precision,
            auth_scheme=self.influxdb_auth_scheme,
            timeout_s=self.influxdb_timeout_s,
        )

    def prometheus_sink_config(self) -> Optional[PrometheusSinkConfig]:
        """
        Build the Prometheus Pushgateway sink configuration.

        Returns:
            PrometheusSinkConfig, or None when the sink is disabled
        """
        if not self.prometheus_enabled:
            return None
        grouping_key = ()
        if self.prometheus_instance:
            grouping_key = (("instance", self.prometheus_instance),)
        return PrometheusSinkConfig(
            url=self.prometheus_url,
            job=self.prometheus_job,
            grouping_key=grouping_key,
            metric_prefix=self.prometheus_metric_prefix,
            timeout_s=self.prometheus_timeout_s,
        )


def get_settings() -> Settings:
    """Load settings from the environment (and .env file, if present)."""
    return Settings()
