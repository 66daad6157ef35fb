"""Metric sink adapters."""

from typing import List

from modbus_exporter.config import Settings
from modbus_exporter.logging import get_logger
from modbus_exporter.sinks.base import MetricSink
from modbus_exporter.sinks.influxdb import InfluxDBSink
from modbus_exporter.sinks.prometheus import PrometheusSink

logger = get_logger(__name__)

__all__ = ["MetricSink", "InfluxDBSink", "PrometheusSink", "build_sinks"]


def build_sinks(settings: Settings) -> List[MetricSink]:
    """
    Construct every sink enabled in the settings.

    Raises:
        ConfigurationError: If an enabled sink is missing required settings
    """
    sinks: List[MetricSink] = []

    influxdb_config = settings.influxdb_sink_config()
    if influxdb_config is not None:
        sinks.append(InfluxDBSink(influxdb_config))

    prometheus_config = settings.prometheus_sink_config()
    if prometheus_config is not None:
        sinks.append(PrometheusSink(prometheus_config))

    if not sinks:
        logger.warning("No metric sinks enabled; decoded samples will not be exported")
    else:
        logger.info(f"Enabled sinks: {', '.join(s.name for s in sinks)}")
    return sinks
