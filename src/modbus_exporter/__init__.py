"""Modbus register poller exporting decoded values to InfluxDB and Prometheus."""

__version__ = "1.0.0"
