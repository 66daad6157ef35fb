"""Shared utilities."""

from modbus_exporter.utils.exceptions import (
    ExporterError,
    ConfigurationError,
    SchemaError,
    DecodeError,
    LengthMismatchError,
    ReadError,
    SinkError,
    DeliveryFailedError,
)

__all__ = [
    "ExporterError",
    "ConfigurationError",
    "SchemaError",
    "DecodeError",
    "LengthMismatchError",
    "ReadError",
    "SinkError",
    "DeliveryFailedError",
]
