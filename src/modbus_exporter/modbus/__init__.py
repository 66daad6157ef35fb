"""Modbus transport."""

from modbus_exporter.modbus.client import ModbusTransport, RegisterTransport, translate_modbus_error

__all__ = ["ModbusTransport", "RegisterTransport", "translate_modbus_error"]
