"""Modbus register configuration models."""

from modbus_exporter.schemas.modbus_models.points import (
    ADDRESS_SPACE,
    DataType,
    RegisterDefinition,
    RegisterEntry,
    RegisterKind,
)
from modbus_exporter.schemas.modbus_models.models import RegisterSchema

__all__ = [
    "ADDRESS_SPACE",
    "DataType",
    "RegisterDefinition",
    "RegisterEntry",
    "RegisterKind",
    "RegisterSchema",
]
