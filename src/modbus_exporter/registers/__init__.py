"""Register schema loading, batching and decoding."""

from modbus_exporter.registers.batching import MAX_REGISTERS_PER_READ, ReadRange, build_read_ranges
from modbus_exporter.registers.decoder import WORD_ORDERS, decode, decode_range
from modbus_exporter.registers.loader import (
    dump_document,
    load_document,
    load_schema,
    load_schema_files,
    parse_register_kind,
)

__all__ = [
    "MAX_REGISTERS_PER_READ",
    "ReadRange",
    "build_read_ranges",
    "WORD_ORDERS",
    "decode",
    "decode_range",
    "dump_document",
    "load_document",
    "load_schema",
    "load_schema_files",
    "parse_register_kind",
]
