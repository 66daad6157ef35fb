"""Unit tests for read range batching."""

import pytest

from modbus_exporter.registers import build_read_ranges, load_schema
from modbus_exporter.schemas.modbus_models import RegisterKind


def test_contiguous_registers_share_a_range(schema):
    ranges = build_read_ranges(schema.definitions)

    assert [(r.kind, r.start_address, r.count) for r in ranges] == [
        (RegisterKind.INPUT, 0, 3),
        (RegisterKind.INPUT, 10, 1),
        (RegisterKind.HOLDING, 0, 2),
        (RegisterKind.HOLDING, 4, 2),
    ]
    assert [d.name for d in ranges[0].definitions] == ["temp", "flow"]


def test_ranges_split_at_max_count():
    schema = load_schema({"input": [
        {"name": f"f{i}", "address": i * 2, "type": "float32"} for i in range(3)
    ]})

    ranges = build_read_ranges(schema.definitions, max_count=4)

    assert [(r.start_address, r.count) for r in ranges] == [(0, 4), (4, 2)]
    # a 32-bit register is never split across two requests
    for r in ranges:
        for d in r.definitions:
            assert r.start_address <= d.address and d.end_address <= r.end_address


def test_protocol_limit_of_125_registers():
    schema = load_schema({"holding": [
        {"name": f"r{i}", "address": i, "type": "uint16"} for i in range(300)
    ]})

    ranges = build_read_ranges(schema.definitions)

    assert [r.count for r in ranges] == [125, 125, 50]
    assert sum(len(r.definitions) for r in ranges) == 300


def test_input_order_does_not_matter(schema):
    assert build_read_ranges(reversed(schema.definitions)) == build_read_ranges(schema.definitions)


def test_empty_schema_gives_no_ranges():
    assert build_read_ranges([]) == []


def test_max_count_must_fit_a_32_bit_register():
    with pytest.raises(ValueError):
        build_read_ranges([], max_count=1)
