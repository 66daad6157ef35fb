"""Shared fixtures and fakes for the exporter test suite."""

import asyncio
import json
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from modbus_exporter.config import Settings
from modbus_exporter.registers import load_schema
from modbus_exporter.schemas.modbus_models import RegisterKind
from modbus_exporter.utils.exceptions import ReadError


INPUT_DOCUMENT = [
    {"name": "temp", "address": 0, "type": "float32", "scale": 1.0, "unit": "degC"},
    {"name": "flow", "address": 2, "type": "uint16", "scale": 0.1, "unit": "l/min"},
    {"name": "pressure", "address": 10, "type": "int16", "scale": 0.01, "unit": "bar"},
]

HOLDING_DOCUMENT = [
    {"name": "setpoint", "address": 0, "type": "uint32"},
    {"name": "offset", "address": 4, "type": "int32", "scale": 0.5, "unit": "mV"},
]


class FakeTransport:
    """In-memory register transport recording every read request."""

    def __init__(
        self,
        memory: Optional[Dict[Tuple[RegisterKind, int], int]] = None,
        fail_at: Iterable[Tuple[RegisterKind, int]] = (),
        delay_s: float = 0.0,
        gate: Optional[asyncio.Event] = None,
    ):
        self.memory = dict(memory or {})
        self.fail_at = set(fail_at)
        self.delay_s = delay_s
        self.gate = gate
        self.calls: List[Tuple[RegisterKind, int, int]] = []
        self.closed = False

    def load(self, kind: RegisterKind, address: int, words: List[int]) -> None:
        for offset, word in enumerate(words):
            self.memory[(kind, address + offset)] = word

    async def read_registers(self, kind, start_address, count):
        self.calls.append((kind, start_address, count))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if (kind, start_address) in self.fail_at:
            raise ReadError(kind.value, start_address, count, "Failed to connect to Modbus server")
        return [self.memory.get((kind, a), 0) for a in range(start_address, start_address + count)]

    def close(self):
        self.closed = True


class RecordingSink:
    """Sink that records every sample it is given and optionally fails."""

    def __init__(self, name: str = "recording", error: Optional[Exception] = None,
                 delay_s: float = 0.0, timeout_s: float = 1.0):
        self.name = name
        self.error = error
        self.delay_s = delay_s
        self.timeout_s = timeout_s
        self.samples = []
        self.closed = False

    async def export(self, sample):
        self.samples.append(sample)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.closed = True


@pytest.fixture
def input_document():
    return [dict(entry) for entry in INPUT_DOCUMENT]


@pytest.fixture
def holding_document():
    return [dict(entry) for entry in HOLDING_DOCUMENT]


@pytest.fixture
def schema(input_document, holding_document):
    return load_schema({"input": json.dumps(input_document), "holding": json.dumps(holding_document)})


@pytest.fixture
def fake_transport():
    transport = FakeTransport()
    transport.load(RegisterKind.INPUT, 0, [0x4120, 0x0000, 250])
    transport.load(RegisterKind.INPUT, 10, [0xFF9C])
    transport.load(RegisterKind.HOLDING, 0, [0x0001, 0x0000])
    transport.load(RegisterKind.HOLDING, 4, [0xFFFF, 0xFFFE])
    return transport


@pytest.fixture
def transport_factory():
    return FakeTransport


@pytest.fixture
def sink_factory():
    return RecordingSink


@pytest.fixture
def settings_factory(tmp_path, monkeypatch):
    """Build Settings isolated from the caller's environment and .env file."""
    monkeypatch.chdir(tmp_path)

    def factory(**overrides) -> Settings:
        values = {
            "MODBUS_HOST": "10.0.0.5",
            "MODBUS_PORT": 502,
            "MODBUS_UNIT_ID": 1,
            "POLL_INTERVAL_SECONDS": 0.05,
            "READ_TIMEOUT_S": 0.5,
        }
        values.update(overrides)
        return Settings(**values)

    return factory


async def wait_until(predicate, timeout: float = 3.0, interval: float = 0.01) -> None:
    """Poll ``predicate`` until it is true or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
