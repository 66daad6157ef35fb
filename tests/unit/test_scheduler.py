"""
Unit tests for the APScheduler-driven poll scheduler.

Run with: pytest tests/unit/test_scheduler.py -v
"""

import asyncio

import pytest

from conftest import wait_until
from modbus_exporter.scheduler import PollCycle, PollScheduler, SchedulerState
from modbus_exporter.schemas.modbus_models import RegisterKind

INTERVAL_S = 0.05


def make_scheduler(schema, transport, sinks=(), interval_s=INTERVAL_S):
    cycle = PollCycle(schema, transport, sinks, "test:502/1", read_timeout_s=2.0)
    return PollScheduler(cycle, interval_s)


@pytest.mark.parametrize("interval_s", [0, -1.0])
def test_non_positive_interval_rejected(schema, fake_transport, interval_s):
    with pytest.raises(ValueError):
        make_scheduler(schema, fake_transport, interval_s=interval_s)


@pytest.mark.asyncio
async def test_stop_before_start(schema, fake_transport):
    scheduler = make_scheduler(schema, fake_transport)

    scheduler.stop()
    await asyncio.wait_for(scheduler.wait_stopped(), timeout=1.0)

    assert scheduler.state == SchedulerState.STOPPED
    assert scheduler.cycles_run == 0
    with pytest.raises(RuntimeError):
        await scheduler.start()


@pytest.mark.asyncio
async def test_runs_repeatedly_until_stopped(schema, fake_transport, sink_factory):
    sink = sink_factory()
    scheduler = make_scheduler(schema, fake_transport, [sink])

    await scheduler.start()
    assert scheduler.running
    await wait_until(lambda: scheduler.cycles_run >= 2)
    scheduler.stop()
    await asyncio.wait_for(scheduler.wait_stopped(), timeout=2.0)

    assert scheduler.state == SchedulerState.STOPPED
    assert not scheduler.running
    cycles = scheduler.cycles_run
    assert len(sink.samples) == cycles
    assert scheduler.last_report.ok

    await asyncio.sleep(INTERVAL_S * 4)
    assert scheduler.cycles_run == cycles
    assert len(sink.samples) == cycles


@pytest.mark.asyncio
async def test_first_cycle_runs_immediately(schema, fake_transport):
    scheduler = make_scheduler(schema, fake_transport, interval_s=60.0)

    await scheduler.start()
    await wait_until(lambda: scheduler.cycles_run == 1, timeout=1.0)
    scheduler.stop()
    await scheduler.wait_stopped()


@pytest.mark.asyncio
async def test_stop_during_cycle_lets_it_finish(schema, transport_factory, sink_factory):
    """A stop during READING waits for the cycle; its sample is still exported."""
    gate = asyncio.Event()
    transport = transport_factory(gate=gate)
    transport.load(RegisterKind.INPUT, 0, [0x4120, 0x0000, 250])
    sink = sink_factory()
    scheduler = make_scheduler(schema, transport, [sink])

    await scheduler.start()
    await wait_until(lambda: scheduler.state == SchedulerState.READING)

    scheduler.stop()
    assert scheduler.state == SchedulerState.READING

    gate.set()
    await asyncio.wait_for(scheduler.wait_stopped(), timeout=2.0)

    assert scheduler.state == SchedulerState.STOPPED
    assert scheduler.cycles_run == 1
    assert len(sink.samples) == 1
    assert sink.samples[0].to_dict()["temp"] == 10.0

    await asyncio.sleep(INTERVAL_S * 3)
    assert scheduler.cycles_run == 1


@pytest.mark.asyncio
async def test_failed_cycles_do_not_stop_the_scheduler(schema, transport_factory):
    transport = transport_factory(fail_at=[
        (RegisterKind.INPUT, 0), (RegisterKind.INPUT, 10),
        (RegisterKind.HOLDING, 0), (RegisterKind.HOLDING, 4),
    ])
    scheduler = make_scheduler(schema, transport)

    await scheduler.start()
    await wait_until(lambda: scheduler.cycles_run >= 3)
    scheduler.stop()
    await scheduler.wait_stopped()

    assert scheduler.failed_cycles == scheduler.cycles_run
    assert scheduler.consecutive_failed_cycles == scheduler.cycles_run
    assert len(scheduler.last_report.read_errors) == 4


@pytest.mark.asyncio
async def test_unexpected_cycle_exception_is_contained(schema, fake_transport):
    scheduler = make_scheduler(schema, fake_transport)
    calls = []

    async def exploding_run(on_state=None, export=True):
        calls.append(1)
        raise RuntimeError("boom")

    scheduler.cycle.run = exploding_run

    await scheduler.start()
    await wait_until(lambda: len(calls) >= 2)
    scheduler.stop()
    await scheduler.wait_stopped()

    assert scheduler.failed_cycles >= 2
    assert scheduler.last_report is None


@pytest.mark.asyncio
async def test_consecutive_failures_reset_on_success(schema, fake_transport):
    fake_transport.fail_at = {(RegisterKind.INPUT, 0)}
    scheduler = make_scheduler(schema, fake_transport)

    await scheduler.start()
    await wait_until(lambda: scheduler.consecutive_failed_cycles >= 1)
    fake_transport.fail_at = set()
    await wait_until(lambda: scheduler.consecutive_failed_cycles == 0)
    scheduler.stop()
    await scheduler.wait_stopped()

    assert scheduler.failed_cycles >= 1
    assert scheduler.cycles_run > scheduler.failed_cycles


@pytest.mark.asyncio
async def test_status_snapshot(schema, fake_transport):
    scheduler = make_scheduler(schema, fake_transport)
    assert scheduler.status()["state"] == "idle"
    assert scheduler.status()["last_cycle"] is None

    await scheduler.start()
    await wait_until(lambda: scheduler.cycles_run >= 1)
    scheduler.stop()
    await scheduler.wait_stopped()

    status = scheduler.status()
    assert status["state"] == "stopped"
    assert status["interval_s"] == INTERVAL_S
    assert status["cycles_run"] >= 1
    assert status["last_cycle"]["ok"] is True
