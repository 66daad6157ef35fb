"""
Pipeline wiring.

Builds the transport, sinks, poll cycle and scheduler from one Settings
object and owns their lifecycle.
"""

from typing import List, Optional, Sequence

from modbus_exporter.config import Settings
from modbus_exporter.logging import get_logger
from modbus_exporter.modbus.client import ModbusTransport, RegisterTransport
from modbus_exporter.scheduler import PollCycle, PollScheduler
from modbus_exporter.schemas.modbus_models import RegisterSchema
from modbus_exporter.sinks import MetricSink, build_sinks

logger = get_logger(__name__)


class Pipeline:
    """Transport + sinks + scheduler for one device."""

    def __init__(
        self,
        settings: Settings,
        schema: RegisterSchema,
        transport: RegisterTransport,
        sinks: Sequence[MetricSink],
    ):
        self.settings = settings
        self.schema = schema
        self.transport = transport
        self.sinks: List[MetricSink] = list(sinks)
        self.cycle = PollCycle(
            schema=schema,
            transport=transport,
            sinks=self.sinks,
            source_address=settings.source_address,
            word_order=settings.word_order,
            read_timeout_s=settings.read_timeout_s,
            max_read_count=settings.max_read_count,
        )
        self.scheduler = PollScheduler(self.cycle, settings.poll_interval_seconds)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        schema: RegisterSchema,
        transport: Optional[RegisterTransport] = None,
        sinks: Optional[Sequence[MetricSink]] = None,
    ) -> "Pipeline":
        """
        Build a pipeline from settings.

        Raises:
            ConfigurationError: If an enabled sink is misconfigured
        """
        if sinks is None:
            sinks = build_sinks(settings)
        if transport is None:
            transport = ModbusTransport(
                host=settings.modbus_host,
                port=settings.modbus_port,
                unit_id=settings.modbus_unit_id,
                timeout_s=settings.modbus_timeout_s,
                retries=settings.modbus_retries,
            )
        return cls(settings, schema, transport, sinks)

    async def start(self) -> None:
        await self.scheduler.start()

    async def stop(self) -> None:
        """Stop the scheduler, wait for the in-flight cycle, then release resources."""
        self.scheduler.stop()
        await self.scheduler.wait_stopped()
        await self.close()

    async def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()
        for sink in self.sinks:
            try:
                await sink.aclose()
            except Exception as e:
                logger.warning(f"Error closing sink '{sink.name}': {e}")
