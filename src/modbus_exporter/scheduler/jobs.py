"""Poll cycle: read -> decode -> assemble -> export."""

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from modbus_exporter.logging import get_logger, kv
from modbus_exporter.modbus.client import RegisterTransport
from modbus_exporter.registers.batching import MAX_REGISTERS_PER_READ, ReadRange, build_read_ranges
from modbus_exporter.registers.decoder import WordOrder, decode_range
from modbus_exporter.samples import Sample, assemble
from modbus_exporter.schemas.modbus_models import RegisterDefinition, RegisterSchema
from modbus_exporter.sinks.base import MetricSink
from modbus_exporter.utils.exceptions import DecodeError, DeliveryFailedError, ReadError, SinkError

logger = get_logger(__name__)


class SchedulerState(str, Enum):
    """Poll scheduler states."""
    IDLE = "idle"
    READING = "reading"
    DECODING = "decoding"
    EXPORTING = "exporting"
    STOPPED = "stopped"


class CycleReport:
    """
    Outcome of one poll cycle.

    Every failure is kept with the smallest unit it affected: one register
    (decode_errors), one read range (read_errors) or one sink (sink_results).
    """

    def __init__(
        self,
        timestamp: datetime,
        sample: Sample,
        read_errors: List[ReadError],
        decode_errors: List[DecodeError],
        sink_results: Dict[str, Optional[SinkError]],
        duration_s: float,
    ):
        self.timestamp = timestamp
        self.sample = sample
        self.read_errors = read_errors
        self.decode_errors = decode_errors
        self.sink_results = sink_results
        self.duration_s = duration_s

    @property
    def sink_errors(self) -> List[SinkError]:
        return [e for e in self.sink_results.values() if e is not None]

    @property
    def delivered_sinks(self) -> List[str]:
        return [name for name, error in self.sink_results.items() if error is None]

    @property
    def ok(self) -> bool:
        return not (self.read_errors or self.decode_errors or self.sink_errors)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "duration_s": round(self.duration_s, 6),
            "ok": self.ok,
            "source_address": self.sample.source_address,
            "values": [
                {"name": v.name, "value": v.value, "unit": v.unit}
                for v in self.sample.values
            ],
            "read_errors": [str(e) for e in self.read_errors],
            "decode_errors": [str(e) for e in self.decode_errors],
            "sinks": {
                name: {"delivered": error is None, "error": None if error is None else str(error)}
                for name, error in self.sink_results.items()
            },
        }

    def __repr__(self):
        return (
            f"CycleReport(values={len(self.sample)}, read_errors={len(self.read_errors)}, "
            f"decode_errors={len(self.decode_errors)}, delivered={self.delivered_sinks})"
        )


class PollCycle:
    """
    One read -> decode -> assemble -> export pass over a register schema.

    Read ranges are computed once from the schema; the same PollCycle can be
    run on every tick.
    """

    def __init__(
        self,
        schema: RegisterSchema,
        transport: RegisterTransport,
        sinks: Sequence[MetricSink],
        source_address: str,
        word_order: WordOrder = "big",
        read_timeout_s: float = 5.0,
        max_read_count: int = MAX_REGISTERS_PER_READ,
    ):
        self.schema = schema
        self.transport = transport
        self.sinks = list(sinks)
        self.source_address = source_address
        self.word_order = word_order
        self.read_timeout_s = read_timeout_s
        self.ranges = build_read_ranges(schema.definitions, max_read_count)

    async def _read_range(self, read_range: ReadRange) -> List[int]:
        kind = read_range.kind.value
        try:
            words = await asyncio.wait_for(
                self.transport.read_registers(read_range.kind, read_range.start_address, read_range.count),
                timeout=self.read_timeout_s,
            )
        except ReadError:
            raise
        except asyncio.TimeoutError as e:
            raise ReadError(
                kind, read_range.start_address, read_range.count,
                f"Request timed out after {self.read_timeout_s}s",
            ) from e
        except Exception as e:
            logger.error(f"Unexpected transport failure reading {read_range}: {e}", exc_info=True)
            raise ReadError(
                kind, read_range.start_address, read_range.count, f"Unexpected error: {e}",
            ) from e

        if len(words) < read_range.count:
            raise ReadError(
                kind, read_range.start_address, read_range.count,
                f"device returned {len(words)} register(s), expected {read_range.count}",
            )
        return list(words)

    async def read(self) -> Tuple[List[Tuple[ReadRange, List[int]]], List[ReadError]]:
        """
        Read every range concurrently; all reads finish or time out before returning.

        Returns:
            Tuple of (successful (range, words) pairs in range order, read errors)
        """
        results = await asyncio.gather(
            *(self._read_range(r) for r in self.ranges),
            return_exceptions=True,
        )

        blocks: List[Tuple[ReadRange, List[int]]] = []
        errors: List[ReadError] = []
        for read_range, result in zip(self.ranges, results):
            if isinstance(result, ReadError):
                errors.append(result)
                logger.warning(
                    "Read failed: "
                    + kv(
                        kind=result.kind,
                        address=result.address,
                        count=result.count,
                        registers=",".join(d.name for d in read_range.definitions),
                        error=result.message,
                    )
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                blocks.append((read_range, result))
        return blocks, errors

    def decode(
        self, blocks: List[Tuple[ReadRange, List[int]]]
    ) -> Tuple[List[Tuple[RegisterDefinition, float]], List[DecodeError]]:
        """Decode every successfully read block; bad registers are dropped individually."""
        decoded: List[Tuple[RegisterDefinition, float]] = []
        errors: List[DecodeError] = []
        for read_range, words in blocks:
            values, range_errors = decode_range(
                words, read_range.start_address, read_range.definitions, self.word_order
            )
            decoded.extend(values)
            for error in range_errors:
                logger.warning("Decode failed: " + kv(register=error.register_name, error=error.message))
            errors.extend(range_errors)
        return decoded, errors

    async def _export_one(self, sink: MetricSink, sample: Sample) -> Optional[SinkError]:
        timeout_s = getattr(sink, "timeout_s", None)
        try:
            if timeout_s:
                await asyncio.wait_for(sink.export(sample), timeout=timeout_s)
            else:
                await sink.export(sample)
        except SinkError as e:
            return e
        except asyncio.TimeoutError:
            return DeliveryFailedError(sink.name, f"export timed out after {timeout_s}s")
        except Exception as e:
            logger.error(f"Unexpected error in sink '{sink.name}': {e}", exc_info=True)
            return DeliveryFailedError(sink.name, f"Unexpected error: {e}")
        return None

    async def export(self, sample: Sample) -> Dict[str, Optional[SinkError]]:
        """
        Export one sample to every sink concurrently.

        Returns:
            Mapping of sink name to None (delivered) or the SinkError it raised
        """
        outcomes = await asyncio.gather(*(self._export_one(sink, sample) for sink in self.sinks))
        results: Dict[str, Optional[SinkError]] = {}
        for sink, error in zip(self.sinks, outcomes):
            results[sink.name] = error
            if error is not None:
                logger.warning(
                    "Export failed: "
                    + kv(
                        sink=sink.name,
                        status=getattr(error, "status_code", None),
                        error=error.message,
                    )
                )
        return results

    async def run(
        self,
        on_state: Optional[Callable[[SchedulerState], None]] = None,
        export: bool = True,
    ) -> CycleReport:
        """
        Run one complete cycle.

        Args:
            on_state: Called on every stage transition (READING, DECODING, EXPORTING)
            export: When False the sample is assembled but not sent to any sink

        Returns:
            CycleReport describing values and every isolated failure
        """
        def transition(state: SchedulerState) -> None:
            if on_state is not None:
                on_state(state)

        started = time.monotonic()
        timestamp = datetime.now(timezone.utc)

        transition(SchedulerState.READING)
        blocks, read_errors = await self.read()

        transition(SchedulerState.DECODING)
        decoded, decode_errors = self.decode(blocks)
        sample = assemble(
            timestamp,
            self.source_address,
            ((d.name, d.unit, value) for d, value in decoded),
        )

        sink_results: Dict[str, Optional[SinkError]] = {}
        if export:
            transition(SchedulerState.EXPORTING)
            sink_results = await self.export(sample)

        report = CycleReport(
            timestamp=timestamp,
            sample=sample,
            read_errors=read_errors,
            decode_errors=decode_errors,
            sink_results=sink_results,
            duration_s=time.monotonic() - started,
        )

        summary = kv(
            values=len(sample),
            registers=len(self.schema),
            read_errors=len(read_errors),
            decode_errors=len(decode_errors),
            delivered=",".join(report.delivered_sinks) or "-",
            failed=",".join(e.sink for e in report.sink_errors) or "-",
            duration_s=f"{report.duration_s:.3f}",
        )
        if report.ok:
            logger.info("Poll cycle completed: " + summary)
        else:
            logger.warning("Poll cycle completed with errors: " + summary)
        return report
