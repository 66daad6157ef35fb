"""
InfluxDB sink.

Serializes a sample to InfluxDB line protocol and submits it as a single
request to the v2 write API:

    POST {url}/api/v2/write?org=...&bucket=...&precision=ns
    Authorization: Token <token>

    temp,unit=degC,source=10.0.0.5:502/1 value=21.5 1700000000000000000
"""

import math
from datetime import datetime, timezone
from typing import Optional

import httpx

from modbus_exporter.config import InfluxDBSinkConfig
from modbus_exporter.logging import get_logger
from modbus_exporter.samples import Sample
from modbus_exporter.sinks.base import MetricSink

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_NANOSECONDS_PER_UNIT = {
    "s": 1_000_000_000,
    "ms": 1_000_000,
    "us": 1_000,
    "ns": 1,
}

_MEASUREMENT_ESCAPES = str.maketrans({",": r"\,", " ": r"\ ", "\n": r"\ "})
_TAG_ESCAPES = str.maketrans({",": r"\,", "=": r"\=", " ": r"\ ", "\n": r"\ "})


def escape_measurement(value: str) -> str:
    return value.translate(_MEASUREMENT_ESCAPES)


def escape_tag(value: str) -> str:
    """Escape a tag key, tag value or field key."""
    return value.translate(_TAG_ESCAPES)


def format_timestamp(timestamp: datetime, precision: str = "ns") -> int:
    """Convert a datetime to an integer epoch timestamp in the given precision."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    delta = timestamp - _EPOCH
    nanoseconds = (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000
    return nanoseconds // _NANOSECONDS_PER_UNIT[precision]


def to_line_protocol(sample: Sample, precision: str = "ns") -> str:
    """
    Render a sample as line protocol, one point per decoded value.

    NaN and infinite values cannot be represented in line protocol and are
    left out with a warning.
    """
    timestamp = format_timestamp(sample.timestamp, precision)
    source = escape_tag(sample.source_address)
    lines = []
    for decoded in sample.values:
        if not math.isfinite(decoded.value):
            logger.warning(
                f"Skipping non-finite value for '{decoded.name}' ({decoded.value}) in line protocol"
            )
            continue
        tags = ""
        if decoded.unit:
            tags += f",unit={escape_tag(decoded.unit)}"
        if source:
            tags += f",source={source}"
        lines.append(
            f"{escape_measurement(decoded.name)}{tags} value={float(decoded.value)!r} {timestamp}"
        )
    return "\n".join(lines)


class InfluxDBSink(MetricSink):
    """Writes samples to an InfluxDB v2 bucket."""

    name = "influxdb"

    def __init__(self, config: InfluxDBSinkConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config.timeout_s, client)
        self.config = config
        self.write_url = config.url.rstrip("/") + "/api/v2/write"

    async def export(self, sample: Sample) -> None:
        payload = to_line_protocol(sample, self.config.precision)
        if not payload:
            logger.debug("InfluxDB export skipped: sample has no representable values")
            return

        params = {"bucket": self.config.bucket, "precision": self.config.precision}
        if self.config.org:
            params["org"] = self.config.org

        await self._send(
            "POST",
            self.write_url,
            params=params,
            content=payload.encode("utf-8"),
            headers={
                "Authorization": f"{self.config.auth_scheme} {self.config.token}",
                "Content-Type": "text/plain; charset=utf-8",
                "Accept": "application/json",
            },
        )
        logger.debug(f"Wrote {payload.count(chr(10)) + 1} point(s) to InfluxDB bucket '{self.config.bucket}'")
