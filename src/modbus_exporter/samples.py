"""
Sample assembly.

A Sample is one poll cycle's batch of decoded values. It is built once and
then handed to every sink by reference, so all models here are frozen.
"""

from datetime import datetime, timezone
from typing import Iterable, Tuple

from pydantic import BaseModel, Field


class DecodedValue(BaseModel):
    """A single decoded, scaled register value."""
    name: str = Field(..., description="Register name")
    value: float = Field(..., description="Scaled physical value")
    unit: str = Field(default="", description="Physical unit, passed through untouched")
    timestamp: datetime = Field(..., description="Time of the poll cycle that produced the value")

    model_config = {"frozen": True}


class Sample(BaseModel):
    """One poll cycle's batch of decoded values from a single device."""
    timestamp: datetime = Field(..., description="Cycle start time (UTC)")
    source_address: str = Field(..., description="Device the values were read from (host:port/unit)")
    values: Tuple[DecodedValue, ...] = Field(default=(), description="Decoded values in schema order")

    model_config = {"frozen": True}

    def __len__(self) -> int:
        return len(self.values)

    @property
    def names(self) -> list[str]:
        return [v.name for v in self.values]

    def to_dict(self) -> dict[str, float]:
        """Map register name to value."""
        return {v.name: v.value for v in self.values}


def assemble(
    timestamp: datetime,
    source_address: str,
    decoded: Iterable[Tuple[str, str, float]],
) -> Sample:
    """
    Group one cycle's decoded values into a Sample.

    The values may be any subset of the schema; registers that failed to read
    or decode are simply absent. Naive timestamps are taken to be UTC.

    Args:
        timestamp: Cycle timestamp
        source_address: Identity of the polled device
        decoded: Ordered (name, unit, value) triples

    Returns:
        Immutable Sample preserving the input order
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    values = tuple(
        DecodedValue(name=name, value=value, unit=unit, timestamp=timestamp)
        for name, unit, value in decoded
    )
    return Sample(timestamp=timestamp, source_address=source_address, values=values)
