"""API response models."""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for health check."""
    ok: bool
    host: str
    port: int
    unit_id: int
    detail: Optional[str] = None


class ReadyResponse(BaseModel):
    """Response model for readiness check."""
    ready: bool
    state: str


class ValueData(BaseModel):
    """One decoded register value."""
    name: str
    value: float
    unit: str = ""


class SinkOutcome(BaseModel):
    """Delivery outcome of one sink for one cycle."""
    delivered: bool
    error: Optional[str] = None


class CycleData(BaseModel):
    """Summary of a completed poll cycle."""
    timestamp: str = Field(..., description="ISO format timestamp of the cycle start")
    duration_s: float
    ok: bool
    source_address: str
    values: List[ValueData]
    read_errors: List[str]
    decode_errors: List[str]
    sinks: Dict[str, SinkOutcome]


class StatusResponse(BaseModel):
    """Response model for scheduler status."""
    state: str
    interval_s: float
    cycles_run: int
    failed_cycles: int
    consecutive_failed_cycles: int
    registers: int
    sinks: List[str]
    last_cycle: Optional[CycleData] = None
