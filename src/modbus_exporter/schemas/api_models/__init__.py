"""API response models."""

from modbus_exporter.schemas.api_models.models import (
    CycleData,
    HealthResponse,
    ReadyResponse,
    SinkOutcome,
    StatusResponse,
    ValueData,
)

__all__ = ["CycleData", "HealthResponse", "ReadyResponse", "SinkOutcome", "StatusResponse", "ValueData"]
