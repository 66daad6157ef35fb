"""Poll scheduler status endpoint."""

from fastapi import APIRouter, Request

from modbus_exporter.schemas.api_models import StatusResponse

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request):
    """
    Report scheduler state, cycle counters and the most recent cycle.

    The last cycle includes every decoded value plus the read, decode and
    per-sink failures it recorded.
    """
    pipeline = request.app.state.pipeline
    return StatusResponse(
        **pipeline.scheduler.status(),
        registers=len(pipeline.schema),
        sinks=[sink.name for sink in pipeline.sinks],
    )
