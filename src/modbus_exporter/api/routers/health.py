"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from modbus_exporter.schemas.api_models import HealthResponse, ReadyResponse
from modbus_exporter.scheduler import SchedulerState

router = APIRouter()

#@healthz is for the api health check while health_modbus_client is checking the health of the device read path


@router.get("/healthz", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint that verifies the API is running.

    Returns basic health status without performing Modbus operations.
    """
    settings = request.app.state.pipeline.settings
    return HealthResponse(
        ok=True,
        host=settings.modbus_host,
        port=settings.modbus_port,
        unit_id=settings.modbus_unit_id,
        detail="API is healthy"
    )


@router.get("/health_modbus_client", response_model=HealthResponse)
async def health_modbus_client(request: Request):
    """
    Health check endpoint that verifies connectivity and performs a small test read.

    Reads a single holding register at address 0 to confirm end-to-end
    communication with the device is working.
    """
    pipeline = request.app.state.pipeline
    settings = pipeline.settings
    health_check = getattr(pipeline.transport, "health_check", None)
    if health_check is None:
        ok, detail = True, "Transport does not support health checks"
    else:
        ok, detail = await health_check()
    return HealthResponse(
        ok=ok,
        host=settings.modbus_host,
        port=settings.modbus_port,
        unit_id=settings.modbus_unit_id,
        detail=detail
    )


@router.get("/readyz", response_model=ReadyResponse)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Returns 200 once the poll scheduler is running, 503 otherwise.
    This endpoint does not check Modbus connectivity.
    """
    scheduler = request.app.state.pipeline.scheduler
    ready = scheduler.running and scheduler.state != SchedulerState.STOPPED
    body = ReadyResponse(ready=ready, state=scheduler.state.value)
    if not ready:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump())
    return body
