"""
FastAPI application factory.

Creates and configures the FastAPI app instance with routers and lifecycle hooks.
The pipeline is built on startup, inside the server's event loop, and its
scheduler is stopped on shutdown.
"""

from typing import Optional, Sequence

from fastapi import FastAPI

from modbus_exporter import __version__
from modbus_exporter.config import Settings
from modbus_exporter.logging import get_logger
from modbus_exporter.modbus.client import RegisterTransport
from modbus_exporter.pipeline import Pipeline
from modbus_exporter.schemas.modbus_models import RegisterSchema
from modbus_exporter.sinks import MetricSink

logger = get_logger(__name__)


def create_app(
    settings: Settings,
    schema: RegisterSchema,
    transport: Optional[RegisterTransport] = None,
    sinks: Optional[Sequence[MetricSink]] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Validated application settings
        schema: Validated register schema
        transport: Transport override (defaults to a Modbus TCP transport from settings)
        sinks: Sink override (defaults to the sinks enabled in settings)

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Modbus Metrics Exporter",
        description="Polls Modbus registers and exports them to InfluxDB and Prometheus",
        version=__version__
    )

    # Mount routers
    from modbus_exporter.api.routers import health, status
    app.include_router(health.router, tags=["health"])
    app.include_router(status.router, tags=["status"])

    # Lifecycle hooks
    @app.on_event("startup")
    async def startup():
        """Build the pipeline and start polling."""
        logger.info("Starting Modbus Metrics Exporter")
        pipeline = Pipeline.from_settings(settings, schema, transport=transport, sinks=sinks)
        app.state.pipeline = pipeline
        await pipeline.start()

    @app.on_event("shutdown")
    async def shutdown():
        """Stop polling and release connections."""
        logger.info("Shutting down Modbus Metrics Exporter")
        pipeline = getattr(app.state, "pipeline", None)
        if pipeline is not None:
            await pipeline.stop()

    logger.info("FastAPI application created")
    return app
