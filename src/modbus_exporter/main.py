"""
Application entrypoint.

    modbus-exporter run     poll forever, serving the status API unless API_ENABLED=false
    modbus-exporter check   validate register schema and sink configuration
    modbus-exporter dump    read and decode every register once, print, exit

Configuration comes from environment variables (see config.Settings). An
invalid register schema or sink configuration exits with status 1 before
any polling begins.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import uvicorn
from pydantic import ValidationError

from modbus_exporter import __version__
from modbus_exporter.app import create_app
from modbus_exporter.config import Settings, get_settings
from modbus_exporter.logging import get_logger, setup_logging
from modbus_exporter.pipeline import Pipeline
from modbus_exporter.registers import load_schema_files
from modbus_exporter.schemas.modbus_models import RegisterSchema
from modbus_exporter.utils.exceptions import ConfigurationError, SchemaError

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_READ_ERRORS = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="modbus-exporter",
        description="Poll Modbus registers and export them to InfluxDB / Prometheus",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    p.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=["run", "check", "dump"],
        help="run (default): poll forever; check: validate configuration; dump: read once and print",
    )
    return p


def _load_schema(settings: Settings) -> Optional[RegisterSchema]:
    try:
        return load_schema_files(settings.input_registers_path, settings.holding_registers_path)
    except SchemaError as e:
        logger.critical(f"Invalid register schema, refusing to start: {e.message}")
        for problem in e.problems:
            logger.critical(f"  {problem}")
        return None


def _check_sinks(settings: Settings) -> bool:
    try:
        settings.influxdb_sink_config()
        settings.prometheus_sink_config()
    except (ConfigurationError, ValidationError) as e:
        logger.critical(f"Invalid sink configuration: {e}")
        return False
    return True


def _print_schema(schema: RegisterSchema) -> None:
    print(f"{'KIND':<8} {'ADDR':>5} {'SPAN':>4} {'TYPE':<8} {'SCALE':>10} {'UNIT':<8} NAME")
    for d in schema.definitions:
        print(
            f"{d.register_kind.value:<8} {d.address:>5} {d.span:>4} {d.data_type.value:<8} "
            f"{d.scale:>10g} {d.unit:<8} {d.name}"
        )
    print(f"{len(schema)} register(s)")


async def _dump(settings: Settings, schema: RegisterSchema) -> int:
    pipeline = Pipeline.from_settings(settings, schema, sinks=[])
    try:
        report = await pipeline.cycle.run(export=False)
    finally:
        await pipeline.close()

    for value in report.sample.values:
        print(f"{value.name:<32} {value.value:>16g} {value.unit}")
    for error in report.read_errors:
        print(f"read error: {error}", file=sys.stderr)
    for error in report.decode_errors:
        print(f"decode error: {error}", file=sys.stderr)
    return EXIT_OK if not (report.read_errors or report.decode_errors) else EXIT_READ_ERRORS


async def _run_headless(settings: Settings, schema: RegisterSchema) -> None:
    pipeline = Pipeline.from_settings(settings, schema)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, pipeline.scheduler.stop)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    await pipeline.start()
    try:
        await pipeline.scheduler.wait_stopped()
    finally:
        await pipeline.stop()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging(args.log_level or "INFO")
        logger.critical(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR

    try:
        setup_logging(args.log_level or settings.log_level)
    except ValueError as e:
        setup_logging("INFO")
        logger.critical(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR

    schema = _load_schema(settings)
    if schema is None:
        return EXIT_CONFIG_ERROR

    if args.command == "check":
        if not _check_sinks(settings):
            return EXIT_CONFIG_ERROR
        _print_schema(schema)
        return EXIT_OK

    if args.command == "dump":
        return asyncio.run(_dump(settings, schema))

    if not _check_sinks(settings):
        return EXIT_CONFIG_ERROR

    if settings.api_enabled:
        logger.info(f"Starting Modbus Metrics Exporter on {settings.api_host}:{settings.api_port}")
        uvicorn.run(
            create_app(settings, schema),
            host=settings.api_host,
            port=settings.api_port,
            log_level=(args.log_level or settings.log_level).lower()
        )
    else:
        logger.info("Starting Modbus Metrics Exporter without status API")
        asyncio.run(_run_headless(settings, schema))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
