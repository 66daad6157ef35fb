"""
Prometheus Pushgateway sink.

Each sample is rendered through a fresh prometheus_client registry (one
gauge per decoded value) and pushed with a single request:

    PUT {url}/metrics/job/<job>[/<label>/<value>...]

    # HELP temp Modbus register temp
    # TYPE temp gauge
    temp{register="temp",unit="degC"} 21.5

PUT replaces every metric previously pushed for the grouping key, so
registers missing from a partial sample disappear from the gateway instead
of going stale silently.
"""

import re
from typing import Dict, Iterable, Optional, Tuple

import httpx
from prometheus_client import CollectorRegistry, Gauge, generate_latest, push_to_gateway

from modbus_exporter.config import PrometheusSinkConfig
from modbus_exporter.logging import get_logger
from modbus_exporter.samples import Sample
from modbus_exporter.sinks.base import MetricSink

logger = get_logger(__name__)

_INVALID_METRIC_CHARS = re.compile(r"[^a-zA-Z0-9_:]")

LABEL_NAMES = ("register", "unit")


def sanitize_metric_name(name: str) -> str:
    """
    Turn an arbitrary register name into a valid Prometheus metric name.

    Invalid characters become underscores and a leading digit is prefixed
    with an underscore, e.g. ``"Stack 1 Voltage (V)"`` -> ``"Stack_1_Voltage__V_"``.
    """
    sanitized = _INVALID_METRIC_CHARS.sub("_", name)
    if not sanitized:
        return "_"
    if sanitized[0].isdigit():
        sanitized = "_" + sanitized
    return sanitized


def build_registry(sample: Sample, metric_prefix: str = "") -> CollectorRegistry:
    """Collect a sample into a new registry with one gauge per value."""
    registry = CollectorRegistry()
    gauges: Dict[str, Gauge] = {}
    for decoded in sample.values:
        metric = sanitize_metric_name(metric_prefix + decoded.name)
        gauge = gauges.get(metric)
        if gauge is None:
            # Distinct register names can sanitize to the same metric; they
            # share one gauge and differ by the register label
            gauge = Gauge(
                metric,
                f"Modbus register {decoded.name}",
                labelnames=LABEL_NAMES,
                registry=registry,
            )
            gauges[metric] = gauge
        gauge.labels(register=decoded.name, unit=decoded.unit).set(decoded.value)
    return registry


def to_exposition(sample: Sample, metric_prefix: str = "") -> str:
    """Render a sample in the text exposition format."""
    return generate_latest(build_registry(sample, metric_prefix)).decode("utf-8")


class _RecordingHandler:
    """push_to_gateway handler that keeps the request instead of sending it."""

    def __init__(self):
        self.url: Optional[str] = None
        self.method: Optional[str] = None
        self.headers: Dict[str, str] = {}
        self.data: bytes = b""

    def __call__(self, url, method, timeout, headers, data):
        self.url = url
        self.method = method
        self.headers = dict(headers)
        self.data = data
        return lambda: None


def build_push_request(
    base_url: str,
    job: str,
    registry: CollectorRegistry,
    grouping_key: Iterable[Tuple[str, str]] = (),
) -> Tuple[str, Dict[str, str], bytes]:
    """
    Build the Pushgateway PUT for a registry.

    prometheus_client encodes the job and grouping labels (including the
    ``@base64`` form) and renders the body; the request itself is sent with
    httpx by the sink.

    Returns:
        Tuple of (url, headers, body)
    """
    handler = _RecordingHandler()
    push_to_gateway(
        base_url,
        job=job,
        registry=registry,
        grouping_key=dict(grouping_key),
        handler=handler,
    )
    return handler.url, handler.headers, handler.data


class PrometheusSink(MetricSink):
    """Pushes samples to a Prometheus Pushgateway."""

    name = "prometheus"

    def __init__(self, config: PrometheusSinkConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config.timeout_s, client)
        self.config = config

    async def export(self, sample: Sample) -> None:
        registry = build_registry(sample, self.config.metric_prefix)
        url, headers, body = build_push_request(
            self.config.url, self.config.job, registry, self.config.grouping_key
        )
        await self._send("PUT", url, content=body, headers=headers)
        logger.debug(f"Pushed {len(sample)} metric(s) to Pushgateway job '{self.config.job}'")
